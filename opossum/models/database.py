"""
SQLAlchemy database models for oPOSSUM counts.

Defines tables for:
- Genes and their promoters (TSSs)
- Operons (gene membership, ordered by position)
- Conserved TFBSs (raw hits, gene-relative 1-based coordinates)
- TFBS clusters and their member motifs
- Precomputed TFBS cluster counts at discrete parameter levels
"""

from typing import List, Optional, Tuple

from sqlalchemy import Column, Float, ForeignKey, Integer, SmallInteger, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Gene(Base):
    """Gene table.

    ``start``/``end`` span the whole gene region including any upstream
    part, so ``start <= tss <= end`` regardless of strand.
    """

    __tablename__ = "genes"

    gene_id = Column(Integer, primary_key=True)
    ensembl_id = Column(String(32), nullable=False, index=True)
    symbol = Column(String(32), nullable=True, index=True)
    biotype = Column(String(40), nullable=True)
    chr = Column(String(32), nullable=False)
    start = Column(Integer, nullable=False)
    end = Column(Integer, nullable=False)
    tss = Column(Integer, nullable=False)
    strand = Column(SmallInteger, nullable=False)

    # Relationships
    promoters = relationship("Promoter", back_populates="gene", order_by="Promoter.tss")

    def __repr__(self):
        return f"<Gene(id={self.gene_id}, symbol={self.symbol}, {self.chr}:{self.start}-{self.end})>"

    def promoter_search_regions(
        self, upstream_bp: Optional[int], downstream_bp: Optional[int]
    ) -> List[Tuple[int, int]]:
        """Search regions around each promoter TSS in gene-relative coords.

        Each region is clipped to the gene region; overlapping regions of
        alternative promoters are combined. Falls back to the gene TSS when
        no promoters are stored.
        """
        tss_list = [p.tss for p in self.promoters] or [self.tss]

        regions = []
        for tss in tss_list:
            if self.strand == 1:
                sr_start = self.start if upstream_bp is None else max(self.start, tss - upstream_bp)
                sr_end = self.end if downstream_bp is None else min(self.end, tss + downstream_bp - 1)
            else:
                sr_end = self.end if upstream_bp is None else min(self.end, tss + upstream_bp)
                sr_start = self.start if downstream_bp is None else max(self.start, tss - downstream_bp + 1)

            # 1-based sequence coordinates
            regions.append((sr_start - self.start + 1, sr_end - self.start + 1))

        return combine_regions(regions)


def combine_regions(regions: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Merge overlapping or adjacent (start, end) regions."""
    combined: List[Tuple[int, int]] = []
    for start, end in sorted(regions):
        if start > end:
            continue
        if combined and start <= combined[-1][1] + 1:
            combined[-1] = (combined[-1][0], max(combined[-1][1], end))
        else:
            combined.append((start, end))
    return combined


class Promoter(Base):
    """Alternative transcription start sites of a gene."""

    __tablename__ = "promoters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    gene_id = Column(Integer, ForeignKey("genes.gene_id"), nullable=False, index=True)
    tss = Column(Integer, nullable=False)
    ensembl_transcript_id = Column(String(25), nullable=True)

    gene = relationship("Gene", back_populates="promoters")


class OperonGene(Base):
    """Operon membership; ``rank`` 0 is the operon's first gene."""

    __tablename__ = "operons"

    operon_id = Column(Integer, primary_key=True)
    gene_id = Column(Integer, ForeignKey("genes.gene_id"), primary_key=True)
    symbol = Column(String(32), nullable=False, index=True)
    rank = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<OperonGene(operon={self.operon_id}, gene={self.gene_id}, rank={self.rank})>"


class ConservedTFBS(Base):
    """A conserved TFBS hit on a gene's sequence."""

    __tablename__ = "conserved_tfbss"

    gene_id = Column(Integer, ForeignKey("genes.gene_id"), primary_key=True)
    tf_id = Column(String(16), primary_key=True, index=True)
    start = Column(Integer, primary_key=True)
    end = Column(Integer, nullable=False)
    strand = Column(SmallInteger, nullable=False)
    score = Column(Float, nullable=False)
    rel_score = Column(Float, nullable=False)
    seq = Column(String(40), nullable=True)
    conservation_level = Column(SmallInteger, nullable=False)
    conservation = Column(Float, nullable=False)

    def __repr__(self):
        return f"<ConservedTFBS(gene={self.gene_id}, tf={self.tf_id}, {self.start}-{self.end})>"


class TFClusterRecord(Base):
    """A TFBS cluster (family of structurally related motifs)."""

    __tablename__ = "tf_clusters"

    cluster_id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False, default="")
    family = Column(String(64), nullable=True)

    members = relationship("TFClusterMember", back_populates="cluster", order_by="TFClusterMember.tf_id")

    @property
    def tf_ids(self) -> List[str]:
        return [m.tf_id for m in self.members]


class TFClusterMember(Base):
    """Membership of a motif in a TFBS cluster."""

    __tablename__ = "tf_cluster_members"

    cluster_id = Column(Integer, ForeignKey("tf_clusters.cluster_id"), primary_key=True)
    tf_id = Column(String(16), primary_key=True)

    cluster = relationship("TFClusterRecord", back_populates="members")


class TFBSClusterCount(Base):
    """Precomputed per gene/cluster counts; zero counts are not stored."""

    __tablename__ = "tfbs_cluster_counts"

    gene_id = Column(Integer, ForeignKey("genes.gene_id"), primary_key=True)
    cluster_id = Column(Integer, primary_key=True, index=True)
    conservation_level = Column(SmallInteger, primary_key=True)
    threshold_level = Column(SmallInteger, primary_key=True)
    search_region_level = Column(SmallInteger, primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    sum_length = Column(Integer, nullable=False, default=0)


# Database initialization functions
def init_db(engine):
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)


def get_session(engine):
    """Create a new database session."""
    from sqlalchemy.orm import sessionmaker
    Session = sessionmaker(bind=engine)
    return Session()
