"""
Binding site value types.

An ``Interval`` is a single TFBS hit on a gene's reference coordinates
(1-based, inclusive). A ``MergedSite`` is the coalesced union of one or
more overlapping hits of the same cluster. Both are immutable; all
transformations return new values.
"""

from dataclasses import dataclass, replace
from typing import Optional, Union

from .exceptions import InvalidParameterError

ClusterId = Union[int, str]

_COMPLEMENT = str.maketrans("acgtACGT", "tgcaTGCA")


def reverse_complement(seq: str) -> str:
    """Reverse complement a nucleotide string, preserving case.

    Characters other than A, C, G, T (e.g. N) are kept as is.
    """
    return seq[::-1].translate(_COMPLEMENT)


@dataclass(frozen=True)
class Interval:
    """A TFBS hit."""

    start: int
    end: int
    strand: int = 1
    score: float = 0.0
    rel_score: float = 0.0
    sequence: str = ""
    cluster_id: Optional[ClusterId] = None
    tf_id: Optional[str] = None
    conservation: Optional[float] = None

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidParameterError("start", self.start, f"<= end ({self.end})")
        if self.strand not in (1, -1):
            raise InvalidParameterError("strand", self.strand, "1 or -1")

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def normalized(self) -> "Interval":
        """Return this hit on the +1 strand, reverse complementing if needed."""
        if self.strand == -1:
            return replace(self, strand=1, sequence=reverse_complement(self.sequence))
        return self


@dataclass(frozen=True)
class MergedSite(Interval):
    """A cluster site coalesced from one or more overlapping hits.

    ``n_members`` records how many raw hits were folded into the site.
    """

    n_members: int = 1

    @classmethod
    def from_interval(cls, interval: Interval, cluster_id: ClusterId) -> "MergedSite":
        site = interval.normalized()
        return cls(
            start=site.start,
            end=site.end,
            strand=site.strand,
            score=site.score,
            rel_score=site.rel_score,
            sequence=site.sequence,
            cluster_id=cluster_id,
            tf_id=site.tf_id,
            conservation=site.conservation,
        )


def overlaps(a: Interval, b: Interval) -> bool:
    """Inclusive overlap test; touching endpoints count as overlap."""
    return a.start <= b.end and a.end >= b.start

