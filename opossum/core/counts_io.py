"""
Reading and writing counts matrices.

Formats:

- ``fisher``  (write only): ``cluster_id  genes_with_sites  genes_without_sites``
- ``zscore``  (write only): ``cluster_id  total_sites  total_length``
- ``detail``  (read/write): full matrix in four sections::

    >Clusters
    C1
    C2
    >Genes
    101
    102
    >Counts
    3	0
    1	2
    >Lengths
    45	0
    12	30

Count and length rows follow gene order, columns follow cluster order.
"""

import io
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, TextIO, Union

from .counts import CountsMatrix
from .exceptions import CountsFormatError

logger = logging.getLogger(__name__)

PathOrHandle = Union[str, Path, TextIO]

FORMATS = ("fisher", "zscore", "detail")
_SECTIONS = (">Clusters", ">Genes", ">Counts", ">Lengths")


@contextmanager
def _open(target: PathOrHandle, mode: str) -> Iterator[TextIO]:
    if hasattr(target, "read") or hasattr(target, "write"):
        yield target
    else:
        with open(target, mode) as fh:
            yield fh


def write_counts(counts: CountsMatrix, target: PathOrHandle, fmt: str = "detail") -> None:
    """Write a counts matrix to a path or open text handle."""
    fmt = fmt.lower()
    if fmt not in FORMATS:
        raise CountsFormatError(f"Unknown counts format: {fmt}. Supported: {list(FORMATS)}")
    if not counts.cluster_ids:
        raise CountsFormatError("no cluster IDs in counts")
    if not counts.gene_ids:
        raise CountsFormatError("no gene IDs in counts")

    writer = {
        "fisher": _write_fisher_counts,
        "zscore": _write_zscore_counts,
        "detail": _write_detail_counts,
    }[fmt]

    with _open(target, "w") as fh:
        writer(fh, counts)


def read_counts(source: PathOrHandle, fmt: str = "detail") -> CountsMatrix:
    """Read a counts matrix. Only the ``detail`` format is readable."""
    fmt = fmt.lower()
    if fmt in ("fisher", "zscore"):
        raise CountsFormatError(f"{fmt} is a write-only format")
    if fmt != "detail":
        raise CountsFormatError(f"Unknown counts format: {fmt}")

    with _open(source, "r") as fh:
        return _read_detail_counts(fh)


def counts_to_string(counts: CountsMatrix, fmt: str = "detail") -> str:
    buf = io.StringIO()
    write_counts(counts, buf, fmt)
    return buf.getvalue()


def _write_fisher_counts(fh: TextIO, counts: CountsMatrix):
    num_genes = counts.num_genes
    for cluster_id in counts.cluster_ids:
        with_sites = counts.cluster_gene_count(cluster_id)
        fh.write(f"{cluster_id}\t{with_sites}\t{num_genes - with_sites}\n")


def _write_zscore_counts(fh: TextIO, counts: CountsMatrix):
    for cluster_id in counts.cluster_ids:
        fh.write(
            f"{cluster_id}\t{counts.cluster_count(cluster_id)}\t{counts.cluster_length(cluster_id)}\n"
        )


def _write_detail_counts(fh: TextIO, counts: CountsMatrix):
    fh.write(">Clusters\n")
    for cluster_id in counts.cluster_ids:
        fh.write(f"{cluster_id}\n")

    fh.write(">Genes\n")
    for gene_id in counts.gene_ids:
        fh.write(f"{gene_id}\n")

    for header, accessor in ((">Counts", counts.count), (">Lengths", counts.length)):
        fh.write(f"{header}\n")
        for gene_id in counts.gene_ids:
            fh.write("\t".join(str(accessor(gene_id, c)) for c in counts.cluster_ids) + "\n")


def _parse_id(text: str):
    """Gene and cluster IDs are integers when they look like integers."""
    return int(text) if text.lstrip("-").isdigit() else text


def _read_detail_counts(fh: TextIO) -> CountsMatrix:
    sections = {name: [] for name in _SECTIONS}
    current = None

    for lineno, line in enumerate(fh, start=1):
        line = line.rstrip("\n")
        if not line.strip():
            continue
        if line.startswith(">"):
            if line.strip() not in sections:
                raise CountsFormatError(f"line {lineno}: unknown section {line.strip()}")
            current = line.strip()
            continue
        if current is None:
            raise CountsFormatError(f"line {lineno}: data before first section header")
        sections[current].append(line)

    cluster_ids = [_parse_id(v.strip()) for v in sections[">Clusters"]]
    gene_ids = [_parse_id(v.strip()) for v in sections[">Genes"]]
    if not cluster_ids:
        raise CountsFormatError("no clusters read")
    if not gene_ids:
        raise CountsFormatError("no genes read")

    counts_rows = _parse_rows(sections[">Counts"], gene_ids, cluster_ids, "counts")
    length_rows = _parse_rows(sections[">Lengths"], gene_ids, cluster_ids, "lengths")

    counts = CountsMatrix(gene_ids=gene_ids, cluster_ids=cluster_ids)
    for gene_id, count_row, length_row in zip(gene_ids, counts_rows, length_rows):
        for cluster_id, count, length in zip(cluster_ids, count_row, length_row):
            counts.set(gene_id, cluster_id, count, length)

    logger.debug(f"Read counts for {len(gene_ids)} genes x {len(cluster_ids)} clusters")
    return counts


def _parse_rows(lines: List[str], gene_ids, cluster_ids, what: str) -> List[List[int]]:
    if len(lines) != len(gene_ids):
        raise CountsFormatError(
            f"number of {what} rows read ({len(lines)}) does not match number of genes ({len(gene_ids)})"
        )

    rows = []
    for gene_id, line in zip(gene_ids, lines):
        values = line.split("\t")
        if len(values) != len(cluster_ids):
            raise CountsFormatError(
                f"number of {what} read does not match number of clusters for gene {gene_id}"
            )
        try:
            rows.append([int(v) for v in values])
        except ValueError:
            raise CountsFormatError(f"non-integer {what} for gene {gene_id}: {line!r}") from None
    return rows
