"""
Over-representation statistics over target/background counts matrices.

Two result sets are produced per TFBS cluster:
- Fisher exact test on the number of genes with and without a cluster site
- Z-score on the number of nucleotides covered by cluster sites relative to
  the total search space of each set

The numeric routines themselves are scipy's; this module only shapes the
counts into their inputs and collects the results into DataFrames.
"""

import logging
import math
from typing import Dict, List

import numpy as np
import pandas as pd

from .counts import CountsMatrix
from .exceptions import EnrichmentError, InvalidParameterError

logger = logging.getLogger(__name__)

FISHER_COLUMNS = [
    "cluster_id", "t_gene_hits", "t_gene_no_hits",
    "bg_gene_hits", "bg_gene_no_hits", "p_value", "score",
]

ZSCORE_COLUMNS = [
    "cluster_id", "t_hits", "bg_hits", "t_rate", "bg_rate",
    "t_gene_hits", "bg_gene_hits", "z_score", "p_value",
]


def fisher_enrichment(bg_counts: CountsMatrix, t_counts: CountsMatrix) -> pd.DataFrame:
    """
    One-tailed Fisher exact test of each cluster's gene hits.

    For every cluster the 2x2 table is::

        [[t_no_hits, bg_no_hits],
         [t_hits,    bg_hits   ]]

    tested with ``alternative="less"``, so small p-values mean the target
    genes carry the cluster more often than the background genes. The score
    is ``-ln(p)``.

    Raises
    ------
    EnrichmentError
        If target and background do not cover the same clusters.
    """
    from scipy import stats

    if set(bg_counts.cluster_ids) != set(t_counts.cluster_ids):
        raise EnrichmentError(
            "target and background counts must contain the same cluster IDs"
        )

    rows: List[Dict] = []
    for cluster_id in t_counts.cluster_ids:
        t_hits = t_counts.cluster_gene_count(cluster_id)
        bg_hits = bg_counts.cluster_gene_count(cluster_id)
        t_no_hits = t_counts.num_genes - t_hits
        bg_no_hits = bg_counts.num_genes - bg_hits

        contingency = [
            [t_no_hits, bg_no_hits],
            [t_hits, bg_hits],
        ]
        _, p_value = stats.fisher_exact(contingency, alternative="less")

        rows.append({
            "cluster_id": cluster_id,
            "t_gene_hits": t_hits,
            "t_gene_no_hits": t_no_hits,
            "bg_gene_hits": bg_hits,
            "bg_gene_no_hits": bg_no_hits,
            "p_value": p_value,
            "score": -math.log(p_value) if p_value > 0 else np.inf,
        })

    logger.info(f"Fisher enrichment computed for {len(rows)} clusters")
    return pd.DataFrame(rows, columns=FISHER_COLUMNS)


def zscore_enrichment(
    bg_counts: CountsMatrix,
    t_counts: CountsMatrix,
    bg_seq_len: int,
    t_seq_len: int,
) -> pd.DataFrame:
    """
    Z-score of the cluster nucleotide rate in the target set.

    ``bg_seq_len`` and ``t_seq_len`` are the total search space (bp) of each
    set. Covered lengths larger than the search space (sites hanging over a
    region boundary) are clipped to it. Clusters absent from the background
    are logged and excluded. Where the background rate is 0 or 1 the
    standard deviation vanishes and ``z_score``/``p_value`` are left NaN.
    """
    from scipy import stats

    if not bg_seq_len or bg_seq_len < 0:
        raise InvalidParameterError("bg_seq_len", bg_seq_len, "a positive search space length")
    if not t_seq_len or t_seq_len < 0:
        raise InvalidParameterError("t_seq_len", t_seq_len, "a positive search space length")

    ratio = t_seq_len / bg_seq_len

    rows: List[Dict] = []
    for cluster_id in t_counts.cluster_ids:
        if not bg_counts.cluster_exists(cluster_id):
            logger.warning(
                f"Cluster {cluster_id} does not exist in background set, excluding from analysis"
            )
            continue

        t_hits = t_counts.cluster_count(cluster_id)
        bg_hits = bg_counts.cluster_count(cluster_id)

        t_nucl = min(t_counts.cluster_length(cluster_id), t_seq_len)
        bg_nucl = min(bg_counts.cluster_length(cluster_id), bg_seq_len)

        t_rate = t_nucl / t_seq_len
        bg_rate = bg_nucl / bg_seq_len

        # binomial sd over t_seq_len trials at the background rate
        sd = math.sqrt(t_seq_len * bg_rate * (1 - bg_rate))
        expected = bg_nucl * ratio

        z_score = np.nan
        p_value = np.nan
        if sd != 0:
            z_score = (t_nucl - expected - 0.5) / sd
            p_value = stats.norm.sf(z_score)

        rows.append({
            "cluster_id": cluster_id,
            "t_hits": t_hits,
            "bg_hits": bg_hits,
            "t_rate": t_rate,
            "bg_rate": bg_rate,
            "t_gene_hits": t_counts.cluster_gene_count(cluster_id),
            "bg_gene_hits": bg_counts.cluster_gene_count(cluster_id),
            "z_score": z_score,
            "p_value": p_value,
        })

    results = pd.DataFrame(rows, columns=ZSCORE_COLUMNS)
    results.attrs["bg_seq_len"] = bg_seq_len
    results.attrs["t_seq_len"] = t_seq_len

    logger.info(f"Z-score enrichment computed for {len(rows)} clusters")
    return results
