"""
ProposalPilot Group Statistics Analyzer

Groups one employer group's certificates into fingerprint clusters and
measures how concentrated they are.

Metrics (N certificates, k clusters, p_i = size_i / N):
- unique_ratio      = k / N
- entropy           = -sum(p_i * log2(p_i)), 0 <= entropy <= log2(N)
- dominant_coverage = max(size_i) / N

A single-cluster group has entropy exactly 0. An empty group has every
metric at 0.
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Mapping

from ..models import ClusterSummary, Fingerprint, GroupStatistics


logger = logging.getLogger(__name__)


def shannon_entropy(sizes: list[int]) -> float:
    """
    Shannon entropy in bits of a size distribution.

        >>> shannon_entropy([5])
        0.0
        >>> shannon_entropy([1, 1, 1, 1])
        2.0
    """
    total = sum(sizes)
    if total <= 0 or len(sizes) <= 1:
        return 0.0
    entropy = 0.0
    for size in sizes:
        if size <= 0:
            continue
        p = size / total
        entropy -= p * math.log2(p)
    # Float error must not push past the theoretical bounds
    return min(max(entropy, 0.0), math.log2(total))


def build_clusters(fingerprints: Mapping[str, Fingerprint]) -> dict[str, ClusterSummary]:
    """
    Cluster certificates by digest.

    Returned in descending size order, ties by digest.
    """
    members: dict[str, list[str]] = defaultdict(list)
    by_digest: dict[str, Fingerprint] = {}
    for certificate_id, fp in fingerprints.items():
        members[fp.digest].append(certificate_id)
        by_digest[fp.digest] = fp

    ordered = sorted(members, key=lambda d: (-len(members[d]), d))
    return {
        digest: ClusterSummary(
            fingerprint=by_digest[digest],
            certificate_ids=tuple(sorted(members[digest])),
        )
        for digest in ordered
    }


def compute_group_statistics(
    group_id: str,
    fingerprints: Mapping[str, Fingerprint],
    log_at_info: bool = False,
) -> GroupStatistics:
    """
    Compute GroupStatistics for one group.

    Args:
        group_id: Employer group
        fingerprints: certificate_id -> Fingerprint for the analyzed pool
        log_at_info: Log the metrics at INFO rather than DEBUG

    Returns:
        GroupStatistics with a read-only cluster mapping
    """
    clusters = build_clusters(fingerprints)
    total = len(fingerprints)
    if total == 0:
        stats = GroupStatistics(
            group_id=group_id,
            clusters={},
            total=0,
            unique_ratio=0.0,
            entropy=0.0,
            dominant_coverage=0.0,
        )
    else:
        sizes = [c.size for c in clusters.values()]
        stats = GroupStatistics(
            group_id=group_id,
            clusters=clusters,
            total=total,
            unique_ratio=len(clusters) / total,
            entropy=shannon_entropy(sizes),
            dominant_coverage=max(sizes) / total,
        )

    logger.log(
        logging.INFO if log_at_info else logging.DEBUG,
        "Group %s: %d certificates, %d clusters, ratio=%.4f entropy=%.4f dominant=%.4f",
        group_id,
        stats.total,
        stats.cluster_count,
        stats.unique_ratio,
        stats.entropy,
        stats.dominant_coverage,
        extra={"group_id": group_id},
    )
    return stats
