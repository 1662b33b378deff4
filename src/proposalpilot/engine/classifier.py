"""
ProposalPilot Classification Decision Maker

Applies the configured thresholds to GroupStatistics and decides, per
fingerprint cluster, whether it becomes a templated Proposal or goes to
per-certificate PHA records.

Policy, first match wins:
1. unique_ratio >= high_entropy_unique_ratio AND entropy >= high_entropy_shannon
   -> every cluster individualized ("high entropy")
2. cluster members all hold pre-existing PHA records
   -> individualized ("existing PHA"), whatever the size
3. cluster size >= pha_cluster_size_threshold AND group dominant coverage
   >= dominant_coverage_threshold -> templated; otherwise individualized
   ("below cluster threshold" / "low dominant coverage")

The empty fingerprint is never templated.
"""
from __future__ import annotations

import logging
from typing import AbstractSet, Optional

from ..config import MigrationConfig
from ..models import (
    ClusterDecision,
    ClusterSummary,
    Disposition,
    GroupStatistics,
    PhaReason,
)


logger = logging.getLogger(__name__)


class ClusterClassifier:
    """
    Decides the disposition of each cluster of one group.

    Usage:
        classifier = ClusterClassifier(config)
        decisions = classifier.classify(stats)
    """

    def __init__(self, config: MigrationConfig):
        self.config = config

    def is_high_entropy(self, stats: GroupStatistics) -> bool:
        if stats.total == 0:
            return False
        return (
            stats.unique_ratio >= self.config.high_entropy_unique_ratio
            and stats.entropy >= self.config.high_entropy_shannon
        )

    def size_reason(self, size: int, stats: GroupStatistics) -> Optional[PhaReason]:
        """
        Reason a cluster (or regime) of `size` cannot be templated, or None.

        Used both for whole clusters and for regimes carved out of them.
        """
        if size < self.config.pha_cluster_size_threshold:
            return PhaReason.BELOW_CLUSTER_THRESHOLD
        if stats.dominant_coverage < self.config.dominant_coverage_threshold:
            return PhaReason.LOW_DOMINANT_COVERAGE
        return None

    def decide(
        self,
        cluster: ClusterSummary,
        stats: GroupStatistics,
        existing_pha: AbstractSet[str] = frozenset(),
    ) -> ClusterDecision:
        """
        Decision for one cluster.

        plan_group removes empty-split and existing-PHA certificates before
        computing statistics, so the first two checks only fire when
        classify() is handed statistics built over an unfiltered group.
        """
        if cluster.fingerprint.is_empty:
            return _individualized(cluster, PhaReason.EMPTY_SPLITS)
        if existing_pha and all(cid in existing_pha for cid in cluster.certificate_ids):
            return _individualized(cluster, PhaReason.EXISTING_PHA)
        reason = self.size_reason(cluster.size, stats)
        if reason is not None:
            return _individualized(cluster, reason)
        return ClusterDecision(digest=cluster.digest, disposition=Disposition.TEMPLATED)

    def classify(
        self,
        stats: GroupStatistics,
        existing_pha: AbstractSet[str] = frozenset(),
    ) -> dict[str, ClusterDecision]:
        """
        Classify every cluster of a group.

        Args:
            stats: Statistics of the group
            existing_pha: Certificates already holding PHA records

        Returns:
            digest -> ClusterDecision, in the cluster order of `stats`
        """
        if self.is_high_entropy(stats):
            logger.info(
                "Group %s is high entropy (ratio=%.4f, entropy=%.4f): all %d certificates to PHA",
                stats.group_id, stats.unique_ratio, stats.entropy, stats.total,
                extra={"group_id": stats.group_id},
            )
            return {
                digest: _individualized(cluster, PhaReason.HIGH_ENTROPY)
                for digest, cluster in stats.clusters.items()
            }

        decisions = {
            digest: self.decide(cluster, stats, existing_pha)
            for digest, cluster in stats.clusters.items()
        }
        templated = sum(1 for d in decisions.values() if d.is_templated)
        logger.debug(
            "Group %s: %d of %d clusters templated",
            stats.group_id, templated, len(decisions),
            extra={"group_id": stats.group_id},
        )
        return decisions


def _individualized(cluster: ClusterSummary, reason: PhaReason) -> ClusterDecision:
    return ClusterDecision(
        digest=cluster.digest,
        disposition=Disposition.INDIVIDUALIZED,
        reason=reason,
    )


def classify_group(
    stats: GroupStatistics,
    config: MigrationConfig,
    existing_pha: AbstractSet[str] = frozenset(),
) -> dict[str, ClusterDecision]:
    """Convenience function to classify one group's clusters."""
    return ClusterClassifier(config).classify(stats, existing_pha)
