"""
ProposalPilot Migration Settings

The single frozen configuration object that every engine component reads.
Built only through `proposalpilot.config.loader`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class MigrationConfig:
    """
    All thresholds and switches for one migration run.

    Attributes:
        high_entropy_unique_ratio: Ratio at/above which a group may be high entropy
        high_entropy_shannon: Entropy (bits) at/above which a group may be high entropy
        dominant_coverage_threshold: Minimum largest-cluster share for templating
        pha_cluster_size_threshold: Minimum cluster size for templating
        log_entropy_by_group: Log per-group statistics at INFO
        outlier_minority_fraction: Minority floor as a share of group total
        regime_gap_tolerance: Largest date gap that stays within one regime
        wildcard_min_distinct: Distinct codes at which a filter becomes "any"
        widen_date_ranges: Widen proposals to the group's operative window
        batch_size: Groups per runner batch
        max_workers: Planning threads per batch
        certificate_statuses: Source statuses selected for migration
    """
    high_entropy_unique_ratio: float
    high_entropy_shannon: float
    dominant_coverage_threshold: float
    pha_cluster_size_threshold: int
    log_entropy_by_group: bool = False
    outlier_minority_fraction: float = 0.05
    regime_gap_tolerance: timedelta = timedelta(days=365)
    wildcard_min_distinct: int = 2
    widen_date_ranges: bool = True
    batch_size: int = 100
    max_workers: int = 4
    certificate_statuses: tuple[str, ...] = field(default_factory=lambda: ("A",))

    def to_dict(self) -> dict:
        return {
            "high_entropy_unique_ratio": self.high_entropy_unique_ratio,
            "high_entropy_shannon": self.high_entropy_shannon,
            "dominant_coverage_threshold": self.dominant_coverage_threshold,
            "pha_cluster_size_threshold": self.pha_cluster_size_threshold,
            "log_entropy_by_group": self.log_entropy_by_group,
            "outlier_minority_fraction": self.outlier_minority_fraction,
            "regime_gap_tolerance_days": self.regime_gap_tolerance.days,
            "wildcard_min_distinct": self.wildcard_min_distinct,
            "widen_date_ranges": self.widen_date_ranges,
            "batch_size": self.batch_size,
            "max_workers": self.max_workers,
            "certificate_statuses": list(self.certificate_statuses),
        }
