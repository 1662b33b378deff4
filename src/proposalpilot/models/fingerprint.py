"""
ProposalPilot Fingerprint and Cluster Models

A Fingerprint is the comparable identity of a certificate's split
structure. Certificates with the same fingerprint can share one templated
Proposal; the group statistics are computed over fingerprint clusters.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional

from .enums import Disposition, PhaReason


EMPTY_DIGEST = "0" * 64


# =============================================================================
# Fingerprint
# =============================================================================

@dataclass(frozen=True)
class TierKey:
    """The fingerprinted part of a tier: who, and on what schedule."""
    broker_id: str
    schedule: Optional[str]


@dataclass(frozen=True)
class SplitKey:
    """The fingerprinted part of a split: percent and ordered tiers."""
    percent: Decimal
    tiers: tuple[TierKey, ...]

    @property
    def writing_broker_id(self) -> Optional[str]:
        return self.tiers[0].broker_id if self.tiers else None


@dataclass(frozen=True)
class Fingerprint:
    """
    Canonical structure of a certificate's splits plus its content hash.

    Attributes:
        splits: Splits in sequence order, tiers in level order
        canonical: Canonical JSON text of the structure
        digest: Hex SHA-256 of `canonical` (64 characters)
    """
    splits: tuple[SplitKey, ...]
    canonical: str
    digest: str

    @property
    def is_empty(self) -> bool:
        return self.digest == EMPTY_DIGEST

    @property
    def short(self) -> str:
        return self.digest[:12]

    @property
    def total_percent(self) -> Decimal:
        return sum((s.percent for s in self.splits), Decimal("0"))


EMPTY_FINGERPRINT = Fingerprint(splits=(), canonical="[]", digest=EMPTY_DIGEST)


# =============================================================================
# Clusters and Statistics
# =============================================================================

@dataclass(frozen=True)
class ClusterSummary:
    """All certificates of one group that share one fingerprint."""
    fingerprint: Fingerprint
    certificate_ids: tuple[str, ...]

    @property
    def digest(self) -> str:
        return self.fingerprint.digest

    @property
    def size(self) -> int:
        return len(self.certificate_ids)


@dataclass(frozen=True)
class GroupStatistics:
    """
    Concentration metrics for one group's fingerprint clusters.

    Attributes:
        group_id: Employer group
        clusters: Read-only mapping of digest -> ClusterSummary
        total: Number of certificates analyzed
        unique_ratio: distinct fingerprints / total
        entropy: Shannon entropy (bits) of the cluster-size distribution
        dominant_coverage: largest cluster size / total
    """
    group_id: str
    clusters: Mapping[str, ClusterSummary]
    total: int
    unique_ratio: float
    entropy: float
    dominant_coverage: float

    def __post_init__(self) -> None:
        if not isinstance(self.clusters, MappingProxyType):
            object.__setattr__(self, "clusters", MappingProxyType(dict(self.clusters)))

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)

    @property
    def dominant_size(self) -> int:
        return max((c.size for c in self.clusters.values()), default=0)

    def to_dict(self) -> dict:
        return {
            "group_id": self.group_id,
            "total": self.total,
            "clusters": self.cluster_count,
            "dominant_size": self.dominant_size,
            "unique_ratio": round(self.unique_ratio, 6),
            "entropy": round(self.entropy, 6),
            "dominant_coverage": round(self.dominant_coverage, 6),
        }


@dataclass(frozen=True)
class ClusterDecision:
    """The classifier's verdict for one cluster."""
    digest: str
    disposition: Disposition
    reason: Optional[PhaReason] = None

    @property
    def is_templated(self) -> bool:
        return self.disposition == Disposition.TEMPLATED
