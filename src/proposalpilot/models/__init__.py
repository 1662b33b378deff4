"""
ProposalPilot Models

All domain models for the ProposalPilot commission migration engine.

Exports all models organized by category for convenient imports:

    from proposalpilot.models import (
        # Enums
        Disposition, PhaReason, EntityKind,
        # Input
        Certificate, SplitEntry, Tier,
        # Fingerprints and statistics
        Fingerprint, GroupStatistics, ClusterDecision,
        # Synthesized structures
        Proposal, Hierarchy, PolicyHierarchyAssignment, StagedOutput,
        # Validation
        ValidationReport,
    )
"""
from __future__ import annotations

# =============================================================================
# Enums
# =============================================================================
from .enums import (
    Disposition,
    EntityKind,
    PhaReason,
    ProposalStatus,
    VersionStatus,
)

# =============================================================================
# Input Records
# =============================================================================
from .certificate import (
    HUNDRED,
    Certificate,
    ScheduleRef,
    SplitEntry,
    Tier,
)

# =============================================================================
# Fingerprints, Clusters, Statistics
# =============================================================================
from .fingerprint import (
    EMPTY_DIGEST,
    EMPTY_FINGERPRINT,
    ClusterDecision,
    ClusterSummary,
    Fingerprint,
    GroupStatistics,
    SplitKey,
    TierKey,
)

# =============================================================================
# Synthesized Structures
# =============================================================================
from .structures import (
    OPEN_END,
    OPEN_START,
    CodeFilter,
    CommissionAssignment,
    Hierarchy,
    HierarchyParticipant,
    HierarchyVersion,
    PolicyHierarchyAssignment,
    PolicyHierarchyParticipant,
    PremiumSplitParticipant,
    PremiumSplitVersion,
    Proposal,
    StagedOutput,
)

# =============================================================================
# Validation Reports
# =============================================================================
from .report import (
    SAMPLE_SIZE,
    ChainReport,
    ContentReport,
    ReadinessReport,
    ValidationReport,
)


__all__ = [
    # Enums
    "Disposition",
    "EntityKind",
    "PhaReason",
    "ProposalStatus",
    "VersionStatus",
    # Input
    "HUNDRED",
    "Certificate",
    "ScheduleRef",
    "SplitEntry",
    "Tier",
    # Fingerprints
    "EMPTY_DIGEST",
    "EMPTY_FINGERPRINT",
    "ClusterDecision",
    "ClusterSummary",
    "Fingerprint",
    "GroupStatistics",
    "SplitKey",
    "TierKey",
    # Structures
    "OPEN_END",
    "OPEN_START",
    "CodeFilter",
    "CommissionAssignment",
    "Hierarchy",
    "HierarchyParticipant",
    "HierarchyVersion",
    "PolicyHierarchyAssignment",
    "PolicyHierarchyParticipant",
    "PremiumSplitParticipant",
    "PremiumSplitVersion",
    "Proposal",
    "StagedOutput",
    # Reports
    "SAMPLE_SIZE",
    "ChainReport",
    "ContentReport",
    "ReadinessReport",
    "ValidationReport",
]
