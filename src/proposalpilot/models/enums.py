"""
ProposalPilot Enumerations

All enumeration types used throughout the ProposalPilot system.
Organized by domain area for clarity.

All enums inherit from (str, Enum) for JSON serialization compatibility.
"""
from __future__ import annotations

from enum import Enum


# =============================================================================
# Classification
# =============================================================================

class Disposition(str, Enum):
    """What the classifier decided for one fingerprint cluster."""
    TEMPLATED = "templated"            # Shared Proposal + Hierarchy
    INDIVIDUALIZED = "individualized"  # Per-certificate PHA records


class PhaReason(str, Enum):
    """
    Why a certificate was routed to a Policy Hierarchy Assignment.

    Values are the human-readable reasons stored on the PHA record.
    """
    HIGH_ENTROPY = "high entropy"
    LOW_DOMINANT_COVERAGE = "low dominant coverage"
    BELOW_CLUSTER_THRESHOLD = "below cluster threshold"
    BELOW_MINORITY_FLOOR = "below minority floor"
    OVERLAPPING_PROPOSALS = "overlapping proposals"
    SYNTHESIS_INCONSISTENCY = "synthesis inconsistency"
    EMPTY_SPLITS = "empty split configuration"
    SPLIT_PERCENT_MISMATCH = "split percent mismatch"
    INVALID_GROUP = "invalid group"
    EXISTING_PHA = "existing PHA"


# =============================================================================
# Surrogate Keys
# =============================================================================

class EntityKind(str, Enum):
    """Entity kinds that receive surrogate identifiers."""
    PROPOSAL = "proposal"
    PREMIUM_SPLIT_VERSION = "premium_split_version"
    PREMIUM_SPLIT_PARTICIPANT = "premium_split_participant"
    HIERARCHY = "hierarchy"
    HIERARCHY_VERSION = "hierarchy_version"
    HIERARCHY_PARTICIPANT = "hierarchy_participant"
    POLICY_HIERARCHY_ASSIGNMENT = "policy_hierarchy_assignment"
    POLICY_HIERARCHY_PARTICIPANT = "policy_hierarchy_participant"
    COMMISSION_ASSIGNMENT = "commission_assignment"


# =============================================================================
# Record Status
# =============================================================================

class ProposalStatus(str, Enum):
    """Lifecycle status of a synthesized proposal."""
    PENDING = "pending"
    APPROVED = "approved"
    SUPERSEDED = "superseded"


class VersionStatus(str, Enum):
    """Status of hierarchy and premium split versions."""
    DRAFT = "draft"
    ACTIVE = "active"
