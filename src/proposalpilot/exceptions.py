"""
ProposalPilot Exception Hierarchy

Domain-specific exceptions for commission structure migration.
Every error carries a PP_* code and the employer groups it concerns.

Exception codes follow the pattern: PP_<CATEGORY>_<SPECIFIC>
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ProposalPilotError(Exception):
    """
    Base exception for all ProposalPilot errors.

    Migration work happens one employer group (or batch of groups) at a
    time, so every error can name the groups it concerns. Subclasses that
    carry several groups override `groups`.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (PP_*)
        details: Extra context such as paths, counts or offending ids
        group_id: The single employer group concerned, when there is one
    """
    message: str
    code: str = "PP_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    group_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def groups(self) -> list[str]:
        """Employer groups this error concerns, possibly none."""
        return [self.group_id] if self.group_id else []

    def __str__(self) -> str:
        groups = self.groups
        if not groups:
            return f"[{self.code}] {self.message}"
        label = "group" if len(groups) == 1 else "groups"
        return f"[{self.code}] {self.message} ({label} {', '.join(groups)})"

    def to_dict(self) -> dict[str, Any]:
        """Payload for log lines, run summaries and API error bodies."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.groups:
            payload["groups"] = self.groups
        if self.details:
            payload["details"] = self.details
        return payload


# =============================================================================
# Configuration Errors
# =============================================================================

@dataclass
class ConfigurationError(ProposalPilotError):
    """Migration thresholds are missing or invalid. Fatal before any group runs."""
    code: str = "PP_CONFIGURATION_ERROR"


# =============================================================================
# Engine Errors
# =============================================================================

@dataclass
class HashCollisionError(ProposalPilotError):
    """Two different split structures produced the same digest."""
    code: str = "PP_HASH_COLLISION"


@dataclass
class SynthesisInconsistency(ProposalPilotError):
    """A synthesized proposal does not cover exactly its own members."""
    code: str = "PP_SYNTHESIS_INCONSISTENCY"


@dataclass
class IdentifierAllocationError(ProposalPilotError):
    """Surrogate identifier requested before seeding, or seeded twice."""
    code: str = "PP_IDENTIFIER_ALLOCATION"


@dataclass
class GroupProcessingFailure(ProposalPilotError):
    """Unexpected failure while processing one batch of groups."""
    code: str = "PP_GROUP_PROCESSING_FAILURE"
    group_ids: list[str] = field(default_factory=list)

    @property
    def groups(self) -> list[str]:
        return list(self.group_ids)


# =============================================================================
# Store Errors
# =============================================================================

@dataclass
class StoreError(ProposalPilotError):
    """The external store returned malformed data or rejected a write."""
    code: str = "PP_STORE_ERROR"


# =============================================================================
# Validation Errors
# =============================================================================

@dataclass
class ValidationFailure(ProposalPilotError):
    """Validation found unmatched, overlapping or broken records."""
    code: str = "PP_VALIDATION_FAILURE"
    failed_groups: list[str] = field(default_factory=list)

    @property
    def groups(self) -> list[str]:
        return list(self.failed_groups)
