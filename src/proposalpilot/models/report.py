"""
ProposalPilot Validation Reports

Per-group diagnostics produced by the completeness/ambiguity validator.
Reports are frozen so that two validations of the same staged output can be
compared for equality.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional


SAMPLE_SIZE = 5


@dataclass(frozen=True)
class ChainReport:
    """
    Referential gaps along Proposal -> SplitVersion -> SplitParticipant ->
    Hierarchy -> Version -> Participant -> Schedule.
    """
    proposals_without_split_version: int = 0
    split_versions_without_participants: int = 0
    participants_without_hierarchy: int = 0
    hierarchies_without_version: int = 0
    versions_without_participants: int = 0
    unresolved_schedules: int = 0
    samples: tuple[str, ...] = ()

    @property
    def gap_count(self) -> int:
        return (
            self.proposals_without_split_version
            + self.split_versions_without_participants
            + self.participants_without_hierarchy
            + self.hierarchies_without_version
            + self.versions_without_participants
            + self.unresolved_schedules
        )


@dataclass(frozen=True)
class ContentReport:
    """Source brokers and schedule codes absent from every staged structure."""
    missing_brokers: tuple[str, ...] = ()
    missing_schedules: tuple[str, ...] = ()

    @property
    def issue_count(self) -> int:
        return len(self.missing_brokers) + len(self.missing_schedules)


@dataclass(frozen=True)
class ReadinessReport:
    unapproved_proposals: int = 0
    inactive_versions: int = 0
    split_total_mismatches: int = 0
    samples: tuple[str, ...] = ()

    @property
    def issue_count(self) -> int:
        return self.unapproved_proposals + self.inactive_versions + self.split_total_mismatches


@dataclass(frozen=True)
class ValidationReport:
    """
    Completeness and ambiguity result for one group.

    Attributes:
        group_id: Employer group
        non_pha_count: Certificates owned by neither existing nor staged PHA
        unmatched_count: Non-PHA certificates matching no Proposal
        overlapping_count: Non-PHA certificates matching two or more Proposals
        ownership_conflicts: Certificates listed by both paths, or by two Proposals
        *_samples: A handful of offending certificate ids
        chain / content / readiness: Deep-mode sub-reports (None otherwise)
    """
    group_id: str
    non_pha_count: int
    unmatched_count: int
    overlapping_count: int
    ownership_conflicts: int = 0
    unmatched_samples: tuple[str, ...] = ()
    overlapping_samples: tuple[str, ...] = ()
    ownership_samples: tuple[str, ...] = ()
    chain: Optional[ChainReport] = None
    content: Optional[ContentReport] = None
    readiness: Optional[ReadinessReport] = None

    @property
    def deep(self) -> bool:
        return self.chain is not None

    @property
    def passed(self) -> bool:
        if self.unmatched_count or self.overlapping_count or self.ownership_conflicts:
            return False
        if self.chain is not None and self.chain.gap_count:
            return False
        if self.content is not None and self.content.issue_count:
            return False
        if self.readiness is not None and self.readiness.issue_count:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["passed"] = self.passed
        return result
