"""
ProposalPilot Synthesized Structures

The records the engine produces for the commission-administration model:

- Proposal: a shared commission template (date range + product/plan filter)
- Hierarchy / HierarchyVersion / HierarchyParticipant: tiered broker/schedule
  structure backing one split of a Proposal
- PremiumSplitVersion / PremiumSplitParticipant: the percent view of the
  same structure
- PolicyHierarchyAssignment / PolicyHierarchyParticipant: per-certificate
  fallback when no shared template applies
- CommissionAssignment: broker-level reassignment of commission

StagedOutput collects all of the above for a set of groups.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from .enums import EntityKind, PhaReason, ProposalStatus, VersionStatus


OPEN_START = date(1901, 1, 1)
OPEN_END = date(2099, 1, 1)


# =============================================================================
# Filters
# =============================================================================

@dataclass(frozen=True)
class CodeFilter:
    """
    Product or plan filter on a Proposal.

    `codes is None` is the wildcard: any value matches.
    """
    codes: Optional[frozenset[str]] = None

    @classmethod
    def exact(cls, codes: Iterable[str]) -> CodeFilter:
        return cls(codes=frozenset(codes))

    @classmethod
    def wildcard(cls) -> CodeFilter:
        return cls(codes=None)

    @property
    def is_wildcard(self) -> bool:
        return self.codes is None

    def label(self) -> str:
        if self.codes is None:
            return "*"
        return ",".join(sorted(self.codes))

    def to_list(self) -> Optional[list[str]]:
        return None if self.codes is None else sorted(self.codes)


# =============================================================================
# Proposal
# =============================================================================

@dataclass(frozen=True)
class Proposal:
    """
    A synthesized commission template.

    A certificate matches when it belongs to `group_id`, its effective date
    lies in the half-open range (effective_from, effective_to], and both
    filters accept its product and plan codes.
    """
    id: int
    group_id: str
    effective_from: date
    effective_to: date
    product_filter: CodeFilter
    plan_filter: CodeFilter
    fingerprint_digest: str
    certificate_ids: tuple[str, ...]
    status: ProposalStatus = ProposalStatus.APPROVED
    writing_broker_id: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.certificate_ids)

    @property
    def label(self) -> str:
        return (
            f"P{self.id} {self.group_id} ({self.effective_from}, {self.effective_to}] "
            f"products={self.product_filter.label()} plans={self.plan_filter.label()}"
        )


# =============================================================================
# Hierarchy
# =============================================================================

@dataclass(frozen=True)
class Hierarchy:
    """One hierarchy per (Proposal, split)."""
    id: int
    group_id: str
    proposal_id: int
    split_sequence: int
    writing_broker_id: Optional[str]
    name: str


@dataclass(frozen=True)
class HierarchyVersion:
    id: int
    hierarchy_id: int
    effective_from: date
    effective_to: date
    version_number: int = 1
    status: VersionStatus = VersionStatus.ACTIVE


@dataclass(frozen=True)
class HierarchyParticipant:
    """
    A tier of a hierarchy version.

    Exactly one of schedule_code / commission_rate is set when the source
    tier carried a schedule; both are None when it did not.
    """
    id: int
    version_id: int
    level: int
    broker_id: str
    schedule_code: Optional[str] = None
    commission_rate: Optional[Decimal] = None
    broker_name: Optional[str] = None


# =============================================================================
# Premium Split
# =============================================================================

@dataclass(frozen=True)
class PremiumSplitVersion:
    id: int
    proposal_id: int
    group_id: str
    total_percent: Decimal
    effective_from: date
    effective_to: date
    status: VersionStatus = VersionStatus.ACTIVE


@dataclass(frozen=True)
class PremiumSplitParticipant:
    id: int
    version_id: int
    sequence: int
    broker_id: Optional[str]
    split_percent: Decimal
    hierarchy_id: int


# =============================================================================
# Policy Hierarchy Assignment
# =============================================================================

@dataclass(frozen=True)
class PolicyHierarchyAssignment:
    """
    Per-certificate, per-split fallback record.

    A certificate without splits gets a single record with split_sequence 0
    and no writing broker.
    """
    id: int
    certificate_id: str
    group_id: str
    split_sequence: int
    split_percent: Decimal
    writing_broker_id: Optional[str]
    reason: PhaReason
    non_conforming: bool = True


@dataclass(frozen=True)
class PolicyHierarchyParticipant:
    id: int
    assignment_id: int
    level: int
    broker_id: str
    schedule_code: Optional[str] = None
    commission_rate: Optional[Decimal] = None


# =============================================================================
# Commission Assignment
# =============================================================================

@dataclass(frozen=True)
class CommissionAssignment:
    """Commission earned by source_broker_id is paid to recipient_broker_id."""
    id: int
    group_id: str
    source_broker_id: str
    recipient_broker_id: str
    effective_from: date


# =============================================================================
# Staged Output
# =============================================================================

@dataclass
class StagedOutput:
    """
    Every record produced for a set of groups.

    `group_ids` lists the groups the output covers, including groups that
    produced no records, so that a writer can replace their prior staging.
    `status_filters` records, per group, the certificate statuses the group
    was classified under; a group without an entry was classified over
    every status.
    """
    group_ids: list[str] = field(default_factory=list)
    proposals: list[Proposal] = field(default_factory=list)
    hierarchies: list[Hierarchy] = field(default_factory=list)
    hierarchy_versions: list[HierarchyVersion] = field(default_factory=list)
    hierarchy_participants: list[HierarchyParticipant] = field(default_factory=list)
    split_versions: list[PremiumSplitVersion] = field(default_factory=list)
    split_participants: list[PremiumSplitParticipant] = field(default_factory=list)
    pha_records: list[PolicyHierarchyAssignment] = field(default_factory=list)
    pha_participants: list[PolicyHierarchyParticipant] = field(default_factory=list)
    commission_assignments: list[CommissionAssignment] = field(default_factory=list)
    status_filters: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def extend(self, other: StagedOutput) -> None:
        for group_id in other.group_ids:
            if group_id not in self.group_ids:
                self.group_ids.append(group_id)
        self.proposals.extend(other.proposals)
        self.hierarchies.extend(other.hierarchies)
        self.hierarchy_versions.extend(other.hierarchy_versions)
        self.hierarchy_participants.extend(other.hierarchy_participants)
        self.split_versions.extend(other.split_versions)
        self.split_participants.extend(other.split_participants)
        self.pha_records.extend(other.pha_records)
        self.pha_participants.extend(other.pha_participants)
        self.commission_assignments.extend(other.commission_assignments)
        self.status_filters.update(other.status_filters)

    def for_group(self, group_id: str) -> StagedOutput:
        """The subset of this output that belongs to one group."""
        proposals = [p for p in self.proposals if p.group_id == group_id]
        proposal_ids = {p.id for p in proposals}
        hierarchies = [h for h in self.hierarchies if h.proposal_id in proposal_ids]
        hierarchy_ids = {h.id for h in hierarchies}
        versions = [v for v in self.hierarchy_versions if v.hierarchy_id in hierarchy_ids]
        version_ids = {v.id for v in versions}
        split_versions = [v for v in self.split_versions if v.proposal_id in proposal_ids]
        split_version_ids = {v.id for v in split_versions}
        pha = [r for r in self.pha_records if r.group_id == group_id]
        pha_ids = {r.id for r in pha}
        return StagedOutput(
            group_ids=[group_id] if group_id in self.group_ids else [],
            proposals=proposals,
            hierarchies=hierarchies,
            hierarchy_versions=versions,
            hierarchy_participants=[
                p for p in self.hierarchy_participants if p.version_id in version_ids
            ],
            split_versions=split_versions,
            split_participants=[
                p for p in self.split_participants if p.version_id in split_version_ids
            ],
            pha_records=pha,
            pha_participants=[p for p in self.pha_participants if p.assignment_id in pha_ids],
            commission_assignments=[
                a for a in self.commission_assignments if a.group_id == group_id
            ],
            status_filters={
                g: s for g, s in self.status_filters.items() if g == group_id
            },
        )

    def without_groups(self, group_ids: Iterable[str]) -> StagedOutput:
        """A copy of this output with every record of `group_ids` removed."""
        dropped = set(group_ids)
        result = StagedOutput()
        for group_id in self.group_ids:
            if group_id not in dropped:
                result.extend(self.for_group(group_id))
        return result

    def identifiers(self, kind: EntityKind) -> list[int]:
        """Identifiers of every record of `kind`."""
        records = {
            EntityKind.PROPOSAL: self.proposals,
            EntityKind.PREMIUM_SPLIT_VERSION: self.split_versions,
            EntityKind.PREMIUM_SPLIT_PARTICIPANT: self.split_participants,
            EntityKind.HIERARCHY: self.hierarchies,
            EntityKind.HIERARCHY_VERSION: self.hierarchy_versions,
            EntityKind.HIERARCHY_PARTICIPANT: self.hierarchy_participants,
            EntityKind.POLICY_HIERARCHY_ASSIGNMENT: self.pha_records,
            EntityKind.POLICY_HIERARCHY_PARTICIPANT: self.pha_participants,
            EntityKind.COMMISSION_ASSIGNMENT: self.commission_assignments,
        }[kind]
        return [r.id for r in records]

    @property
    def pha_certificate_ids(self) -> set[str]:
        return {r.certificate_id for r in self.pha_records}

    @property
    def templated_certificate_ids(self) -> set[str]:
        return {cid for p in self.proposals for cid in p.certificate_ids}

    def summary(self) -> dict[str, int]:
        return {
            "groups": len(self.group_ids),
            "proposals": len(self.proposals),
            "hierarchies": len(self.hierarchies),
            "hierarchy_participants": len(self.hierarchy_participants),
            "split_versions": len(self.split_versions),
            "pha_records": len(self.pha_records),
            "pha_certificates": len(self.pha_certificate_ids),
            "commission_assignments": len(self.commission_assignments),
        }
