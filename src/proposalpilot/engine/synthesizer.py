"""
ProposalPilot Proposal/Hierarchy Synthesizer

Turns templated clusters (or regimes of them) into Proposals with their
Hierarchy and PremiumSplit structures.

Planning works on ProposalDraft objects and needs no identifiers:

1. build_draft: date span (min - 1 day, max] and product/plan filters
2. resolve_conflicts: drafts that could match the same certificate are
   resolved in favour of the larger one; wildcards are narrowed first
   when that alone separates them
3. widen: extend each draft to the group's operative window
4. verify: every member must match its own draft and no other

Materialization then mints identifiers through the IdentifierAllocator and
builds the frozen records.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from ..config import MigrationConfig
from ..exceptions import SynthesisInconsistency
from ..models import (
    OPEN_END,
    OPEN_START,
    Certificate,
    CodeFilter,
    CommissionAssignment,
    EntityKind,
    Fingerprint,
    Hierarchy,
    HierarchyParticipant,
    HierarchyVersion,
    PremiumSplitParticipant,
    PremiumSplitVersion,
    Proposal,
    ProposalStatus,
    ScheduleRef,
    VersionStatus,
)
from .identifiers import IdentifierAllocator
from .matching import filters_overlap, matching_proposals, ranges_overlap


logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


# =============================================================================
# Draft
# =============================================================================

@dataclass
class ProposalDraft:
    """
    A Proposal under construction, before identifiers exist.

    `raw_from` / `raw_to` are the span observed on the members;
    `effective_from` / `effective_to` are what the Proposal will carry.
    """
    group_id: str
    fingerprint: Fingerprint
    members: tuple[Certificate, ...]
    raw_from: date
    raw_to: date
    product_filter: CodeFilter
    plan_filter: CodeFilter
    effective_from: date = field(init=False)
    effective_to: date = field(init=False)

    def __post_init__(self) -> None:
        self.effective_from = self.raw_from
        self.effective_to = self.raw_to

    @property
    def digest(self) -> str:
        return self.fingerprint.digest

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def certificate_ids(self) -> tuple[str, ...]:
        return tuple(sorted(c.certificate_id for c in self.members))

    @property
    def observed_products(self) -> frozenset[str]:
        return frozenset(c.product_code for c in self.members)

    @property
    def observed_plans(self) -> frozenset[str]:
        return frozenset(c.plan_code for c in self.members)

    @property
    def is_wildcard(self) -> bool:
        return self.product_filter.is_wildcard or self.plan_filter.is_wildcard

    def narrowed_filters(self) -> tuple[CodeFilter, CodeFilter]:
        """(product, plan) filters this draft would carry after narrow()."""
        if not self.is_wildcard:
            return self.product_filter, self.plan_filter
        return CodeFilter.exact(self.observed_products), CodeFilter.exact(self.observed_plans)

    def narrow(self) -> None:
        """Replace wildcard filters with the exact observed codes."""
        self.product_filter, self.plan_filter = self.narrowed_filters()

    def clears_when_narrowed(self, others: Sequence[ProposalDraft]) -> bool:
        """True when narrowing this draft and `others` removes every filter overlap."""
        products, plans = self.narrowed_filters()
        for other in others:
            other_products, other_plans = other.narrowed_filters()
            if filters_overlap(products, other_products) and filters_overlap(plans, other_plans):
                return False
        return True

    def raw_conflicts(self, other: ProposalDraft) -> bool:
        return (
            ranges_overlap(self.raw_from, self.raw_to, other.raw_from, other.raw_to)
            and filters_overlap(self.product_filter, other.product_filter)
            and filters_overlap(self.plan_filter, other.plan_filter)
        )

    def describe(self) -> str:
        return (
            f"{self.fingerprint.short} ({self.effective_from}, {self.effective_to}] "
            f"products={self.product_filter.label()} plans={self.plan_filter.label()} "
            f"members={self.size}"
        )


# =============================================================================
# Bundle
# =============================================================================

@dataclass
class ProposalBundle:
    """A materialized Proposal and everything hanging off it."""
    proposal: Proposal
    hierarchies: list[Hierarchy] = field(default_factory=list)
    hierarchy_versions: list[HierarchyVersion] = field(default_factory=list)
    hierarchy_participants: list[HierarchyParticipant] = field(default_factory=list)
    split_version: Optional[PremiumSplitVersion] = None
    split_participants: list[PremiumSplitParticipant] = field(default_factory=list)


# =============================================================================
# Synthesizer
# =============================================================================

class ProposalSynthesizer:
    """
    Plans and materializes Proposals for one group at a time.

    Usage:
        synthesizer = ProposalSynthesizer(config)
        draft = synthesizer.build_draft(group_id, fingerprint, members)
        kept, overlapping = synthesizer.resolve_conflicts(drafts)
        synthesizer.widen(kept)
        kept, inconsistent = synthesizer.verify(kept)
        bundle = synthesizer.materialize(draft, allocator)
    """

    def __init__(self, config: MigrationConfig):
        self.config = config

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def code_filter(self, codes: Iterable[str]) -> CodeFilter:
        """Exact filter for few distinct codes, wildcard from wildcard_min_distinct on."""
        distinct = frozenset(codes)
        if len(distinct) >= self.config.wildcard_min_distinct:
            return CodeFilter.wildcard()
        return CodeFilter.exact(distinct)

    def build_draft(
        self,
        group_id: str,
        fingerprint: Fingerprint,
        members: Sequence[Certificate],
    ) -> ProposalDraft:
        """
        Draft a Proposal for one cluster or regime.

        The span starts the day before the earliest member so that the
        half-open (from, to] range includes it.
        """
        if not members:
            raise ValueError("Cannot draft a proposal without members")
        dates = [c.effective_date for c in members]
        ordered = tuple(sorted(members, key=lambda c: (c.effective_date, c.certificate_id)))
        return ProposalDraft(
            group_id=group_id,
            fingerprint=fingerprint,
            members=ordered,
            raw_from=min(dates) - ONE_DAY,
            raw_to=max(dates),
            product_filter=self.code_filter(c.product_code for c in members),
            plan_filter=self.code_filter(c.plan_code for c in members),
        )

    def resolve_conflicts(
        self, drafts: Sequence[ProposalDraft]
    ) -> tuple[list[ProposalDraft], list[ProposalDraft]]:
        """
        Keep a set of drafts no certificate can match twice.

        Larger drafts win (ties: earlier start, then digest). When a draft
        conflicts with kept ones, wildcard filters on both sides are narrowed
        to their observed codes, but only when that clears every clash;
        otherwise the draft is demoted and the kept drafts stay as they were.

        Returns:
            (kept, demoted)
        """
        ordered = sorted(drafts, key=lambda d: (-d.size, d.raw_from, d.digest))
        kept: list[ProposalDraft] = []
        demoted: list[ProposalDraft] = []
        for draft in ordered:
            clashes = [k for k in kept if draft.raw_conflicts(k)]
            if clashes and draft.clears_when_narrowed(clashes):
                for other in clashes:
                    other.narrow()
                draft.narrow()
                clashes = []
            if clashes:
                logger.debug(
                    "Draft %s overlaps %s; demoted",
                    draft.describe(), clashes[0].describe(),
                    extra={"group_id": draft.group_id},
                )
                demoted.append(draft)
            else:
                kept.append(draft)
        return kept, demoted

    def widen(self, drafts: Sequence[ProposalDraft]) -> None:
        """
        Extend drafts to the group's operative window.

        A draft starts at OPEN_START unless an earlier draft shares a
        product/plan with it, and ends at OPEN_END unless a later one does,
        in which case it ends where the nearest later draft starts.
        Expects conflict-free drafts.
        """
        if not self.config.widen_date_ranges:
            for draft in drafts:
                draft.effective_from = draft.raw_from
                draft.effective_to = draft.raw_to
            return

        for draft in drafts:
            related = [
                other for other in drafts
                if other is not draft
                and filters_overlap(draft.product_filter, other.product_filter)
                and filters_overlap(draft.plan_filter, other.plan_filter)
            ]
            earlier = [o for o in related if o.raw_from < draft.raw_from]
            later = [o for o in related if o.raw_from > draft.raw_from]
            draft.effective_from = draft.raw_from if earlier else OPEN_START
            draft.effective_to = min(o.raw_from for o in later) if later else OPEN_END

    def check(self, draft: ProposalDraft, drafts: Sequence[ProposalDraft]) -> Optional[SynthesisInconsistency]:
        """Self-verification of one draft against its group's drafts."""
        for cert in draft.members:
            matches = matching_proposals(cert, drafts)
            if len(matches) == 1 and matches[0] is draft:
                continue
            return SynthesisInconsistency(
                message=(
                    f"Certificate {cert.certificate_id} matches {len(matches)} proposals "
                    f"instead of its own"
                ),
                details={
                    "certificate_id": cert.certificate_id,
                    "effective_date": cert.effective_date.isoformat(),
                    "product_code": cert.product_code,
                    "plan_code": cert.plan_code,
                    "draft": draft.describe(),
                    "matches": [m.describe() for m in matches],
                },
                group_id=draft.group_id,
            )
        return None

    def verify(
        self, drafts: Sequence[ProposalDraft]
    ) -> tuple[list[ProposalDraft], list[tuple[ProposalDraft, SynthesisInconsistency]]]:
        """
        Drop drafts whose members do not match exactly their own draft.

        Repeats until the remaining set verifies; dropping a draft can only
        remove matches for the others.

        Returns:
            (verified, [(demoted draft, inconsistency), ...])
        """
        remaining = list(drafts)
        failed: list[tuple[ProposalDraft, SynthesisInconsistency]] = []
        while True:
            round_failures = []
            for draft in remaining:
                problem = self.check(draft, remaining)
                if problem is not None:
                    round_failures.append((draft, problem))
            if not round_failures:
                return remaining, failed
            for draft, problem in round_failures:
                logger.warning(
                    "Synthesis inconsistency, routing cluster to PHA: %s",
                    problem,
                    extra={"group_id": draft.group_id},
                )
                remaining.remove(draft)
                failed.append((draft, problem))

    # -------------------------------------------------------------------------
    # Materialization
    # -------------------------------------------------------------------------

    def materialize(self, draft: ProposalDraft, allocator: IdentifierAllocator) -> ProposalBundle:
        """Mint identifiers and build the records for one verified draft."""
        fingerprint = draft.fingerprint
        template = draft.members[0].ordered_splits
        writing_broker = fingerprint.splits[0].writing_broker_id if fingerprint.splits else None

        proposal = Proposal(
            id=allocator.next(EntityKind.PROPOSAL),
            group_id=draft.group_id,
            effective_from=draft.effective_from,
            effective_to=draft.effective_to,
            product_filter=draft.product_filter,
            plan_filter=draft.plan_filter,
            fingerprint_digest=fingerprint.digest,
            certificate_ids=draft.certificate_ids,
            status=ProposalStatus.APPROVED,
            writing_broker_id=writing_broker,
        )
        bundle = ProposalBundle(proposal=proposal)

        split_version = PremiumSplitVersion(
            id=allocator.next(EntityKind.PREMIUM_SPLIT_VERSION),
            proposal_id=proposal.id,
            group_id=draft.group_id,
            total_percent=fingerprint.total_percent,
            effective_from=proposal.effective_from,
            effective_to=proposal.effective_to,
            status=VersionStatus.ACTIVE,
        )
        bundle.split_version = split_version

        for index, split in enumerate(fingerprint.splits, start=1):
            hierarchy = Hierarchy(
                id=allocator.next(EntityKind.HIERARCHY),
                group_id=draft.group_id,
                proposal_id=proposal.id,
                split_sequence=index,
                writing_broker_id=split.writing_broker_id,
                name=f"{draft.group_id}-{split.writing_broker_id or 'NONE'}-{fingerprint.short}-{index}",
            )
            version = HierarchyVersion(
                id=allocator.next(EntityKind.HIERARCHY_VERSION),
                hierarchy_id=hierarchy.id,
                effective_from=proposal.effective_from,
                effective_to=proposal.effective_to,
            )
            bundle.hierarchies.append(hierarchy)
            bundle.hierarchy_versions.append(version)

            source_tiers = template[index - 1].tiers if index - 1 < len(template) else ()
            for level, tier in enumerate(split.tiers, start=1):
                ref = ScheduleRef.parse(tier.schedule)
                name = source_tiers[level - 1].broker_name if level - 1 < len(source_tiers) else None
                bundle.hierarchy_participants.append(
                    HierarchyParticipant(
                        id=allocator.next(EntityKind.HIERARCHY_PARTICIPANT),
                        version_id=version.id,
                        level=level,
                        broker_id=tier.broker_id,
                        schedule_code=ref.code,
                        commission_rate=ref.rate,
                        broker_name=name,
                    )
                )

            bundle.split_participants.append(
                PremiumSplitParticipant(
                    id=allocator.next(EntityKind.PREMIUM_SPLIT_PARTICIPANT),
                    version_id=split_version.id,
                    sequence=index,
                    broker_id=split.writing_broker_id,
                    split_percent=split.percent,
                    hierarchy_id=hierarchy.id,
                )
            )
        return bundle


# =============================================================================
# Commission Assignments
# =============================================================================

def latest_assignments(certificates: Iterable[Certificate]) -> list[tuple[str, str, date]]:
    """
    Broker-level commission reassignments seen on certificates.

    For each split broker whose commission is paid to a different broker,
    the most recent (by certificate effective date) recipient wins.

    Returns:
        Sorted [(source_broker_id, recipient_broker_id, effective_from), ...]
    """
    latest: dict[str, tuple[date, str]] = {}
    for cert in certificates:
        for split in cert.splits:
            for tier in split.tiers:
                if not tier.is_assigned:
                    continue
                current = latest.get(tier.broker_id)
                candidate = (cert.effective_date, tier.paid_broker_id)
                if current is None or candidate > current:
                    latest[tier.broker_id] = candidate
    return sorted((source, recipient, when) for source, (when, recipient) in latest.items())


def build_commission_assignments(
    group_id: str,
    certificates: Iterable[Certificate],
    allocator: IdentifierAllocator,
) -> list[CommissionAssignment]:
    return [
        CommissionAssignment(
            id=allocator.next(EntityKind.COMMISSION_ASSIGNMENT),
            group_id=group_id,
            source_broker_id=source,
            recipient_broker_id=recipient,
            effective_from=when,
        )
        for source, recipient, when in latest_assignments(certificates)
    ]

