"""
ProposalPilot Pipeline

Per-group orchestration and the batch runner.

    plan_group          pure planning, no identifiers
    materialize_plan    mints identifiers, builds records
    classify_and_synthesize = plan_group + materialize_plan

MigrationRunner processes the group list in batches: planning for a batch
runs in a thread pool, materialization runs sequentially in group order
through the single IdentifierAllocator so identifiers are deterministic.
A failing batch is logged and skipped; later batches still run.
"""
from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, AbstractSet, Any, Iterable, Optional, Sequence

from ..config import MigrationConfig
from ..exceptions import GroupProcessingFailure, SynthesisInconsistency
from ..models import (
    Certificate,
    ClusterDecision,
    EntityKind,
    GroupStatistics,
    PhaReason,
    PolicyHierarchyAssignment,
    PolicyHierarchyParticipant,
    ScheduleRef,
    StagedOutput,
)
from .classifier import ClusterClassifier
from .fingerprint import FingerprintRegistry, fingerprint_group
from .identifiers import IdentifierAllocator
from .nonconformant import identify_non_conformant
from .regimes import route_outliers, segment_regimes
from .statistics import compute_group_statistics
from .synthesizer import ProposalDraft, ProposalSynthesizer, build_commission_assignments

if TYPE_CHECKING:
    from ..store.interfaces import MigrationStore


logger = logging.getLogger(__name__)


# =============================================================================
# Plan / Result
# =============================================================================

@dataclass
class GroupPlan:
    """
    Everything decided for one group before identifiers are minted.

    Attributes:
        certificates: certificate_id -> Certificate for the whole group
        existing_pha: Certificates already covered by pre-existing PHA
        statistics: Statistics of the classified pool
        decisions: digest -> ClusterDecision
        drafts: Verified Proposal drafts
        pha_routes: certificate_id -> reason for new PHA records
        inconsistencies: Self-verification failures (recovered)
    """
    group_id: str
    certificates: dict[str, Certificate]
    existing_pha: frozenset[str]
    statistics: GroupStatistics
    decisions: dict[str, ClusterDecision] = field(default_factory=dict)
    drafts: list[ProposalDraft] = field(default_factory=list)
    pha_routes: dict[str, PhaReason] = field(default_factory=dict)
    inconsistencies: list[SynthesisInconsistency] = field(default_factory=list)

    def route(self, certificate_ids: Iterable[str], reason: PhaReason) -> None:
        for cid in certificate_ids:
            self.pha_routes[cid] = reason


@dataclass
class GroupResult:
    """Records produced for one group plus its diagnostics."""
    group_id: str
    statistics: GroupStatistics
    decisions: dict[str, ClusterDecision]
    output: StagedOutput
    existing_pha: frozenset[str] = frozenset()
    inconsistencies: list[SynthesisInconsistency] = field(default_factory=list)

    @property
    def proposals(self):
        return self.output.proposals

    @property
    def hierarchies(self):
        return self.output.hierarchies

    @property
    def pha_records(self):
        return self.output.pha_records

    def reason_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        seen: set[str] = set()
        for record in self.output.pha_records:
            if record.certificate_id in seen:
                continue
            seen.add(record.certificate_id)
            counts[record.reason.value] = counts.get(record.reason.value, 0) + 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "statistics": self.statistics.to_dict(),
            "proposals": len(self.output.proposals),
            "templated_certificates": len(self.output.templated_certificate_ids),
            "pha_certificates": len(self.output.pha_certificate_ids),
            "existing_pha": len(self.existing_pha),
            "pha_reasons": self.reason_counts(),
            "inconsistencies": [e.to_dict() for e in self.inconsistencies],
        }


# =============================================================================
# Planning
# =============================================================================

def plan_group(
    group_id: str,
    certificates: Iterable[Certificate],
    config: MigrationConfig,
    existing_pha: AbstractSet[str] = frozenset(),
    registry: Optional[FingerprintRegistry] = None,
) -> GroupPlan:
    """
    Decide, for every certificate of a group, Proposal or PHA.

    Certificates belonging to other groups are ignored.
    """
    certs = [c for c in certificates if c.group_id == group_id]
    by_id = {c.certificate_id: c for c in certs}
    group_total = len(by_id)

    exclusions = identify_non_conformant(group_id, by_id.values(), existing_pha)
    fingerprints = fingerprint_group(exclusions.pool, registry)
    stats = compute_group_statistics(group_id, fingerprints, config.log_entropy_by_group)

    plan = GroupPlan(
        group_id=group_id,
        certificates=by_id,
        existing_pha=exclusions.existing,
        statistics=stats,
    )
    plan.pha_routes.update(exclusions.routed)

    classifier = ClusterClassifier(config)
    synthesizer = ProposalSynthesizer(config)
    plan.decisions = classifier.classify(stats, exclusions.existing)

    drafts: list[ProposalDraft] = []
    for digest, decision in plan.decisions.items():
        cluster = stats.clusters[digest]
        if not decision.is_templated:
            plan.route(cluster.certificate_ids, decision.reason)
            continue
        members = [by_id[cid] for cid in cluster.certificate_ids]
        for regime in segment_regimes(members, config.regime_gap_tolerance):
            reason = classifier.size_reason(len(regime), stats)
            if reason is not None:
                plan.route((c.certificate_id for c in regime), reason)
            else:
                drafts.append(synthesizer.build_draft(group_id, cluster.fingerprint, regime))

    drafts, overlapping = synthesizer.resolve_conflicts(drafts)
    for draft in overlapping:
        plan.route(draft.certificate_ids, PhaReason.OVERLAPPING_PROPOSALS)

    drafts, outliers = route_outliers(
        drafts, [d.size for d in drafts], group_total, config.outlier_minority_fraction
    )
    for draft in outliers:
        logger.debug(
            "Group %s: proposal %s below minority floor", group_id, draft.describe(),
            extra={"group_id": group_id},
        )
        plan.route(draft.certificate_ids, PhaReason.BELOW_MINORITY_FLOOR)

    synthesizer.widen(drafts)
    drafts, failed = synthesizer.verify(drafts)
    for draft, problem in failed:
        plan.route(draft.certificate_ids, PhaReason.SYNTHESIS_INCONSISTENCY)
        plan.inconsistencies.append(problem)

    plan.drafts = sorted(drafts, key=lambda d: (d.raw_from, d.digest))
    return plan


# =============================================================================
# Materialization
# =============================================================================

def build_pha_records(
    certificate: Certificate,
    reason: PhaReason,
    allocator: IdentifierAllocator,
) -> tuple[list[PolicyHierarchyAssignment], list[PolicyHierarchyParticipant]]:
    """
    PHA records for one certificate: one per split, carrying its tiers.

    A certificate without splits gets a single record with sequence 0.
    """
    records: list[PolicyHierarchyAssignment] = []
    participants: list[PolicyHierarchyParticipant] = []
    splits = certificate.ordered_splits
    if not splits:
        records.append(
            PolicyHierarchyAssignment(
                id=allocator.next(EntityKind.POLICY_HIERARCHY_ASSIGNMENT),
                certificate_id=certificate.certificate_id,
                group_id=certificate.group_id,
                split_sequence=0,
                split_percent=Decimal("0"),
                writing_broker_id=None,
                reason=reason,
            )
        )
        return records, participants

    for split in splits:
        record = PolicyHierarchyAssignment(
            id=allocator.next(EntityKind.POLICY_HIERARCHY_ASSIGNMENT),
            certificate_id=certificate.certificate_id,
            group_id=certificate.group_id,
            split_sequence=split.sequence,
            split_percent=split.percent,
            writing_broker_id=split.writing_broker_id,
            reason=reason,
        )
        records.append(record)
        for level, tier in enumerate(split.tiers, start=1):
            ref = ScheduleRef.parse(tier.schedule)
            participants.append(
                PolicyHierarchyParticipant(
                    id=allocator.next(EntityKind.POLICY_HIERARCHY_PARTICIPANT),
                    assignment_id=record.id,
                    level=level,
                    broker_id=tier.broker_id,
                    schedule_code=ref.code,
                    commission_rate=ref.rate,
                )
            )
    return records, participants


def materialize_plan(plan: GroupPlan, allocator: IdentifierAllocator, config: MigrationConfig) -> GroupResult:
    """Mint identifiers for a plan and build its staged records."""
    synthesizer = ProposalSynthesizer(config)
    output = StagedOutput(group_ids=[plan.group_id])

    templated = []
    for draft in plan.drafts:
        bundle = synthesizer.materialize(draft, allocator)
        output.proposals.append(bundle.proposal)
        output.hierarchies.extend(bundle.hierarchies)
        output.hierarchy_versions.extend(bundle.hierarchy_versions)
        output.hierarchy_participants.extend(bundle.hierarchy_participants)
        if bundle.split_version is not None:
            output.split_versions.append(bundle.split_version)
        output.split_participants.extend(bundle.split_participants)
        templated.extend(draft.members)

    for certificate_id in sorted(plan.pha_routes):
        records, participants = build_pha_records(
            plan.certificates[certificate_id], plan.pha_routes[certificate_id], allocator
        )
        output.pha_records.extend(records)
        output.pha_participants.extend(participants)

    output.commission_assignments.extend(
        build_commission_assignments(plan.group_id, templated, allocator)
    )

    return GroupResult(
        group_id=plan.group_id,
        statistics=plan.statistics,
        decisions=plan.decisions,
        output=output,
        existing_pha=plan.existing_pha,
        inconsistencies=list(plan.inconsistencies),
    )


def classify_and_synthesize(
    group_id: str,
    certificates: Iterable[Certificate],
    config: MigrationConfig,
    allocator: IdentifierAllocator,
    existing_pha: AbstractSet[str] = frozenset(),
    registry: Optional[FingerprintRegistry] = None,
) -> GroupResult:
    """
    Classify one group's certificates and synthesize its structures.

    Args:
        group_id: Employer group
        certificates: The group's certificates
        config: Migration thresholds
        allocator: A seeded IdentifierAllocator
        existing_pha: Certificates already holding PHA records
        registry: Optional run-wide fingerprint collision registry

    Returns:
        GroupResult with proposals, hierarchies and PHA records
    """
    plan = plan_group(group_id, certificates, config, existing_pha, registry)
    result = materialize_plan(plan, allocator, config)
    logger.info(
        "Group %s: %d proposals, %d templated, %d to PHA, %d existing PHA",
        group_id,
        len(result.output.proposals),
        len(result.output.templated_certificate_ids),
        len(result.output.pha_certificate_ids),
        len(result.existing_pha),
        extra={"group_id": group_id},
    )
    return result


# =============================================================================
# Runner
# =============================================================================

@dataclass
class RunSummary:
    """Outcome of a MigrationRunner.run call."""
    run_id: str
    processed_groups: list[str] = field(default_factory=list)
    failures: list[GroupProcessingFailure] = field(default_factory=list)
    results: dict[str, GroupResult] = field(default_factory=dict)
    output: StagedOutput = field(default_factory=StagedOutput)
    identifiers_minted: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def failed_groups(self) -> list[str]:
        return [g for f in self.failures for g in f.group_ids]

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "processed_groups": len(self.processed_groups),
            "failed_groups": self.failed_groups,
            "failures": [f.to_dict() for f in self.failures],
            "output": self.output.summary(),
            "identifiers_minted": self.identifiers_minted,
            "duration_ms": self.duration_ms,
        }


class MigrationRunner:
    """
    Batch runner over a store.

    Usage:
        runner = MigrationRunner(store, config)
        summary = runner.run(offset=0, limit=500)
    """

    def __init__(
        self,
        store: MigrationStore,
        config: MigrationConfig,
        allocator: Optional[IdentifierAllocator] = None,
        registry: Optional[FingerprintRegistry] = None,
    ):
        self.store = store
        self.config = config
        self.allocator = allocator or IdentifierAllocator()
        self.registry = registry or FingerprintRegistry()

    def select_groups(
        self,
        groups: Optional[Sequence[str]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[str]:
        if groups is None:
            groups = self.store.list_group_ids(self.config.certificate_statuses)
        selected = sorted(set(groups))[offset:]
        if limit is not None:
            selected = selected[:limit]
        return selected

    def batches(self, groups: Sequence[str]) -> list[list[str]]:
        size = self.config.batch_size
        return [list(groups[i:i + size]) for i in range(0, len(groups), size)]

    def _plan(self, group_id: str, certificates: list[Certificate]) -> GroupPlan:
        existing = self.store.load_existing_pha(group_id)
        return plan_group(group_id, certificates, self.config, existing, self.registry)

    def run_batch(self, batch_number: int, groups: Sequence[str], run_id: str) -> list[GroupResult]:
        """Plan in parallel, materialize in order, write staged output."""
        loaded = self.store.load_certificates(groups, self.config.certificate_statuses)
        by_group: dict[str, list[Certificate]] = {g: [] for g in groups}
        for cert in loaded:
            if cert.group_id in by_group:
                by_group[cert.group_id].append(cert)

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            plans = list(pool.map(lambda g: self._plan(g, by_group[g]), groups))

        results = [materialize_plan(plan, self.allocator, self.config) for plan in plans]
        statuses = tuple(self.config.certificate_statuses)
        batch_output = StagedOutput()
        for result in results:
            result.output.status_filters[result.group_id] = statuses
            batch_output.extend(result.output)
        self.store.write_staged_output(batch_output)

        logger.info(
            "Batch %d: %d groups, %d proposals, %d PHA certificates",
            batch_number, len(groups), len(batch_output.proposals),
            len(batch_output.pha_certificate_ids),
            extra={"batch": batch_number, "run_id": run_id},
        )
        return results

    def run(
        self,
        groups: Optional[Sequence[str]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> RunSummary:
        """
        Process the selected groups.

        Seeds the allocator from the store on first use. A batch that raises
        is recorded as a GroupProcessingFailure and left out of
        processed_groups.
        """
        started = time.monotonic()
        summary = RunSummary(run_id=uuid.uuid4().hex[:12])
        if not self.allocator.is_seeded:
            self.allocator.seed_from(self.store)

        selected = self.select_groups(groups, offset, limit)
        logger.info(
            "Run %s: %d groups in batches of %d",
            summary.run_id, len(selected), self.config.batch_size,
            extra={"run_id": summary.run_id},
        )

        for number, batch in enumerate(self.batches(selected), start=1):
            try:
                results = self.run_batch(number, batch, summary.run_id)
            except Exception as exc:
                logger.exception(
                    "Batch %d failed for groups %s", number, ", ".join(batch),
                    extra={"batch": number, "run_id": summary.run_id, "groups": list(batch)},
                )
                summary.failures.append(
                    GroupProcessingFailure(
                        message=f"Batch {number} failed: {exc}",
                        details={"batch": number, "error_type": type(exc).__name__},
                        group_ids=list(batch),
                    )
                )
                continue
            for result in results:
                summary.results[result.group_id] = result
                summary.output.extend(result.output)
            summary.processed_groups.extend(batch)

        summary.identifiers_minted = self.allocator.minted()
        summary.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Run %s finished: %d processed, %d failed",
            summary.run_id, len(summary.processed_groups), len(summary.failed_groups),
            extra={"run_id": summary.run_id, "duration_ms": summary.duration_ms},
        )
        return summary
