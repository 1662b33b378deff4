"""
ProposalPilot Completeness/Ambiguity Validator

Re-derives coverage from the store, never from synthesizer state:

1. Non-PHA certificates: neither in pre-existing nor in staged PHA records
2. Each is matched against the group's staged Proposals by the store
   (half-open date range, exact-or-wildcard product/plan filters)
3. unmatched = no match, overlapping = two or more matches
4. ownership conflicts: a certificate listed by a Proposal and also by a PHA
   record (staged or pre-existing), or listed by two Proposals

Deep mode adds the chain, content and readiness checks.

Any nonzero count fails the group. `raise_for_failures` turns failed reports
into a single ValidationFailure after every group has been validated.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Optional, Protocol, Sequence

from ..exceptions import ValidationFailure
from ..models import (
    HUNDRED,
    SAMPLE_SIZE,
    Certificate,
    ChainReport,
    ContentReport,
    ProposalStatus,
    ReadinessReport,
    StagedOutput,
    ValidationReport,
    VersionStatus,
)
from ..store.interfaces import (
    CertificateSource,
    PhaRegistry,
    StagedOutputReader,
)


logger = logging.getLogger(__name__)


class ValidatorStore(CertificateSource, PhaRegistry, StagedOutputReader, Protocol):
    """What the validator reads."""


class CompletenessValidator:
    """
    Validates staged output against the store.

    Usage:
        validator = CompletenessValidator(store, statuses=config.certificate_statuses)
        reports = validator.validate(groups, deep=True)
        raise_for_failures(reports)

    Without explicit statuses each group is checked under the statuses it
    was staged with, or over every status when none were recorded.
    """

    def __init__(
        self,
        store: ValidatorStore,
        statuses: Optional[Sequence[str]] = None,
        sample_size: int = SAMPLE_SIZE,
    ):
        self.store = store
        self.statuses = list(statuses) if statuses is not None else None
        self.sample_size = sample_size

    def _sample(self, ids: Iterable[str]) -> tuple[str, ...]:
        return tuple(sorted(set(ids))[: self.sample_size])

    def statuses_for(self, group_id: str, staged: StagedOutput) -> Optional[list[str]]:
        if self.statuses is not None:
            return self.statuses
        recorded = staged.status_filters.get(group_id)
        return list(recorded) if recorded is not None else None

    # -------------------------------------------------------------------------
    # Core checks
    # -------------------------------------------------------------------------

    def validate_group(self, group_id: str, deep: bool = False) -> ValidationReport:
        staged = self.store.load_staged(group_id)
        statuses = self.statuses_for(group_id, staged)
        matches = self.store.match_proposals(group_id, statuses)
        unmatched = [cid for cid, ids in matches.items() if not ids]
        overlapping = [cid for cid, ids in matches.items() if len(ids) > 1]

        existing = self.store.load_existing_pha(group_id)
        conflicts = self.ownership_conflicts(staged, existing)

        chain = content = readiness = None
        if deep:
            chain = self.check_chain(staged)
            content = self.check_content(group_id, staged, existing, statuses)
            readiness = self.check_readiness(staged)

        report = ValidationReport(
            group_id=group_id,
            non_pha_count=len(matches),
            unmatched_count=len(unmatched),
            overlapping_count=len(overlapping),
            ownership_conflicts=len(conflicts),
            unmatched_samples=self._sample(unmatched),
            overlapping_samples=self._sample(overlapping),
            ownership_samples=self._sample(conflicts),
            chain=chain,
            content=content,
            readiness=readiness,
        )
        log = logger.info if report.passed else logger.warning
        log(
            "Validation %s for group %s: non-PHA=%d unmatched=%d overlapping=%d ownership=%d",
            "passed" if report.passed else "FAILED",
            group_id,
            report.non_pha_count,
            report.unmatched_count,
            report.overlapping_count,
            report.ownership_conflicts,
            extra={"group_id": group_id},
        )
        return report

    def validate(self, groups: Iterable[str], deep: bool = False) -> list[ValidationReport]:
        """Validate every group; never stops at the first failure."""
        return [self.validate_group(group_id, deep) for group_id in groups]

    def ownership_conflicts(self, staged: StagedOutput, existing: set[str]) -> set[str]:
        listed = Counter(cid for p in staged.proposals for cid in p.certificate_ids)
        pha_owned = staged.pha_certificate_ids | set(existing)
        conflicts = {cid for cid, n in listed.items() if n > 1}
        conflicts |= set(listed) & pha_owned
        return conflicts

    # -------------------------------------------------------------------------
    # Deep checks
    # -------------------------------------------------------------------------

    def check_chain(self, staged: StagedOutput) -> ChainReport:
        """Proposal -> SplitVersion -> SplitParticipant -> Hierarchy -> Version -> Participant -> Schedule."""
        samples: list[str] = []

        versioned = {v.proposal_id for v in staged.split_versions}
        missing_split_version = [p for p in staged.proposals if p.id not in versioned]
        samples.extend(f"proposal {p.id}: no split version" for p in missing_split_version)

        with_participants = {sp.version_id for sp in staged.split_participants}
        empty_split_versions = [v for v in staged.split_versions if v.id not in with_participants]
        samples.extend(f"split version {v.id}: no participants" for v in empty_split_versions)

        hierarchy_ids = {h.id for h in staged.hierarchies}
        orphan_participants = [sp for sp in staged.split_participants if sp.hierarchy_id not in hierarchy_ids]
        samples.extend(
            f"split participant {sp.id}: hierarchy {sp.hierarchy_id} missing" for sp in orphan_participants
        )

        with_versions = {v.hierarchy_id for v in staged.hierarchy_versions}
        unversioned = [h for h in staged.hierarchies if h.id not in with_versions]
        samples.extend(f"hierarchy {h.id}: no version" for h in unversioned)

        staffed = {hp.version_id for hp in staged.hierarchy_participants}
        empty_versions = [v for v in staged.hierarchy_versions if v.id not in staffed]
        samples.extend(f"hierarchy version {v.id}: no participants" for v in empty_versions)

        known = self.store.known_schedule_codes()
        unresolved = [
            hp.schedule_code for hp in staged.hierarchy_participants
            if hp.schedule_code is not None and hp.schedule_code not in known
        ] + [
            pp.schedule_code for pp in staged.pha_participants
            if pp.schedule_code is not None and pp.schedule_code not in known
        ]
        samples.extend(f"schedule {code}: not found" for code in sorted(set(unresolved)))

        return ChainReport(
            proposals_without_split_version=len(missing_split_version),
            split_versions_without_participants=len(empty_split_versions),
            participants_without_hierarchy=len(orphan_participants),
            hierarchies_without_version=len(unversioned),
            versions_without_participants=len(empty_versions),
            unresolved_schedules=len(unresolved),
            samples=tuple(samples[: self.sample_size]),
        )

    def check_content(
        self,
        group_id: str,
        staged: StagedOutput,
        existing: set[str],
        statuses: Optional[Sequence[str]] = None,
    ) -> ContentReport:
        """Every broker and schedule code of the source appears in a staged structure."""
        source: list[Certificate] = [
            c for c in self.store.load_certificates([group_id], statuses)
            if c.certificate_id not in existing
        ]
        source_brokers = {b for c in source for b in c.broker_ids()}
        source_schedules = {s for c in source for s in c.schedule_codes()}

        staged_brokers = {p.broker_id for p in staged.hierarchy_participants}
        staged_brokers |= {p.broker_id for p in staged.pha_participants}
        staged_schedules = {p.schedule_code for p in staged.hierarchy_participants if p.schedule_code}
        staged_schedules |= {p.schedule_code for p in staged.pha_participants if p.schedule_code}

        return ContentReport(
            missing_brokers=tuple(sorted(source_brokers - staged_brokers)),
            missing_schedules=tuple(sorted(source_schedules - staged_schedules)),
        )

    def check_readiness(self, staged: StagedOutput) -> ReadinessReport:
        samples: list[str] = []
        unapproved = [p for p in staged.proposals if p.status != ProposalStatus.APPROVED]
        samples.extend(f"proposal {p.id}: {p.status.value}" for p in unapproved)

        inactive = [v for v in staged.hierarchy_versions if v.status != VersionStatus.ACTIVE]
        inactive += [v for v in staged.split_versions if v.status != VersionStatus.ACTIVE]
        samples.extend(f"version {v.id}: {v.status.value}" for v in inactive)

        bad_totals = [v for v in staged.split_versions if v.total_percent != HUNDRED]
        samples.extend(f"split version {v.id}: total {v.total_percent}" for v in bad_totals)

        return ReadinessReport(
            unapproved_proposals=len(unapproved),
            inactive_versions=len(inactive),
            split_total_mismatches=len(bad_totals),
            samples=tuple(samples[: self.sample_size]),
        )


# =============================================================================
# Summary
# =============================================================================

def summarize(reports: Sequence[ValidationReport]) -> dict:
    failed = [r for r in reports if not r.passed]
    return {
        "groups": len(reports),
        "passed": len(reports) - len(failed),
        "failed": len(failed),
        "non_pha": sum(r.non_pha_count for r in reports),
        "unmatched": sum(r.unmatched_count for r in reports),
        "overlapping": sum(r.overlapping_count for r in reports),
        "ownership_conflicts": sum(r.ownership_conflicts for r in reports),
        "failed_groups": [r.group_id for r in failed],
    }


def raise_for_failures(reports: Sequence[ValidationReport]) -> None:
    """
    Raise one ValidationFailure if any report failed.

    Raises:
        ValidationFailure: With the failed groups and their sample evidence
    """
    failed = [r for r in reports if not r.passed]
    if not failed:
        return
    raise ValidationFailure(
        message=f"Validation failed for {len(failed)} of {len(reports)} groups",
        details={
            "summary": summarize(reports),
            "samples": {
                r.group_id: {
                    "unmatched": list(r.unmatched_samples),
                    "overlapping": list(r.overlapping_samples),
                    "ownership": list(r.ownership_samples),
                }
                for r in failed
            },
        },
        failed_groups=[r.group_id for r in failed],
    )


def validate(
    store: ValidatorStore,
    groups: Iterable[str],
    deep: bool = False,
    statuses: Optional[Sequence[str]] = None,
) -> list[ValidationReport]:
    """Convenience function: validate groups against a store."""
    return CompletenessValidator(store, statuses).validate(groups, deep)
