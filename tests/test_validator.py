"""
Tests for the completeness/ambiguity validator.

Every test runs against both store implementations.
"""
from datetime import date
from decimal import Decimal

import pytest

from proposalpilot.engine import MigrationRunner
from proposalpilot.exceptions import ValidationFailure
from proposalpilot.models import (
    CodeFilter,
    PhaReason,
    PolicyHierarchyAssignment,
    Proposal,
    ProposalStatus,
    StagedOutput,
)
from proposalpilot.validation import CompletenessValidator, raise_for_failures, summarize

from tests.conftest import (
    make_certificate,
    make_config,
    make_identical_certificates,
    make_split,
    make_store,
    make_tier,
    make_unique_certificates,
)


def make_proposal(id, certificate_ids, effective_from, effective_to, **kwargs):
    return Proposal(
        id=id,
        group_id="G100",
        effective_from=effective_from,
        effective_to=effective_to,
        product_filter=CodeFilter.exact(["LIFE"]),
        plan_filter=CodeFilter.exact(["BASIC"]),
        fingerprint_digest="a" * 64,
        certificate_ids=tuple(certificate_ids),
        **kwargs,
    )


def make_pha(id, certificate_id):
    return PolicyHierarchyAssignment(
        id=id,
        certificate_id=certificate_id,
        group_id="G100",
        split_sequence=1,
        split_percent=Decimal("100"),
        writing_broker_id="B1",
        reason=PhaReason.BELOW_CLUSTER_THRESHOLD,
    )


def staged(**records):
    return StagedOutput(group_ids=["G100"], **records)


# =============================================================================
# After a Run
# =============================================================================

class TestAfterRun:
    """A real run's staged output validates clean."""

    @pytest.fixture
    def store(self, store_kind):
        certs = make_identical_certificates(60) + make_unique_certificates(40)
        store = make_store(store_kind, certs, existing_pha={"G100": {"C-0000"}})
        MigrationRunner(store, make_config()).run()
        return store

    def test_passes(self, store):
        (report,) = CompletenessValidator(store, ["A"]).validate(["G100"])
        assert report.passed
        assert report.non_pha_count == 59
        assert not report.deep

    def test_deep_passes(self, store):
        (report,) = CompletenessValidator(store, ["A"]).validate(["G100"], deep=True)
        assert report.deep
        assert report.chain.gap_count == 0
        assert report.content.issue_count == 0
        assert report.readiness.issue_count == 0
        assert report.passed

    def test_idempotent(self, store):
        validator = CompletenessValidator(store, ["A"])
        assert validator.validate(["G100"], deep=True) == validator.validate(["G100"], deep=True)

    def test_raise_for_failures_silent_on_pass(self, store):
        raise_for_failures(CompletenessValidator(store).validate(["G100"]))

    def test_recorded_statuses_used_without_filter(self, store_kind):
        late = make_certificate("T-1", status="T", product_code="DENTAL")
        store = make_store(store_kind, make_identical_certificates(20) + [late])
        MigrationRunner(store, make_config()).run()
        assert store.load_staged("G100").status_filters == {"G100": ("A",)}

        (report,) = CompletenessValidator(store).validate(store.staged_group_ids(), deep=True)
        assert report.passed
        assert report.non_pha_count == 20

        (report,) = CompletenessValidator(store, ["A", "T"]).validate(["G100"])
        assert report.unmatched_samples == ("T-1",)

    def test_padded_broker_ids_validate_clean(self, store_kind):
        padded = [make_split(tiers=[make_tier(" B1", "SCH-A"), make_tier("B2 ", "SCH-B")])]
        store = make_store(store_kind, make_identical_certificates(20, splits=padded))
        MigrationRunner(store, make_config()).run()
        (report,) = CompletenessValidator(store, ["A"]).validate(["G100"], deep=True)
        assert report.content.missing_brokers == ()
        assert report.passed


# =============================================================================
# Ambiguity
# =============================================================================

class TestAmbiguity:
    """Hand-built staged output with known defects."""

    def test_overlapping_proposals(self, store_kind):
        certs = [
            make_certificate("C1", effective_date=date(2021, 3, 1)),
            make_certificate("C2", effective_date=date(2021, 6, 1)),
            make_certificate("C3", effective_date=date(2022, 6, 1)),
        ]
        store = make_store(store_kind, certs)
        store.write_staged_output(staged(proposals=[
            make_proposal(1, ["C1", "C2"], date(2020, 12, 31), date(2021, 12, 31)),
            make_proposal(2, ["C3"], date(2021, 5, 1), date(2022, 12, 31)),
        ]))

        reports = CompletenessValidator(store).validate(["G100"])
        (report,) = reports
        assert report.overlapping_count == 1
        assert report.overlapping_samples == ("C2",)
        assert report.unmatched_count == 0
        assert not report.passed

        with pytest.raises(ValidationFailure) as exc_info:
            raise_for_failures(reports)
        assert exc_info.value.failed_groups == ["G100"]
        assert exc_info.value.details["samples"]["G100"]["overlapping"] == ["C2"]

    def test_unmatched(self, store_kind):
        store = make_store(store_kind, [make_certificate("C9")])
        store.write_staged_output(staged())
        (report,) = CompletenessValidator(store).validate(["G100"])
        assert report.unmatched_count == 1
        assert report.unmatched_samples == ("C9",)

    def test_boundary_date_is_exclusive_at_start(self, store_kind):
        store = make_store(store_kind, [make_certificate("C1", effective_date=date(2021, 1, 1))])
        store.write_staged_output(staged(proposals=[
            make_proposal(1, ["C1"], date(2021, 1, 1), date(2021, 12, 31)),
        ]))
        (report,) = CompletenessValidator(store).validate(["G100"])
        assert report.unmatched_count == 1

    def test_ownership_conflict(self, store_kind):
        store = make_store(store_kind, [make_certificate("C1"), make_certificate("C2")])
        store.write_staged_output(staged(
            proposals=[make_proposal(1, ["C1", "C2"], date(2020, 12, 31), date(2021, 12, 31))],
            pha_records=[make_pha(1, "C1")],
        ))
        (report,) = CompletenessValidator(store).validate(["G100"])
        assert report.non_pha_count == 1
        assert report.ownership_conflicts == 1
        assert report.ownership_samples == ("C1",)

    def test_existing_pha_not_counted(self, store_kind):
        store = make_store(
            store_kind,
            [make_certificate("C1"), make_certificate("C2")],
            existing_pha={"G100": {"C2"}},
        )
        store.write_staged_output(staged(proposals=[
            make_proposal(1, ["C1"], date(2020, 12, 31), date(2021, 12, 31)),
        ]))
        (report,) = CompletenessValidator(store).validate(["G100"])
        assert report.non_pha_count == 1
        assert report.passed

    def test_status_filter(self, store_kind):
        store = make_store(store_kind, [make_certificate("C1", status="T")])
        store.write_staged_output(staged())
        (active,) = CompletenessValidator(store, ["A"]).validate(["G100"])
        (every,) = CompletenessValidator(store).validate(["G100"])
        assert active.non_pha_count == 0
        assert every.unmatched_count == 1


# =============================================================================
# Deep Checks
# =============================================================================

class TestDeepChecks:
    """Chain, content and readiness."""

    def test_unknown_schedule_fails_chain(self, store_kind):
        store = make_store(store_kind, make_identical_certificates(20), schedule_codes={"SCH-A"})
        MigrationRunner(store, make_config()).run()
        (report,) = CompletenessValidator(store).validate(["G100"], deep=True)
        assert report.chain.unresolved_schedules == 1
        assert "schedule SCH-B: not found" in report.chain.samples
        assert not report.passed

    def test_pending_proposal_without_split_version(self, store_kind):
        store = make_store(store_kind, [make_certificate("C1")])
        store.write_staged_output(staged(proposals=[
            make_proposal(
                1, ["C1"], date(2020, 12, 31), date(2021, 12, 31), status=ProposalStatus.PENDING
            ),
        ]))
        (report,) = CompletenessValidator(store).validate(["G100"], deep=True)
        assert report.unmatched_count == 0
        assert report.chain.proposals_without_split_version == 1
        assert report.readiness.unapproved_proposals == 1
        assert report.content.missing_brokers == ("B1", "B2")
        assert not report.passed

    def test_summary(self, store_kind):
        store = make_store(store_kind, [make_certificate("C9")])
        store.write_staged_output(staged())
        summary = summarize(CompletenessValidator(store).validate(["G100"]))
        assert summary["failed"] == 1
        assert summary["unmatched"] == 1
        assert summary["failed_groups"] == ["G100"]
