"""
Tests for the SQLite store: flat input rows, watermarks and staging.
"""
import random
from datetime import date

import pytest

from proposalpilot.engine import MigrationRunner
from proposalpilot.exceptions import StoreError
from proposalpilot.models import EntityKind, StagedOutput
from proposalpilot.store import InMemoryStore, SqliteStore
from proposalpilot.store.sqlite import _sqlite_path, assemble_certificates, certificate_rows

from tests.conftest import (
    make_certificate,
    make_config,
    make_identical_certificates,
    make_split,
    make_store,
    make_tier,
    make_unique_certificates,
)


# =============================================================================
# Rows
# =============================================================================

class TestCertificateRows:
    """Flattening certificates and assembling them back."""

    def test_one_row_per_tier(self):
        cert = make_certificate(splits=[
            make_split(1, "60"),
            make_split(2, "40", [make_tier("B3", "5.5%", broker_name="Carol")]),
        ])
        rows = list(certificate_rows(cert))
        assert len(rows) == 3
        assert [(r["split_seq"], r["tier_level"]) for r in rows] == [(1, 1), (1, 2), (2, 1)]
        assert rows[2]["broker_name"] == "Carol"
        assert rows[0]["effective_date"] == "2021-01-01"

    def test_assemble_ignores_row_order(self):
        cert = make_certificate(splits=[
            make_split(1, "60"),
            make_split(2, "40", [make_tier("B3", "SCH-C", paid_broker_id="B9")]),
        ])
        rows = list(certificate_rows(cert))
        random.Random(3).shuffle(rows)
        assert assemble_certificates(rows) == [cert]

    def test_certificate_without_splits(self):
        cert = make_certificate(splits=[])
        rows = list(certificate_rows(cert))
        assert len(rows) == 1
        assert rows[0]["split_seq"] is None
        assert assemble_certificates(rows) == [cert]

    def test_split_without_tiers(self):
        cert = make_certificate(splits=[make_split(tiers=[])])
        (assembled,) = assemble_certificates(certificate_rows(cert))
        assert len(assembled.splits) == 1
        assert assembled.splits[0].tiers == ()

    def test_missing_column(self):
        row = dict(next(certificate_rows(make_certificate())))
        del row["split_seq"]
        with pytest.raises(StoreError) as exc_info:
            assemble_certificates([row])
        assert exc_info.value.code == "PP_STORE_ERROR"

    def test_bad_date(self):
        row = dict(next(certificate_rows(make_certificate())))
        row["effective_date"] = "not-a-date"
        with pytest.raises(StoreError):
            assemble_certificates([row])

    def test_bad_percent(self):
        row = dict(next(certificate_rows(make_certificate())))
        row["split_percent"] = "sixty"
        with pytest.raises(StoreError):
            assemble_certificates([row])


class TestLocator:

    @pytest.mark.parametrize("locator,expected", [
        ("sqlite:///data/run.db", "data/run.db"),
        ("run.db", "run.db"),
        ("", ":memory:"),
    ])
    def test_sqlite_path(self, locator, expected):
        assert _sqlite_path(locator) == expected


# =============================================================================
# Store
# =============================================================================

class TestSqliteStore:
    """Loading and staging through SQLite."""

    def test_padded_rows_normalized(self):
        rows = [dict(r) for r in certificate_rows(make_certificate())]
        for row in rows:
            row["status"] = " a"
            row["broker_id"] = f" {row['broker_id']} "
        with SqliteStore() as store:
            store.add_certificate_rows(rows)
            assert store.list_group_ids(["A"]) == ["G100"]
            (cert,) = store.load_certificates(statuses=["A"])
        assert cert == make_certificate()
        assert cert.broker_ids() == {"B1", "B2"}

    def test_load_certificates(self):
        certs = make_identical_certificates(3) + [make_certificate("T-1", status="T")]
        with SqliteStore() as store:
            store.add_certificates(certs)
            assert store.load_certificates() == sorted(certs, key=lambda c: c.certificate_id)
            assert [c.certificate_id for c in store.load_certificates(statuses=["T"])] == ["T-1"]
            assert store.load_certificates(["G999"]) == []
            assert store.list_group_ids(["A"]) == ["G100"]

    def test_existing_pha(self):
        with SqliteStore() as store:
            store.add_existing_pha("G100", ["C1", "C2"])
            store.add_existing_pha("G100", ["C2"])
            assert store.load_existing_pha("G100") == {"C1", "C2"}
            assert store.load_existing_pha("G200") == set()

    def test_watermarks(self):
        with SqliteStore() as store:
            assert store.current_max_identifier(EntityKind.HIERARCHY) == 0
            store.set_watermark(EntityKind.HIERARCHY, 40)
            store.set_watermark(EntityKind.HIERARCHY, 41)
            assert store.current_max_identifier(EntityKind.HIERARCHY) == 41

    def test_file_database(self, tmp_path):
        path = tmp_path / "run.db"
        with SqliteStore(str(path)) as store:
            store.add_certificates(make_identical_certificates(2))
        with SqliteStore(f"sqlite:///{path}") as store:
            assert len(store.load_certificates()) == 2

    def test_staged_output_matches_memory_store(self):
        assigned = [make_split(tiers=[make_tier("B1", "SCH-A", "Alice", paid_broker_id="B8")])]
        certs = (
            make_identical_certificates(30, splits=assigned)
            + make_unique_certificates(5)
            + [make_certificate("E-1", splits=[])]
        )
        memory = InMemoryStore(certs)
        sqlite = make_store("sqlite", certs)
        expected = MigrationRunner(memory, make_config()).run().output.for_group("G100")
        MigrationRunner(sqlite, make_config()).run()

        assert sqlite.load_staged("G100") == expected
        assert len(expected.commission_assignments) == 1
        assert expected.hierarchy_participants[0].broker_name == "Alice"

    def test_write_replaces_group(self):
        store = make_store("sqlite", make_identical_certificates(20))
        runner = MigrationRunner(store, make_config())
        runner.run()
        runner.run()
        staged = store.load_staged("G100")
        assert [p.id for p in staged.proposals] == [2]
        assert len(staged.hierarchies) == 1
        assert staged.status_filters == {"G100": ("A",)}

    def test_group_without_records(self):
        store = make_store("sqlite")
        store.write_staged_output(StagedOutput(group_ids=["G100"]))
        assert store.load_staged("G100").group_ids == ["G100"]
        assert store.load_staged("G200").group_ids == []
        assert store.load_staged("G100").status_filters == {}
        assert store.staged_group_ids() == ["G100"]

    def test_match_proposals_respects_status(self):
        store = make_store("sqlite", make_identical_certificates(20) + [
            make_certificate("T-1", status="T", effective_date=date(2021, 2, 1)),
        ])
        MigrationRunner(store, make_config()).run()
        matches = store.match_proposals("G100", ["A"])
        assert "T-1" not in matches
        assert all(len(ids) == 1 for ids in matches.values())
        assert store.match_proposals("G100")["T-1"] == [1]
