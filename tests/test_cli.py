"""
Tests for the command line interface.
"""
import csv
import json

import pytest

from proposalpilot.cli import build_parser, main
from proposalpilot.store import SqliteStore
from proposalpilot.store.sqlite import certificate_rows

from tests.conftest import make_certificate, make_identical_certificates, make_unique_certificates


CONFIG_YAML = """
high_entropy_unique_ratio: 0.9
high_entropy_shannon: 3.0
dominant_coverage_threshold: 0.5
pha_cluster_size_threshold: 10
"""


@pytest.fixture
def workspace(tmp_path):
    """A CSV extract, a schedule list and a config file."""
    certs = make_identical_certificates(30) + make_unique_certificates(5)
    rows = [row for cert in certs for row in certificate_rows(cert)]
    csv_path = tmp_path / "certificates.csv"
    with open(csv_path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(rows[0]))
        writer.writeheader()
        for row in rows:
            writer.writerow({k: "" if v is None else v for k, v in row.items()})

    schedules = tmp_path / "schedules.txt"
    schedules.write_text("SCH-A SCH-B\nSCH-C\n")
    config = tmp_path / "migration.yaml"
    config.write_text(CONFIG_YAML)
    return {
        "db": str(tmp_path / "migration.db"),
        "csv": str(csv_path),
        "schedules": str(schedules),
        "config": str(config),
        "rows": len(rows),
    }


def _load(ws):
    return main(["load", "--db", ws["db"], "--csv", ws["csv"], "--schedules", ws["schedules"]])


class TestParser:

    def test_run_arguments(self):
        args = build_parser().parse_args(
            ["run", "--db", "x.db", "--config", "c.yaml", "--groups", "G1", "G2", "--limit-groups", "5"]
        )
        assert args.groups == ["G1", "G2"]
        assert args.limit_groups == 5
        assert args.offset == 0

    def test_no_command(self, capsys):
        assert main([]) == 1


class TestCommands:
    """End-to-end through a SQLite file."""

    def test_load(self, workspace, capsys):
        assert _load(workspace) == 0
        assert f"Loaded {workspace['rows']} certificate rows" in capsys.readouterr().out
        with SqliteStore(workspace["db"]) as store:
            certs = store.load_certificates()
            assert len(certs) == 35
            assert store.known_schedule_codes() == {"SCH-A", "SCH-B", "SCH-C"}
            assert certs[0].splits[0].sequence == 1

    def test_run_and_validate(self, workspace, capsys):
        _load(workspace)
        status = main([
            "run", "--db", workspace["db"], "--config", workspace["config"],
            "--validate", "--deep",
        ])
        out = capsys.readouterr().out
        assert status == 0
        assert "MIGRATION RUN" in out
        assert "PASS" in out

        assert main(["validate", "--db", workspace["db"], "--config", workspace["config"]]) == 0

    def test_run_json(self, workspace, capsys):
        _load(workspace)
        capsys.readouterr()
        assert main(["run", "--db", workspace["db"], "--config", workspace["config"], "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["processed_groups"] == 1
        assert data["output"]["proposals"] == 1
        assert data["output"]["pha_certificates"] == 5

    def test_validate_before_run_fails(self, workspace, capsys):
        _load(workspace)
        assert main(["validate", "--db", workspace["db"], "--groups", "G100"]) == 1
        assert "FAIL" in capsys.readouterr().out

    def test_validate_with_nothing_staged(self, workspace):
        _load(workspace)
        assert main(["validate", "--db", workspace["db"]]) == 1

    def test_validate_uses_statuses_recorded_by_run(self, workspace, capsys):
        _load(workspace)
        with SqliteStore(workspace["db"]) as store:
            store.add_certificates([make_certificate("T-1", status="T", product_code="DENTAL")])
        assert main(["run", "--db", workspace["db"], "--config", workspace["config"], "--validate"]) == 0
        assert main(["validate", "--db", workspace["db"], "--deep"]) == 0
        assert "unmatched: T-1" not in capsys.readouterr().out

    def test_stats(self, workspace, capsys):
        _load(workspace)
        capsys.readouterr()
        assert main(["stats", "--db", workspace["db"], "--config", workspace["config"], "--json"]) == 0
        (entry,) = json.loads(capsys.readouterr().out)
        assert entry["total"] == 35
        assert entry["clusters"] == 6
        dispositions = sorted(d[0] for d in entry["decisions"].values())
        assert dispositions == ["individualized"] * 5 + ["templated"]

    def test_stats_match_run_with_existing_pha(self, workspace, capsys):
        _load(workspace)
        with SqliteStore(workspace["db"]) as store:
            store.add_existing_pha("G100", [f"C-{i:04d}" for i in range(25)])
        capsys.readouterr()

        assert main(["stats", "--db", workspace["db"], "--config", workspace["config"], "--json"]) == 0
        (entry,) = json.loads(capsys.readouterr().out)
        assert entry["total"] == 10
        assert entry["excluded"] == 25
        reasons = {d[1] for d in entry["decisions"].values()}
        assert reasons == {"below cluster threshold"}

        assert main(["run", "--db", workspace["db"], "--config", workspace["config"], "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["output"]["proposals"] == 0
        assert data["output"]["pha_certificates"] == 10

    def test_configuration_error_exit_code(self, workspace, tmp_path):
        _load(workspace)
        bad = tmp_path / "bad.yaml"
        bad.write_text("high_entropy_shannon: 3.0\n")
        assert main(["run", "--db", workspace["db"], "--config", str(bad)]) == 2
