#!/usr/bin/env python3
"""
ProposalPilot Command Line Interface

Runs the migration against a SQLite store and validates the staged output.

Usage:
    proposalpilot load --db migration.db --csv certificates.csv
    proposalpilot run --db migration.db --config configs/migration.example.yaml
    proposalpilot run --db migration.db --config cfg.yaml --groups G100 G200 --validate --deep
    proposalpilot validate --db migration.db --deep
    proposalpilot stats --db migration.db --groups G100

Exit status:
    0  success
    1  validation failure, failed batches, or other runtime error
    2  configuration error
"""
from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from .config import MigrationConfig, load_config
from .engine import (
    MigrationRunner,
    compute_group_statistics,
    fingerprint_group,
    identify_non_conformant,
    plan_group,
)
from .exceptions import ConfigurationError, ProposalPilotError, ValidationFailure
from .logging_config import configure_logging
from .store import SqliteStore
from .validation import CompletenessValidator, raise_for_failures, summarize


logger = logging.getLogger("proposalpilot.cli")


# =============================================================================
# Helpers
# =============================================================================

def _statuses(args: argparse.Namespace) -> Optional[Sequence[str]]:
    """
    Status filter from --config when given.

    None lets the validator use the statuses each group was staged with.
    """
    if getattr(args, "config", None):
        return load_config(args.config).certificate_statuses
    return None


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _print_reports(reports: Sequence) -> None:
    print("=" * 78)
    print("COMPLETENESS VALIDATION")
    print("=" * 78)
    print(f"{'Group':<16} {'Non-PHA':>8} {'Unmatched':>10} {'Overlap':>8} {'Owner':>6} {'Result':>8}")
    print("-" * 78)
    for r in reports:
        print(
            f"{r.group_id:<16} "
            f"{r.non_pha_count:>8} "
            f"{r.unmatched_count:>10} "
            f"{r.overlapping_count:>8} "
            f"{r.ownership_conflicts:>6} "
            f"{'PASS' if r.passed else 'FAIL':>8}"
        )
    print("-" * 78)
    totals = summarize(reports)
    print(f"  Groups: {totals['groups']}  passed: {totals['passed']}  failed: {totals['failed']}")
    for r in reports:
        if r.passed:
            continue
        if r.unmatched_samples:
            print(f"  [FAIL] {r.group_id} unmatched: {', '.join(r.unmatched_samples)}")
        if r.overlapping_samples:
            print(f"  [FAIL] {r.group_id} overlapping: {', '.join(r.overlapping_samples)}")
        if r.ownership_samples:
            print(f"  [FAIL] {r.group_id} ownership: {', '.join(r.ownership_samples)}")
        for part in (r.chain, r.content, r.readiness):
            for sample in getattr(part, "samples", ()):
                print(f"  [FAIL] {r.group_id} {sample}")
        if r.content is not None:
            for broker in r.content.missing_brokers:
                print(f"  [FAIL] {r.group_id} broker {broker} missing from staged output")
            for code in r.content.missing_schedules:
                print(f"  [FAIL] {r.group_id} schedule {code} missing from staged output")
    print()


def _validate(store: SqliteStore, groups: Sequence[str], deep: bool, statuses) -> int:
    reports = CompletenessValidator(store, statuses).validate(groups, deep=deep)
    _print_reports(reports)
    try:
        raise_for_failures(reports)
    except ValidationFailure as e:
        logger.error("%s: %s", e.code, e.message)
        return 1
    return 0


# =============================================================================
# Commands
# =============================================================================

def cmd_load(args: argparse.Namespace) -> int:
    """Load flat certificate rows from CSV into the store."""
    with open(args.csv, newline="", encoding="utf-8") as handle:
        rows = [
            {k: (v if v != "" else None) for k, v in row.items()}
            for row in csv.DictReader(handle)
        ]
    with SqliteStore(args.db) as store:
        count = store.add_certificate_rows(rows)
        if args.schedules:
            codes = Path(args.schedules).read_text(encoding="utf-8").split()
            store.add_schedule_codes(codes)
    print(f"Loaded {count} certificate rows into {args.db}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Classify and synthesize, optionally validating afterwards."""
    config = load_config(args.config)
    with SqliteStore(args.db) as store:
        runner = MigrationRunner(store, config)
        summary = runner.run(groups=args.groups, offset=args.offset, limit=args.limit_groups)

        if args.json:
            _print_json(summary.to_dict())
        else:
            counts = summary.output.summary()
            print("=" * 78)
            print(f"MIGRATION RUN {summary.run_id}")
            print("=" * 78)
            print(f"  Groups processed:  {len(summary.processed_groups)}")
            print(f"  Groups failed:     {len(summary.failed_groups)}")
            for name, value in counts.items():
                print(f"  {name + ':':<26} {value}")
            print(f"  Duration:          {summary.duration_ms} ms")
            print()

        status = 0 if summary.succeeded else 1
        if args.validate:
            status = max(
                status,
                _validate(store, summary.processed_groups, args.deep, config.certificate_statuses),
            )
    return status


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate previously staged output."""
    statuses = _statuses(args)
    with SqliteStore(args.db) as store:
        groups = args.groups or store.staged_group_ids()
        if not groups:
            logger.error("No staged groups to validate in %s", args.db)
            return 1
        return _validate(store, groups, args.deep, statuses)


def cmd_stats(args: argparse.Namespace) -> int:
    """Show fingerprint statistics and cluster decisions for groups."""
    config: Optional[MigrationConfig] = load_config(args.config) if args.config else None
    statuses = config.certificate_statuses if config else None

    with SqliteStore(args.db) as store:
        groups = args.groups or store.list_group_ids(statuses)
        output = []
        for group_id in groups:
            certificates = store.load_certificates([group_id], statuses)
            existing = store.load_existing_pha(group_id)
            decisions = None
            if config is not None:
                plan = plan_group(group_id, certificates, config, existing)
                stats, decisions = plan.statistics, plan.decisions
            else:
                exclusions = identify_non_conformant(group_id, certificates, existing)
                stats = compute_group_statistics(group_id, fingerprint_group(exclusions.pool))
            entry = stats.to_dict()
            entry["excluded"] = len(certificates) - stats.total
            if decisions is not None:
                entry["decisions"] = {
                    digest[:12]: [d.disposition.value, d.reason.value if d.reason else None]
                    for digest, d in decisions.items()
                }
            output.append(entry)

    if args.json:
        _print_json(output)
        return 0

    print(f"{'Group':<16} {'Certs':>7} {'Excl':>6} {'Clusters':>9} {'Ratio':>7} {'Entropy':>8} {'Dominant':>9}")
    print("-" * 67)
    for entry in output:
        print(
            f"{entry['group_id']:<16} "
            f"{entry['total']:>7} "
            f"{entry['excluded']:>6} "
            f"{entry['clusters']:>9} "
            f"{entry['unique_ratio']:>7.3f} "
            f"{entry['entropy']:>8.3f} "
            f"{entry['dominant_coverage']:>9.3f}"
        )
        for digest, (disposition, reason) in entry.get("decisions", {}).items():
            print(f"    {digest}  {disposition:<15} {reason or ''}")
    return 0


# =============================================================================
# Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ProposalPilot commission structure migration",
        prog="proposalpilot",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: PP_LOG_LEVEL or INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Load command
    load_parser = subparsers.add_parser("load", help="Load certificate rows from CSV")
    load_parser.add_argument("--db", required=True, help="SQLite database path")
    load_parser.add_argument("--csv", required=True, help="CSV file of flat certificate rows")
    load_parser.add_argument("--schedules", help="Whitespace-separated file of known schedule codes")
    load_parser.set_defaults(func=cmd_load)

    # Run command
    run_parser = subparsers.add_parser("run", help="Classify and synthesize groups")
    run_parser.add_argument("--db", required=True, help="SQLite database path")
    run_parser.add_argument("--config", required=True, help="Migration config (YAML or JSON)")
    run_parser.add_argument("--groups", nargs="+", help="Only these group ids")
    run_parser.add_argument("--offset", type=int, default=0, help="Skip this many groups")
    run_parser.add_argument("--limit-groups", type=int, default=None, help="Process at most this many groups")
    run_parser.add_argument("--validate", action="store_true", help="Validate after the run")
    run_parser.add_argument("--deep", action="store_true", help="Include chain, content and readiness checks")
    run_parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")
    run_parser.set_defaults(func=cmd_run)

    # Validate command
    val_parser = subparsers.add_parser("validate", help="Validate staged output")
    val_parser.add_argument("--db", required=True, help="SQLite database path")
    val_parser.add_argument("--config", help="Migration config supplying certificate statuses")
    val_parser.add_argument("--groups", nargs="+", help="Only these group ids")
    val_parser.add_argument("--deep", action="store_true", help="Include chain, content and readiness checks")
    val_parser.set_defaults(func=cmd_validate)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show group fingerprint statistics")
    stats_parser.add_argument("--db", required=True, help="SQLite database path")
    stats_parser.add_argument("--config", help="Migration config; adds cluster decisions")
    stats_parser.add_argument("--groups", nargs="+", help="Only these group ids")
    stats_parser.add_argument("--json", action="store_true", help="Print statistics as JSON")
    stats_parser.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(args.log_level, json_format=True if args.json_logs else None)

    try:
        return args.func(args)
    except ConfigurationError as e:
        logger.error("%s: %s %s", e.code, e.message, json.dumps(e.details, default=str))
        return 2
    except ProposalPilotError as e:
        logger.error("%s: %s", e.code, e.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())
