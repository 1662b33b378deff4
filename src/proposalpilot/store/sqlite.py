"""
ProposalPilot SQLite Store

stdlib sqlite3 implementation of every store protocol.

Input certificates are kept as flat rows, one per certificate/split/tier,
the way they arrive from the source extract:

    certificate_id, group_id, product_code, plan_code, effective_date, status,
    situs_state, split_seq, split_percent, tier_level, broker_id, broker_name,
    schedule, paid_broker_id

A certificate without splits is one row with split_seq NULL; a split without
tiers is one row with tier_level NULL.

match_proposals is the declarative form of the in-memory matching rule:
half-open (from, to] dates plus exact-or-wildcard product and plan filters.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence

from ..exceptions import StoreError
from ..models import (
    Certificate,
    CodeFilter,
    CommissionAssignment,
    EntityKind,
    Hierarchy,
    HierarchyParticipant,
    HierarchyVersion,
    PhaReason,
    PolicyHierarchyAssignment,
    PolicyHierarchyParticipant,
    PremiumSplitParticipant,
    PremiumSplitVersion,
    Proposal,
    ProposalStatus,
    SplitEntry,
    StagedOutput,
    Tier,
    VersionStatus,
)


logger = logging.getLogger(__name__)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS input_certificate_rows (
    certificate_id TEXT NOT NULL,
    group_id TEXT NOT NULL,
    product_code TEXT NOT NULL,
    plan_code TEXT NOT NULL DEFAULT '',
    effective_date TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'A',
    situs_state TEXT,
    split_seq INTEGER,
    split_percent TEXT,
    tier_level INTEGER,
    broker_id TEXT,
    broker_name TEXT,
    schedule TEXT,
    paid_broker_id TEXT
);
CREATE INDEX IF NOT EXISTS ix_input_group ON input_certificate_rows (group_id, certificate_id);

CREATE TABLE IF NOT EXISTS existing_pha (
    group_id TEXT NOT NULL,
    certificate_id TEXT NOT NULL,
    PRIMARY KEY (group_id, certificate_id)
);

CREATE TABLE IF NOT EXISTS identifier_watermarks (
    kind TEXT PRIMARY KEY,
    max_id INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS schedules (
    schedule_code TEXT PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS staged_groups (
    group_id TEXT PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS staged_group_statuses (
    group_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    status TEXT NOT NULL,
    PRIMARY KEY (group_id, position)
);

CREATE TABLE IF NOT EXISTS staged_proposals (
    id INTEGER PRIMARY KEY,
    group_id TEXT NOT NULL,
    effective_from TEXT NOT NULL,
    effective_to TEXT NOT NULL,
    product_wildcard INTEGER NOT NULL,
    plan_wildcard INTEGER NOT NULL,
    fingerprint_digest TEXT NOT NULL,
    status TEXT NOT NULL,
    writing_broker_id TEXT
);
CREATE INDEX IF NOT EXISTS ix_proposals_group ON staged_proposals (group_id);

CREATE TABLE IF NOT EXISTS staged_proposal_products (
    proposal_id INTEGER NOT NULL,
    product_code TEXT NOT NULL,
    PRIMARY KEY (proposal_id, product_code)
);

CREATE TABLE IF NOT EXISTS staged_proposal_plans (
    proposal_id INTEGER NOT NULL,
    plan_code TEXT NOT NULL,
    PRIMARY KEY (proposal_id, plan_code)
);

CREATE TABLE IF NOT EXISTS staged_proposal_certificates (
    proposal_id INTEGER NOT NULL,
    certificate_id TEXT NOT NULL,
    PRIMARY KEY (proposal_id, certificate_id)
);

CREATE TABLE IF NOT EXISTS staged_hierarchies (
    id INTEGER PRIMARY KEY,
    group_id TEXT NOT NULL,
    proposal_id INTEGER NOT NULL,
    split_sequence INTEGER NOT NULL,
    writing_broker_id TEXT,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS staged_hierarchy_versions (
    id INTEGER PRIMARY KEY,
    hierarchy_id INTEGER NOT NULL,
    effective_from TEXT NOT NULL,
    effective_to TEXT NOT NULL,
    version_number INTEGER NOT NULL,
    status TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS staged_hierarchy_participants (
    id INTEGER PRIMARY KEY,
    version_id INTEGER NOT NULL,
    level INTEGER NOT NULL,
    broker_id TEXT NOT NULL,
    schedule_code TEXT,
    commission_rate TEXT,
    broker_name TEXT
);

CREATE TABLE IF NOT EXISTS staged_split_versions (
    id INTEGER PRIMARY KEY,
    proposal_id INTEGER NOT NULL,
    group_id TEXT NOT NULL,
    total_percent TEXT NOT NULL,
    effective_from TEXT NOT NULL,
    effective_to TEXT NOT NULL,
    status TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS staged_split_participants (
    id INTEGER PRIMARY KEY,
    version_id INTEGER NOT NULL,
    sequence INTEGER NOT NULL,
    broker_id TEXT,
    split_percent TEXT NOT NULL,
    hierarchy_id INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS staged_pha (
    id INTEGER PRIMARY KEY,
    certificate_id TEXT NOT NULL,
    group_id TEXT NOT NULL,
    split_sequence INTEGER NOT NULL,
    split_percent TEXT NOT NULL,
    writing_broker_id TEXT,
    reason TEXT NOT NULL,
    non_conforming INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_pha_group ON staged_pha (group_id, certificate_id);

CREATE TABLE IF NOT EXISTS staged_pha_participants (
    id INTEGER PRIMARY KEY,
    assignment_id INTEGER NOT NULL,
    level INTEGER NOT NULL,
    broker_id TEXT NOT NULL,
    schedule_code TEXT,
    commission_rate TEXT
);

CREATE TABLE IF NOT EXISTS staged_commission_assignments (
    id INTEGER PRIMARY KEY,
    group_id TEXT NOT NULL,
    source_broker_id TEXT NOT NULL,
    recipient_broker_id TEXT NOT NULL,
    effective_from TEXT NOT NULL
);
"""

_STAGED_TABLES = {
    EntityKind.PROPOSAL: "staged_proposals",
    EntityKind.PREMIUM_SPLIT_VERSION: "staged_split_versions",
    EntityKind.PREMIUM_SPLIT_PARTICIPANT: "staged_split_participants",
    EntityKind.HIERARCHY: "staged_hierarchies",
    EntityKind.HIERARCHY_VERSION: "staged_hierarchy_versions",
    EntityKind.HIERARCHY_PARTICIPANT: "staged_hierarchy_participants",
    EntityKind.POLICY_HIERARCHY_ASSIGNMENT: "staged_pha",
    EntityKind.POLICY_HIERARCHY_PARTICIPANT: "staged_pha_participants",
    EntityKind.COMMISSION_ASSIGNMENT: "staged_commission_assignments",
}

_MATCH_SQL = """
WITH certs AS (
    SELECT DISTINCT certificate_id, group_id, product_code, plan_code, effective_date, status
    FROM input_certificate_rows
    WHERE group_id = ?
)
SELECT c.certificate_id, p.id
FROM certs c
LEFT JOIN staged_proposals p
  ON p.group_id = c.group_id
 AND c.effective_date > p.effective_from
 AND c.effective_date <= p.effective_to
 AND (p.product_wildcard = 1 OR EXISTS (
        SELECT 1 FROM staged_proposal_products pp
        WHERE pp.proposal_id = p.id AND pp.product_code = c.product_code))
 AND (p.plan_wildcard = 1 OR EXISTS (
        SELECT 1 FROM staged_proposal_plans pl
        WHERE pl.proposal_id = p.id AND pl.plan_code = c.plan_code))
WHERE c.certificate_id NOT IN (SELECT certificate_id FROM existing_pha WHERE group_id = ?)
  AND c.certificate_id NOT IN (SELECT certificate_id FROM staged_pha WHERE group_id = ?)
"""


def _sqlite_path(locator: str) -> str:
    text = str(locator or "").strip()
    if text.startswith("sqlite:///"):
        return text[len("sqlite:///"):]
    if text.startswith("sqlite://"):
        return text[len("sqlite://"):]
    return text or ":memory:"


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


def _row_value(row: Mapping[str, Any], column: str) -> Any:
    value = row.get(column)
    if column == "status" and isinstance(value, str):
        # Status filters compare in SQL, so rows are stored as Certificate.status would read.
        return value.strip().upper()
    return value


def _dec(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _to_dec(text: Optional[str]) -> Optional[Decimal]:
    return None if text is None else Decimal(text)


# =============================================================================
# Row <-> Certificate
# =============================================================================

def certificate_rows(certificate: Certificate) -> Iterator[dict[str, Any]]:
    """Flatten a Certificate into input rows."""
    base = {
        "certificate_id": certificate.certificate_id,
        "group_id": certificate.group_id,
        "product_code": certificate.product_code,
        "plan_code": certificate.plan_code,
        "effective_date": certificate.effective_date.isoformat(),
        "status": certificate.status,
        "situs_state": certificate.situs_state,
    }
    empty_tier = {
        "tier_level": None, "broker_id": None, "broker_name": None,
        "schedule": None, "paid_broker_id": None,
    }
    if not certificate.splits:
        yield {**base, "split_seq": None, "split_percent": None, **empty_tier}
        return
    for split in certificate.splits:
        split_part = {"split_seq": split.sequence, "split_percent": str(split.percent)}
        if not split.tiers:
            yield {**base, **split_part, **empty_tier}
            continue
        for level, tier in enumerate(split.tiers, start=1):
            yield {
                **base,
                **split_part,
                "tier_level": level,
                "broker_id": tier.broker_id,
                "broker_name": tier.broker_name,
                "schedule": tier.schedule,
                "paid_broker_id": tier.paid_broker_id,
            }


def assemble_certificates(rows: Iterable[Mapping[str, Any]]) -> list[Certificate]:
    """
    Group flat input rows into Certificates.

    Splits are ordered by split_seq and tiers by tier_level regardless of
    row order.

    Raises:
        StoreError: If a row is missing a required column or has a bad value
    """
    headers: OrderedDict[str, Mapping[str, Any]] = OrderedDict()
    splits: dict[str, dict[int, tuple[Decimal, list[tuple[int, Tier]]]]] = {}
    for row in rows:
        try:
            cid = str(row["certificate_id"])
            headers.setdefault(cid, row)
            cert_splits = splits.setdefault(cid, {})
            if row["split_seq"] is None:
                continue
            seq = int(row["split_seq"])
            if seq not in cert_splits:
                cert_splits[seq] = (Decimal(str(row["split_percent"])), [])
            if row["tier_level"] is not None and row["broker_id"]:
                cert_splits[seq][1].append((
                    int(row["tier_level"]),
                    Tier(
                        broker_id=str(row["broker_id"]).strip(),
                        schedule=row["schedule"],
                        broker_name=row["broker_name"],
                        paid_broker_id=row["paid_broker_id"],
                    ),
                ))
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise StoreError(
                message=f"Malformed certificate row: {e}",
                details={"row": dict(row)},
            )

    certificates = []
    for cid, header in headers.items():
        try:
            effective = header["effective_date"]
            if not isinstance(effective, date):
                effective = date.fromisoformat(str(effective)[:10])
        except ValueError as e:
            raise StoreError(
                message=f"Bad effective date on certificate {cid}: {e}",
                details={"certificate_id": cid},
            )
        entries = tuple(
            SplitEntry(
                sequence=seq,
                percent=percent,
                tiers=tuple(t for _, t in sorted(tiers, key=lambda lt: lt[0])),
            )
            for seq, (percent, tiers) in sorted(splits[cid].items())
        )
        certificates.append(
            Certificate(
                certificate_id=cid,
                group_id=str(header["group_id"]),
                product_code=str(header["product_code"] or ""),
                plan_code=str(header["plan_code"] or ""),
                effective_date=effective,
                status=str(header["status"] or "A"),
                splits=entries,
                situs_state=header["situs_state"],
            )
        )
    return certificates


# =============================================================================
# Store
# =============================================================================

class SqliteStore:
    """
    SQLite-backed source, PHA registry, identifier watermarks and staging.

    Usage:
        store = SqliteStore("migration.db")
        store.add_certificates(certificates)
        runner = MigrationRunner(store, config)
    """

    def __init__(self, locator: str = ":memory:") -> None:
        self.path = _sqlite_path(locator)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            with self._conn:
                self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(
                message=f"Cannot open store: {e}",
                details={"path": self.path},
            )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> SqliteStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, tuple(params)).fetchall()
            except sqlite3.Error as e:
                raise StoreError(message=f"Store query failed: {e}", details={"sql": sql.strip()[:200]})

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def add_certificate_rows(self, rows: Iterable[Mapping[str, Any]]) -> int:
        columns = (
            "certificate_id", "group_id", "product_code", "plan_code", "effective_date",
            "status", "situs_state", "split_seq", "split_percent", "tier_level",
            "broker_id", "broker_name", "schedule", "paid_broker_id",
        )
        values = [tuple(_row_value(row, c) for c in columns) for row in rows]
        sql = (
            f"INSERT INTO input_certificate_rows ({', '.join(columns)}) "
            f"VALUES ({_placeholders(columns)})"
        )
        with self._lock:
            try:
                with self._conn:
                    self._conn.executemany(sql, values)
            except sqlite3.Error as e:
                raise StoreError(message=f"Inserting certificate rows failed: {e}")
        return len(values)

    def add_certificates(self, certificates: Iterable[Certificate]) -> int:
        return self.add_certificate_rows(
            row for cert in certificates for row in certificate_rows(cert)
        )

    def add_existing_pha(self, group_id: str, certificate_ids: Iterable[str]) -> None:
        with self._lock, self._conn:
            self._conn.executemany(
                "INSERT OR IGNORE INTO existing_pha (group_id, certificate_id) VALUES (?, ?)",
                [(group_id, cid) for cid in certificate_ids],
            )

    def set_watermark(self, kind: EntityKind, value: int) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO identifier_watermarks (kind, max_id) VALUES (?, ?) "
                "ON CONFLICT(kind) DO UPDATE SET max_id = excluded.max_id",
                (kind.value, int(value)),
            )

    def add_schedule_codes(self, codes: Iterable[str]) -> None:
        with self._lock, self._conn:
            self._conn.executemany(
                "INSERT OR IGNORE INTO schedules (schedule_code) VALUES (?)",
                [(c,) for c in codes],
            )

    # -------------------------------------------------------------------------
    # CertificateSource / PhaRegistry / IdentifierStore
    # -------------------------------------------------------------------------

    def list_group_ids(self, statuses: Optional[Sequence[str]] = None) -> list[str]:
        sql = "SELECT DISTINCT group_id FROM input_certificate_rows"
        params: list[Any] = []
        if statuses is not None:
            sql += f" WHERE status IN ({_placeholders(statuses)})"
            params.extend(statuses)
        return sorted(row["group_id"] for row in self._query(sql, params))

    def load_certificates(
        self,
        group_filter: Optional[Sequence[str]] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> list[Certificate]:
        clauses = []
        params: list[Any] = []
        if group_filter is not None:
            if not group_filter:
                return []
            clauses.append(f"group_id IN ({_placeholders(group_filter)})")
            params.extend(group_filter)
        if statuses is not None:
            clauses.append(f"status IN ({_placeholders(statuses)})")
            params.extend(statuses)
        sql = "SELECT * FROM input_certificate_rows"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY group_id, certificate_id, split_seq, tier_level"
        return assemble_certificates(self._query(sql, params))

    def load_existing_pha(self, group_id: str) -> set[str]:
        rows = self._query("SELECT certificate_id FROM existing_pha WHERE group_id = ?", (group_id,))
        return {row["certificate_id"] for row in rows}

    def current_max_identifier(self, kind: EntityKind) -> int:
        watermark = self._query(
            "SELECT max_id FROM identifier_watermarks WHERE kind = ?", (kind.value,)
        )
        staged = self._query(f"SELECT MAX(id) AS max_id FROM {_STAGED_TABLES[kind]}")
        values = [0]
        if watermark:
            values.append(int(watermark[0]["max_id"]))
        if staged and staged[0]["max_id"] is not None:
            values.append(int(staged[0]["max_id"]))
        return max(values)

    # -------------------------------------------------------------------------
    # Staging
    # -------------------------------------------------------------------------

    def _delete_groups(self, conn: sqlite3.Connection, group_ids: Sequence[str]) -> None:
        marks = _placeholders(group_ids)
        proposals = f"SELECT id FROM staged_proposals WHERE group_id IN ({marks})"
        hierarchies = f"SELECT id FROM staged_hierarchies WHERE group_id IN ({marks})"
        versions = f"SELECT id FROM staged_hierarchy_versions WHERE hierarchy_id IN ({hierarchies})"
        split_versions = f"SELECT id FROM staged_split_versions WHERE group_id IN ({marks})"
        pha = f"SELECT id FROM staged_pha WHERE group_id IN ({marks})"
        statements = [
            f"DELETE FROM staged_hierarchy_participants WHERE version_id IN ({versions})",
            f"DELETE FROM staged_hierarchy_versions WHERE hierarchy_id IN ({hierarchies})",
            f"DELETE FROM staged_hierarchies WHERE group_id IN ({marks})",
            f"DELETE FROM staged_split_participants WHERE version_id IN ({split_versions})",
            f"DELETE FROM staged_split_versions WHERE group_id IN ({marks})",
            f"DELETE FROM staged_proposal_products WHERE proposal_id IN ({proposals})",
            f"DELETE FROM staged_proposal_plans WHERE proposal_id IN ({proposals})",
            f"DELETE FROM staged_proposal_certificates WHERE proposal_id IN ({proposals})",
            f"DELETE FROM staged_proposals WHERE group_id IN ({marks})",
            f"DELETE FROM staged_pha_participants WHERE assignment_id IN ({pha})",
            f"DELETE FROM staged_pha WHERE group_id IN ({marks})",
            f"DELETE FROM staged_commission_assignments WHERE group_id IN ({marks})",
            f"DELETE FROM staged_groups WHERE group_id IN ({marks})",
            f"DELETE FROM staged_group_statuses WHERE group_id IN ({marks})",
        ]
        for sql in statements:
            conn.execute(sql, tuple(group_ids))

    def write_staged_output(self, output: StagedOutput) -> None:
        """Replace the staged records of output.group_ids with `output`."""
        with self._lock:
            try:
                with self._conn as conn:
                    if output.group_ids:
                        self._delete_groups(conn, output.group_ids)
                    self._insert(conn, output)
            except sqlite3.Error as e:
                raise StoreError(
                    message=f"Writing staged output failed: {e}",
                    details={"groups": list(output.group_ids)},
                )
        logger.debug("Staged output written: %s", output.summary())

    def _insert(self, conn: sqlite3.Connection, output: StagedOutput) -> None:
        conn.executemany(
            "INSERT INTO staged_groups (group_id) VALUES (?)",
            [(g,) for g in output.group_ids],
        )
        conn.executemany(
            "INSERT INTO staged_group_statuses (group_id, position, status) VALUES (?, ?, ?)",
            [
                (g, position, status)
                for g, statuses in output.status_filters.items()
                for position, status in enumerate(statuses)
            ],
        )
        conn.executemany(
            "INSERT INTO staged_proposals (id, group_id, effective_from, effective_to, "
            "product_wildcard, plan_wildcard, fingerprint_digest, status, writing_broker_id) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    p.id, p.group_id, p.effective_from.isoformat(), p.effective_to.isoformat(),
                    int(p.product_filter.is_wildcard), int(p.plan_filter.is_wildcard),
                    p.fingerprint_digest, p.status.value, p.writing_broker_id,
                )
                for p in output.proposals
            ],
        )
        conn.executemany(
            "INSERT INTO staged_proposal_products (proposal_id, product_code) VALUES (?, ?)",
            [(p.id, code) for p in output.proposals for code in (p.product_filter.to_list() or [])],
        )
        conn.executemany(
            "INSERT INTO staged_proposal_plans (proposal_id, plan_code) VALUES (?, ?)",
            [(p.id, code) for p in output.proposals for code in (p.plan_filter.to_list() or [])],
        )
        conn.executemany(
            "INSERT INTO staged_proposal_certificates (proposal_id, certificate_id) VALUES (?, ?)",
            [(p.id, cid) for p in output.proposals for cid in p.certificate_ids],
        )
        conn.executemany(
            "INSERT INTO staged_hierarchies (id, group_id, proposal_id, split_sequence, "
            "writing_broker_id, name) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (h.id, h.group_id, h.proposal_id, h.split_sequence, h.writing_broker_id, h.name)
                for h in output.hierarchies
            ],
        )
        conn.executemany(
            "INSERT INTO staged_hierarchy_versions (id, hierarchy_id, effective_from, "
            "effective_to, version_number, status) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (
                    v.id, v.hierarchy_id, v.effective_from.isoformat(), v.effective_to.isoformat(),
                    v.version_number, v.status.value,
                )
                for v in output.hierarchy_versions
            ],
        )
        conn.executemany(
            "INSERT INTO staged_hierarchy_participants (id, version_id, level, broker_id, "
            "schedule_code, commission_rate, broker_name) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    p.id, p.version_id, p.level, p.broker_id, p.schedule_code,
                    _dec(p.commission_rate), p.broker_name,
                )
                for p in output.hierarchy_participants
            ],
        )
        conn.executemany(
            "INSERT INTO staged_split_versions (id, proposal_id, group_id, total_percent, "
            "effective_from, effective_to, status) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    v.id, v.proposal_id, v.group_id, str(v.total_percent),
                    v.effective_from.isoformat(), v.effective_to.isoformat(), v.status.value,
                )
                for v in output.split_versions
            ],
        )
        conn.executemany(
            "INSERT INTO staged_split_participants (id, version_id, sequence, broker_id, "
            "split_percent, hierarchy_id) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (p.id, p.version_id, p.sequence, p.broker_id, str(p.split_percent), p.hierarchy_id)
                for p in output.split_participants
            ],
        )
        conn.executemany(
            "INSERT INTO staged_pha (id, certificate_id, group_id, split_sequence, split_percent, "
            "writing_broker_id, reason, non_conforming) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    r.id, r.certificate_id, r.group_id, r.split_sequence, str(r.split_percent),
                    r.writing_broker_id, r.reason.value, int(r.non_conforming),
                )
                for r in output.pha_records
            ],
        )
        conn.executemany(
            "INSERT INTO staged_pha_participants (id, assignment_id, level, broker_id, "
            "schedule_code, commission_rate) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (p.id, p.assignment_id, p.level, p.broker_id, p.schedule_code, _dec(p.commission_rate))
                for p in output.pha_participants
            ],
        )
        conn.executemany(
            "INSERT INTO staged_commission_assignments (id, group_id, source_broker_id, "
            "recipient_broker_id, effective_from) VALUES (?, ?, ?, ?, ?)",
            [
                (a.id, a.group_id, a.source_broker_id, a.recipient_broker_id, a.effective_from.isoformat())
                for a in output.commission_assignments
            ],
        )

    def staged_group_ids(self) -> list[str]:
        return [row["group_id"] for row in self._query("SELECT group_id FROM staged_groups ORDER BY group_id")]

    def load_staged(self, group_id: str) -> StagedOutput:
        """Read back every staged record of one group."""
        output = StagedOutput()
        if self._query("SELECT 1 FROM staged_groups WHERE group_id = ?", (group_id,)):
            output.group_ids.append(group_id)
        statuses = self._query(
            "SELECT status FROM staged_group_statuses WHERE group_id = ? ORDER BY position",
            (group_id,),
        )
        if statuses:
            output.status_filters[group_id] = tuple(row["status"] for row in statuses)

        codes: dict[tuple[str, int], list[str]] = {}
        for row in self._query(
            "SELECT pp.proposal_id, pp.product_code FROM staged_proposal_products pp "
            "JOIN staged_proposals p ON p.id = pp.proposal_id WHERE p.group_id = ?",
            (group_id,),
        ):
            codes.setdefault(("product", row["proposal_id"]), []).append(row["product_code"])
        for row in self._query(
            "SELECT pl.proposal_id, pl.plan_code FROM staged_proposal_plans pl "
            "JOIN staged_proposals p ON p.id = pl.proposal_id WHERE p.group_id = ?",
            (group_id,),
        ):
            codes.setdefault(("plan", row["proposal_id"]), []).append(row["plan_code"])
        members: dict[int, list[str]] = {}
        for row in self._query(
            "SELECT pc.proposal_id, pc.certificate_id FROM staged_proposal_certificates pc "
            "JOIN staged_proposals p ON p.id = pc.proposal_id WHERE p.group_id = ?",
            (group_id,),
        ):
            members.setdefault(row["proposal_id"], []).append(row["certificate_id"])

        for row in self._query(
            "SELECT * FROM staged_proposals WHERE group_id = ? ORDER BY id", (group_id,)
        ):
            pid = row["id"]
            output.proposals.append(
                Proposal(
                    id=pid,
                    group_id=row["group_id"],
                    effective_from=date.fromisoformat(row["effective_from"]),
                    effective_to=date.fromisoformat(row["effective_to"]),
                    product_filter=(
                        CodeFilter.wildcard() if row["product_wildcard"]
                        else CodeFilter.exact(codes.get(("product", pid), []))
                    ),
                    plan_filter=(
                        CodeFilter.wildcard() if row["plan_wildcard"]
                        else CodeFilter.exact(codes.get(("plan", pid), []))
                    ),
                    fingerprint_digest=row["fingerprint_digest"],
                    certificate_ids=tuple(sorted(members.get(pid, []))),
                    status=ProposalStatus(row["status"]),
                    writing_broker_id=row["writing_broker_id"],
                )
            )

        for row in self._query(
            "SELECT * FROM staged_hierarchies WHERE group_id = ? ORDER BY id", (group_id,)
        ):
            output.hierarchies.append(Hierarchy(
                id=row["id"], group_id=row["group_id"], proposal_id=row["proposal_id"],
                split_sequence=row["split_sequence"], writing_broker_id=row["writing_broker_id"],
                name=row["name"],
            ))
        for row in self._query(
            "SELECT v.* FROM staged_hierarchy_versions v "
            "JOIN staged_hierarchies h ON h.id = v.hierarchy_id WHERE h.group_id = ? ORDER BY v.id",
            (group_id,),
        ):
            output.hierarchy_versions.append(HierarchyVersion(
                id=row["id"], hierarchy_id=row["hierarchy_id"],
                effective_from=date.fromisoformat(row["effective_from"]),
                effective_to=date.fromisoformat(row["effective_to"]),
                version_number=row["version_number"], status=VersionStatus(row["status"]),
            ))
        for row in self._query(
            "SELECT hp.* FROM staged_hierarchy_participants hp "
            "JOIN staged_hierarchy_versions v ON v.id = hp.version_id "
            "JOIN staged_hierarchies h ON h.id = v.hierarchy_id WHERE h.group_id = ? ORDER BY hp.id",
            (group_id,),
        ):
            output.hierarchy_participants.append(HierarchyParticipant(
                id=row["id"], version_id=row["version_id"], level=row["level"],
                broker_id=row["broker_id"], schedule_code=row["schedule_code"],
                commission_rate=_to_dec(row["commission_rate"]), broker_name=row["broker_name"],
            ))
        for row in self._query(
            "SELECT * FROM staged_split_versions WHERE group_id = ? ORDER BY id", (group_id,)
        ):
            output.split_versions.append(PremiumSplitVersion(
                id=row["id"], proposal_id=row["proposal_id"], group_id=row["group_id"],
                total_percent=Decimal(row["total_percent"]),
                effective_from=date.fromisoformat(row["effective_from"]),
                effective_to=date.fromisoformat(row["effective_to"]),
                status=VersionStatus(row["status"]),
            ))
        for row in self._query(
            "SELECT sp.* FROM staged_split_participants sp "
            "JOIN staged_split_versions v ON v.id = sp.version_id WHERE v.group_id = ? ORDER BY sp.id",
            (group_id,),
        ):
            output.split_participants.append(PremiumSplitParticipant(
                id=row["id"], version_id=row["version_id"], sequence=row["sequence"],
                broker_id=row["broker_id"], split_percent=Decimal(row["split_percent"]),
                hierarchy_id=row["hierarchy_id"],
            ))
        for row in self._query(
            "SELECT * FROM staged_pha WHERE group_id = ? ORDER BY id", (group_id,)
        ):
            output.pha_records.append(PolicyHierarchyAssignment(
                id=row["id"], certificate_id=row["certificate_id"], group_id=row["group_id"],
                split_sequence=row["split_sequence"], split_percent=Decimal(row["split_percent"]),
                writing_broker_id=row["writing_broker_id"], reason=PhaReason(row["reason"]),
                non_conforming=bool(row["non_conforming"]),
            ))
        for row in self._query(
            "SELECT pp.* FROM staged_pha_participants pp "
            "JOIN staged_pha r ON r.id = pp.assignment_id WHERE r.group_id = ? ORDER BY pp.id",
            (group_id,),
        ):
            output.pha_participants.append(PolicyHierarchyParticipant(
                id=row["id"], assignment_id=row["assignment_id"], level=row["level"],
                broker_id=row["broker_id"], schedule_code=row["schedule_code"],
                commission_rate=_to_dec(row["commission_rate"]),
            ))
        for row in self._query(
            "SELECT * FROM staged_commission_assignments WHERE group_id = ? ORDER BY id", (group_id,)
        ):
            output.commission_assignments.append(CommissionAssignment(
                id=row["id"], group_id=row["group_id"], source_broker_id=row["source_broker_id"],
                recipient_broker_id=row["recipient_broker_id"],
                effective_from=date.fromisoformat(row["effective_from"]),
            ))
        return output

    def match_proposals(
        self, group_id: str, statuses: Optional[Sequence[str]] = None
    ) -> dict[str, list[int]]:
        sql = _MATCH_SQL
        params: list[Any] = [group_id, group_id, group_id]
        if statuses is not None:
            sql += f"  AND c.status IN ({_placeholders(statuses)})\n"
            params.extend(statuses)
        sql += "ORDER BY c.certificate_id, p.id"
        result: dict[str, list[int]] = {}
        for row in self._query(sql, params):
            matches = result.setdefault(row[0], [])
            if row[1] is not None:
                matches.append(int(row[1]))
        return result

    def known_schedule_codes(self) -> set[str]:
        return {row["schedule_code"] for row in self._query("SELECT schedule_code FROM schedules")}
