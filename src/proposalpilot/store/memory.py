"""
ProposalPilot In-Memory Store

Dict-backed implementation of every store protocol. Used by tests, by the
HTTP service (one store per request) and for dry runs.

Proposal matching goes through proposalpilot.engine.matching, the same
predicates the synthesizer verifies against.
"""
from __future__ import annotations

import threading
from collections import defaultdict
from typing import Iterable, Mapping, Optional, Sequence

from ..engine.matching import matching_proposals
from ..models import Certificate, EntityKind, StagedOutput


class InMemoryStore:
    """
    In-memory certificate source, PHA registry and staging area.

    Usage:
        store = InMemoryStore(certificates, existing_pha={"G1": {"C9"}})
        runner = MigrationRunner(store, config)
    """

    def __init__(
        self,
        certificates: Iterable[Certificate] = (),
        existing_pha: Optional[Mapping[str, Iterable[str]]] = None,
        watermarks: Optional[Mapping[EntityKind, int]] = None,
        schedule_codes: Iterable[str] = (),
    ):
        self._lock = threading.RLock()
        self._certificates: dict[str, Certificate] = {}
        self._existing_pha: dict[str, set[str]] = defaultdict(set)
        self._watermarks: dict[EntityKind, int] = dict(watermarks or {})
        self._schedule_codes: set[str] = set(schedule_codes)
        self._staged = StagedOutput()
        self.add_certificates(certificates)
        for group_id, ids in (existing_pha or {}).items():
            self.add_existing_pha(group_id, ids)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def add_certificates(self, certificates: Iterable[Certificate]) -> None:
        with self._lock:
            for cert in certificates:
                self._certificates[cert.certificate_id] = cert

    def add_existing_pha(self, group_id: str, certificate_ids: Iterable[str]) -> None:
        with self._lock:
            self._existing_pha[group_id].update(certificate_ids)

    def set_watermark(self, kind: EntityKind, value: int) -> None:
        with self._lock:
            self._watermarks[kind] = value

    def add_schedule_codes(self, codes: Iterable[str]) -> None:
        with self._lock:
            self._schedule_codes.update(codes)

    # -------------------------------------------------------------------------
    # CertificateSource / PhaRegistry / IdentifierStore
    # -------------------------------------------------------------------------

    def list_group_ids(self, statuses: Optional[Sequence[str]] = None) -> list[str]:
        with self._lock:
            return sorted({
                c.group_id for c in self._certificates.values()
                if statuses is None or c.status in statuses
            })

    def load_certificates(
        self,
        group_filter: Optional[Sequence[str]] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> list[Certificate]:
        groups = set(group_filter) if group_filter is not None else None
        with self._lock:
            selected = [
                c for c in self._certificates.values()
                if (groups is None or c.group_id in groups)
                and (statuses is None or c.status in statuses)
            ]
        return sorted(selected, key=lambda c: (c.group_id, c.certificate_id))

    def load_existing_pha(self, group_id: str) -> set[str]:
        with self._lock:
            return set(self._existing_pha.get(group_id, ()))

    def current_max_identifier(self, kind: EntityKind) -> int:
        with self._lock:
            staged = self._staged.identifiers(kind)
            return max([self._watermarks.get(kind, 0), *staged])

    # -------------------------------------------------------------------------
    # Staging
    # -------------------------------------------------------------------------

    def write_staged_output(self, output: StagedOutput) -> None:
        with self._lock:
            staged = self._staged.without_groups(output.group_ids)
            staged.extend(output)
            self._staged = staged

    def staged_group_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._staged.group_ids)

    def load_staged(self, group_id: str) -> StagedOutput:
        with self._lock:
            return self._staged.for_group(group_id)

    def match_proposals(
        self, group_id: str, statuses: Optional[Sequence[str]] = None
    ) -> dict[str, list[int]]:
        with self._lock:
            staged = self._staged.for_group(group_id)
            excluded = self._existing_pha.get(group_id, set()) | staged.pha_certificate_ids
            certificates = [
                c for c in self._certificates.values()
                if c.group_id == group_id and c.certificate_id not in excluded
                and (statuses is None or c.status in statuses)
            ]
        return {
            cert.certificate_id: sorted(p.id for p in matching_proposals(cert, staged.proposals))
            for cert in sorted(certificates, key=lambda c: c.certificate_id)
        }

    def known_schedule_codes(self) -> set[str]:
        with self._lock:
            return set(self._schedule_codes)
