"""
ProposalPilot Store Interfaces

The collaborator contracts the engine and validator consume. Any object
implementing these methods can back a migration run; InMemoryStore and
SqliteStore are the two shipped implementations.
"""
from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..models import Certificate, EntityKind, StagedOutput


class CertificateSource(Protocol):
    def list_group_ids(self, statuses: Optional[Sequence[str]] = None) -> list[str]:
        """Every group with at least one certificate in `statuses`."""
        ...

    def load_certificates(
        self,
        group_filter: Optional[Sequence[str]] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> list[Certificate]:
        """Certificates of the given groups (all groups when None)."""
        ...


class PhaRegistry(Protocol):
    def load_existing_pha(self, group_id: str) -> set[str]:
        """Certificate ids already holding pre-existing PHA records."""
        ...


class IdentifierStore(Protocol):
    def current_max_identifier(self, kind: EntityKind) -> int:
        """Highest identifier of `kind` already present in the target."""
        ...


class StagedOutputWriter(Protocol):
    def write_staged_output(self, output: StagedOutput) -> None:
        """Persist output, replacing prior staging of output.group_ids."""
        ...


class StagedOutputReader(Protocol):
    def staged_group_ids(self) -> list[str]:
        """Every group with staged output, including groups that produced no records."""
        ...

    def load_staged(self, group_id: str) -> StagedOutput:
        ...

    def match_proposals(
        self, group_id: str, statuses: Optional[Sequence[str]] = None
    ) -> dict[str, list[int]]:
        """
        Non-PHA certificates of the group -> ids of staged Proposals matching it.

        Non-PHA means in neither the pre-existing nor the staged PHA records.
        Only certificates in `statuses` are considered (all when None).
        Every such certificate is a key, with an empty list when unmatched.
        """
        ...

    def known_schedule_codes(self) -> set[str]:
        ...


class MigrationStore(
    CertificateSource,
    PhaRegistry,
    IdentifierStore,
    StagedOutputWriter,
    StagedOutputReader,
    Protocol,
):
    """Everything a full run plus validation needs."""
