"""
ProposalPilot Stores

    from proposalpilot.store import InMemoryStore, SqliteStore
"""
from __future__ import annotations

from .interfaces import (
    CertificateSource,
    IdentifierStore,
    MigrationStore,
    PhaRegistry,
    StagedOutputReader,
    StagedOutputWriter,
)
from .memory import InMemoryStore
from .sqlite import SqliteStore, assemble_certificates, certificate_rows

__all__ = [
    "CertificateSource",
    "IdentifierStore",
    "MigrationStore",
    "PhaRegistry",
    "StagedOutputReader",
    "StagedOutputWriter",
    "InMemoryStore",
    "SqliteStore",
    "assemble_certificates",
    "certificate_rows",
]
