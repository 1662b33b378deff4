"""
ProposalPilot: Commission Structure Classification and Synthesis Engine

Migrates historical certificate-level commission split data into a
rule-based commission model. Every certificate's split configuration is
reduced to a canonical fingerprint; fingerprints are clustered per employer
group and the clusters are classified:

- Templated clusters become shared Proposals with their premium split
  versions, hierarchies and hierarchy participants
- Everything else is routed to per-certificate Policy Hierarchy
  Assignments (PHA) with a recorded reason

A completeness validator then re-derives coverage from the store: every
non-PHA certificate must match exactly one Proposal.

Core Principles:
1. Determinism: same input and config yield byte-identical staged output
2. Exclusivity: each certificate is covered by one Proposal or by PHA
3. Evidence: every PHA record carries the reason it exists

Usage:
    from proposalpilot import MigrationRunner, SqliteStore, load_config

    config = load_config("configs/migration.example.yaml")
    with SqliteStore("migration.db") as store:
        summary = MigrationRunner(store, config).run()
        reports = CompletenessValidator(store, config.certificate_statuses).validate(
            summary.processed_groups
        )
"""

__version__ = "0.1.0"
__author__ = "ProposalPilot"

# =============================================================================
# Configuration
# =============================================================================
from .config import MigrationConfig, config_from_dict, load_config

# =============================================================================
# Engine
# =============================================================================
from .engine import (
    ClusterClassifier,
    FingerprintRegistry,
    IdentifierAllocator,
    MigrationRunner,
    ProposalSynthesizer,
    RunSummary,
    classify_and_synthesize,
    compute_fingerprint,
    compute_group_statistics,
    plan_group,
)

# =============================================================================
# Stores and Validation
# =============================================================================
from .store import InMemoryStore, SqliteStore
from .validation import CompletenessValidator, raise_for_failures

# =============================================================================
# Errors
# =============================================================================
from .exceptions import (
    ConfigurationError,
    GroupProcessingFailure,
    HashCollisionError,
    IdentifierAllocationError,
    ProposalPilotError,
    StoreError,
    SynthesisInconsistency,
    ValidationFailure,
)

__all__ = [
    "__version__",
    # Configuration
    "MigrationConfig",
    "config_from_dict",
    "load_config",
    # Engine
    "ClusterClassifier",
    "FingerprintRegistry",
    "IdentifierAllocator",
    "MigrationRunner",
    "ProposalSynthesizer",
    "RunSummary",
    "classify_and_synthesize",
    "compute_fingerprint",
    "compute_group_statistics",
    "plan_group",
    # Stores and validation
    "InMemoryStore",
    "SqliteStore",
    "CompletenessValidator",
    "raise_for_failures",
    # Errors
    "ConfigurationError",
    "GroupProcessingFailure",
    "HashCollisionError",
    "IdentifierAllocationError",
    "ProposalPilotError",
    "StoreError",
    "SynthesisInconsistency",
    "ValidationFailure",
]
