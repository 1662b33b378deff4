"""
ProposalPilot Engine

Core services for commission structure classification and synthesis.

Services:
- Fingerprint canonicalizer: canonical split structure + SHA-256 digest
- Group statistics analyzer: clusters, unique ratio, entropy, coverage
- ClusterClassifier: templated vs individualized per cluster
- ProposalSynthesizer: Proposal / Hierarchy / PremiumSplit construction
- IdentifierAllocator: the single source of surrogate identifiers
- Regime segmentation and minority-floor routing
- Non-conformant case identification
- Pipeline: classify_and_synthesize and the MigrationRunner

Usage:
    from proposalpilot.engine import (
        IdentifierAllocator,
        MigrationRunner,
        classify_and_synthesize,
    )
"""
from __future__ import annotations

from .classifier import ClusterClassifier, classify_group
from .fingerprint import (
    FingerprintRegistry,
    compute_fingerprint,
    fingerprint_certificate,
    fingerprint_group,
    normalize_schedule,
)
from .identifiers import IdentifierAllocator
from .matching import (
    date_in_range,
    filter_accepts,
    filters_overlap,
    matching_proposals,
    proposal_matches,
    proposals_conflict,
    ranges_overlap,
)
from .nonconformant import Exclusions, identify_non_conformant, is_invalid_group_id
from .pipeline import (
    GroupPlan,
    GroupResult,
    MigrationRunner,
    RunSummary,
    build_pha_records,
    classify_and_synthesize,
    materialize_plan,
    plan_group,
)
from .regimes import below_minority_floor, route_outliers, segment_regimes
from .statistics import build_clusters, compute_group_statistics, shannon_entropy
from .synthesizer import (
    ProposalBundle,
    ProposalDraft,
    ProposalSynthesizer,
    build_commission_assignments,
    latest_assignments,
)

__all__ = [
    # Fingerprint
    "FingerprintRegistry",
    "compute_fingerprint",
    "fingerprint_certificate",
    "fingerprint_group",
    "normalize_schedule",
    # Statistics
    "build_clusters",
    "compute_group_statistics",
    "shannon_entropy",
    # Classifier
    "ClusterClassifier",
    "classify_group",
    # Synthesizer
    "IdentifierAllocator",
    "ProposalBundle",
    "ProposalDraft",
    "ProposalSynthesizer",
    "build_commission_assignments",
    "latest_assignments",
    # Matching
    "date_in_range",
    "filter_accepts",
    "filters_overlap",
    "matching_proposals",
    "proposal_matches",
    "proposals_conflict",
    "ranges_overlap",
    # Regimes / outliers
    "below_minority_floor",
    "route_outliers",
    "segment_regimes",
    # Non-conformant
    "Exclusions",
    "identify_non_conformant",
    "is_invalid_group_id",
    # Pipeline
    "GroupPlan",
    "GroupResult",
    "MigrationRunner",
    "RunSummary",
    "build_pha_records",
    "classify_and_synthesize",
    "materialize_plan",
    "plan_group",
]
