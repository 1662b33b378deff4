"""
ProposalPilot Migration Config Schema

Pydantic model for validating migration run configuration files.

The four classification thresholds are required: there is no default that
would be safe across migrations, so a missing value must fail the run
before any group is processed. Keys may be written in snake_case or in
camelCase (highEntropyUniqueRatio, phaClusterSizeThreshold, ...).
"""
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class MigrationConfigSchema(BaseModel):
    """Schema for a migration configuration mapping."""

    # Classification thresholds (required)
    high_entropy_unique_ratio: float = Field(
        ..., ge=0.0, le=1.0,
        description="Distinct fingerprints / certificates at or above which a group is high entropy",
    )
    high_entropy_shannon: float = Field(
        ..., ge=0.0,
        description="Shannon entropy in bits at or above which a group is high entropy",
    )
    dominant_coverage_threshold: float = Field(
        ..., ge=0.0, le=1.0,
        description="Minimum largest-cluster share for a group to have a shared template",
    )
    pha_cluster_size_threshold: int = Field(
        ..., ge=1,
        description="Minimum certificates in a cluster for it to be templated",
    )

    # Diagnostics
    log_entropy_by_group: bool = Field(False, description="Log group statistics at INFO")

    # Regime and outlier handling
    outlier_minority_fraction: float = Field(
        0.05, ge=0.0, le=1.0,
        description="Proposals covering less than this share of the group are discarded",
    )
    regime_gap_tolerance_days: int = Field(
        365, ge=0,
        description="A gap between member dates longer than this starts a new regime",
    )

    # Synthesis
    wildcard_min_distinct: int = Field(
        2, ge=2,
        description="Distinct product or plan codes at which a filter becomes a wildcard",
    )
    widen_date_ranges: bool = Field(
        True, description="Extend proposal date ranges to the group's operative window",
    )

    # Runner
    batch_size: int = Field(100, ge=1, description="Groups per batch")
    max_workers: int = Field(4, ge=1, description="Planning threads per batch")
    certificate_statuses: list[str] = Field(
        default_factory=lambda: ["A"],
        min_length=1,
        description="Certificate status codes selected for migration",
    )

    @field_validator("certificate_statuses")
    @classmethod
    def validate_statuses(cls, v: list[str]) -> list[str]:
        """Status codes are non-blank and stored upper case."""
        cleaned = [s.strip().upper() for s in v]
        if any(not s for s in cleaned):
            raise ValueError("certificate status codes must not be blank")
        return cleaned

    model_config = {
        "extra": "forbid",  # Reject unknown keys
        "alias_generator": to_camel,
        "populate_by_name": True,
    }
