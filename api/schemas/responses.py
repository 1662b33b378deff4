"""Response schemas for the API."""

from typing import Any, Optional

from pydantic import BaseModel


class GroupOutcome(BaseModel):
    """Classification outcome for one group."""
    group_id: str
    statistics: dict[str, Any]
    proposals: int
    templated_certificates: int
    pha_certificates: int
    existing_pha: int
    pha_reasons: dict[str, int]
    inconsistencies: list[dict[str, Any]] = []


class FailureOut(BaseModel):
    """A batch that could not be processed."""
    code: str
    message: str
    group_ids: list[str]
    details: dict[str, Any] = {}


class ValidationOut(BaseModel):
    """Completeness and ambiguity result for one group."""
    group_id: str
    passed: bool
    non_pha_count: int
    unmatched_count: int
    overlapping_count: int
    ownership_conflicts: int
    unmatched_samples: list[str] = []
    overlapping_samples: list[str] = []
    ownership_samples: list[str] = []
    chain: Optional[dict[str, Any]] = None
    content: Optional[dict[str, Any]] = None
    readiness: Optional[dict[str, Any]] = None


class ClassifyResponse(BaseModel):
    """Response from POST /classify."""
    run_id: str
    processed_groups: list[str]
    failures: list[FailureOut]
    groups: list[GroupOutcome]
    summary: dict[str, int]
    identifiers_minted: dict[str, int]
    staged: dict[str, Any]
    validation: Optional[list[ValidationOut]] = None


class ValidateResponse(BaseModel):
    """Response from POST /validate."""
    passed: bool
    summary: dict[str, Any]
    reports: list[ValidationOut]
