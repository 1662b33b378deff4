"""Completeness and ambiguity validation endpoint."""

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError as PydanticValidationError

from api.schemas.requests import ValidateRequest
from api.schemas.responses import ValidateResponse, ValidationOut
from api.schemas.staged import load_staged
from proposalpilot.store import InMemoryStore
from proposalpilot.validation import CompletenessValidator, summarize

router = APIRouter(prefix="/validate", tags=["Validation"])


@router.post("", response_model=ValidateResponse)
async def validate_staged(request: ValidateRequest):
    """
    Validate posted staged output against posted certificates.

    Checks that every certificate not covered by PHA records matches
    exactly one Proposal, and that no certificate is owned twice. With
    `deep`, also checks the structure chain, broker and schedule content,
    and readiness flags.
    """
    try:
        staged = load_staged(request.staged)
    except PydanticValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid staged output: {e.error_count()} errors")

    store = InMemoryStore(
        certificates=[c.to_model() for c in request.certificates],
        existing_pha=request.existing_pha,
        schedule_codes=request.schedule_codes,
    )
    store.write_staged_output(staged)

    statuses = [s.strip().upper() for s in request.statuses] if request.statuses else None
    groups = request.groups or store.staged_group_ids()
    reports = CompletenessValidator(store, statuses).validate(groups, deep=request.deep)

    return ValidateResponse(
        passed=all(r.passed for r in reports),
        summary=summarize(reports),
        reports=[ValidationOut(**r.to_dict()) for r in reports],
    )
