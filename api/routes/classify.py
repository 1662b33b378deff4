"""Classification and synthesis endpoint."""

from fastapi import APIRouter, HTTPException

from api.schemas.requests import ClassifyRequest
from api.schemas.responses import ClassifyResponse, FailureOut, GroupOutcome, ValidationOut
from api.schemas.staged import dump_staged
from proposalpilot.config import config_from_dict
from proposalpilot.engine import MigrationRunner
from proposalpilot.exceptions import ConfigurationError
from proposalpilot.models import EntityKind
from proposalpilot.store import InMemoryStore
from proposalpilot.validation import CompletenessValidator

router = APIRouter(prefix="/classify", tags=["Classification"])


def _seed(raw: dict[str, int]) -> dict[EntityKind, int]:
    try:
        return {EntityKind(kind): value for kind, value in raw.items()}
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown entity kind in identifier_seed: {e}. "
                   f"Available: {[k.value for k in EntityKind]}",
        )


@router.post("", response_model=ClassifyResponse)
async def classify(request: ClassifyRequest):
    """
    Classify the posted certificates and synthesize their structures.

    Stateless: an in-memory store is built from the request, identifiers
    start after `identifier_seed`, and the complete staged output is
    returned. Pass the `staged` field back to POST /validate to re-check it.
    """
    try:
        config = config_from_dict(request.config)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())

    store = InMemoryStore(
        certificates=[c.to_model() for c in request.certificates],
        existing_pha=request.existing_pha,
        watermarks=_seed(request.identifier_seed),
        schedule_codes=request.schedule_codes,
    )
    summary = MigrationRunner(store, config).run(groups=request.groups)

    validation = None
    if request.validate_output:
        reports = CompletenessValidator(store, config.certificate_statuses).validate(
            summary.processed_groups, deep=request.deep
        )
        validation = [ValidationOut(**r.to_dict()) for r in reports]

    return ClassifyResponse(
        run_id=summary.run_id,
        processed_groups=summary.processed_groups,
        failures=[
            FailureOut(code=f.code, message=f.message, group_ids=f.group_ids, details=f.details)
            for f in summary.failures
        ],
        groups=[
            GroupOutcome(**summary.results[g].to_dict())
            for g in summary.processed_groups
        ],
        summary=summary.output.summary(),
        identifiers_minted=summary.identifiers_minted,
        staged=dump_staged(summary.output),
        validation=validation,
    )
