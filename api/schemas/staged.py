"""JSON form of staged output, shared by /classify (out) and /validate (in)."""

from typing import Any

from pydantic import TypeAdapter

from proposalpilot.models import StagedOutput


STAGED_ADAPTER = TypeAdapter(StagedOutput)


def dump_staged(output: StagedOutput) -> dict[str, Any]:
    """Dates as ISO strings, decimals as strings, enums as values."""
    return STAGED_ADAPTER.dump_python(output, mode="json")


def load_staged(data: dict[str, Any]) -> StagedOutput:
    """
    Rebuild StagedOutput from its JSON form.

    Raises:
        pydantic.ValidationError: If a record is malformed
    """
    return STAGED_ADAPTER.validate_python(data)
