"""
ProposalPilot Validation

    from proposalpilot.validation import CompletenessValidator, raise_for_failures
"""
from __future__ import annotations

from .validator import (
    CompletenessValidator,
    raise_for_failures,
    summarize,
    validate,
)

__all__ = [
    "CompletenessValidator",
    "raise_for_failures",
    "summarize",
    "validate",
]
