"""
ProposalPilot Matching Rules

The predicates that decide whether a certificate falls under a Proposal:

- same group
- effective_from < certificate.effective_date <= effective_to
- product filter accepts the product code (exact list or wildcard)
- plan filter accepts the plan code (exact list or wildcard)

Used by synthesis self-verification and by the in-memory store. The SQLite
store expresses the same rule as one SQL query; the two must agree.
"""
from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol, TypeVar

from ..models import Certificate, CodeFilter


class ProposalLike(Protocol):
    """Anything carrying a proposal's matching attributes (drafts included)."""
    group_id: str
    effective_from: date
    effective_to: date
    product_filter: CodeFilter
    plan_filter: CodeFilter


P = TypeVar("P", bound=ProposalLike)


def date_in_range(effective_date: date, effective_from: date, effective_to: date) -> bool:
    """Half-open (from, to] membership."""
    return effective_from < effective_date <= effective_to


def filter_accepts(code_filter: CodeFilter, value: str) -> bool:
    if code_filter.codes is None:
        return True
    return value in code_filter.codes


def filters_overlap(a: CodeFilter, b: CodeFilter) -> bool:
    """True if some code value is accepted by both filters."""
    if a.codes is None or b.codes is None:
        return True
    return bool(a.codes & b.codes)


def ranges_overlap(a_from: date, a_to: date, b_from: date, b_to: date) -> bool:
    """True if two half-open (from, to] ranges share a day."""
    return a_from < b_to and b_from < a_to


def proposal_matches(proposal: ProposalLike, certificate: Certificate) -> bool:
    return (
        proposal.group_id == certificate.group_id
        and date_in_range(certificate.effective_date, proposal.effective_from, proposal.effective_to)
        and filter_accepts(proposal.product_filter, certificate.product_code)
        and filter_accepts(proposal.plan_filter, certificate.plan_code)
    )


def matching_proposals(certificate: Certificate, proposals: Iterable[P]) -> list[P]:
    return [p for p in proposals if proposal_matches(p, certificate)]


def proposals_conflict(a: ProposalLike, b: ProposalLike) -> bool:
    """True if some certificate could match both proposals."""
    return (
        a.group_id == b.group_id
        and ranges_overlap(a.effective_from, a.effective_to, b.effective_from, b.effective_to)
        and filters_overlap(a.product_filter, b.product_filter)
        and filters_overlap(a.plan_filter, b.plan_filter)
    )
