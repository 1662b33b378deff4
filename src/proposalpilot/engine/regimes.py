"""
ProposalPilot Regime Segmentation & Outlier Router

Regimes: a templated cluster whose member effective dates contain a gap
longer than the configured tolerance is split at that gap. Each side is a
separate candidate (e.g. the same hierarchy used in 2012 and again from 2019
is two Proposals, not one spanning the years in between).

A gap exactly equal to the tolerance stays within one regime.

Outliers: after synthesis, a Proposal covering fewer than
outlier_minority_fraction of the group's certificates is discarded and its
members go to PHA.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Sequence, TypeVar

from ..models import Certificate


logger = logging.getLogger(__name__)

T = TypeVar("T")


def segment_regimes(members: Sequence[Certificate], tolerance: timedelta) -> list[list[Certificate]]:
    """
    Split cluster members into date regimes.

    Args:
        members: Certificates of one cluster
        tolerance: Largest gap between consecutive distinct dates that
            does not start a new regime

    Returns:
        Regimes in date order, each sorted by (effective_date, certificate_id)
    """
    ordered = sorted(members, key=lambda c: (c.effective_date, c.certificate_id))
    regimes: list[list[Certificate]] = []
    for cert in ordered:
        if regimes and cert.effective_date - regimes[-1][-1].effective_date <= tolerance:
            regimes[-1].append(cert)
        else:
            regimes.append([cert])
    if len(regimes) > 1:
        logger.debug(
            "Cluster of %d split into %d regimes: %s",
            len(ordered),
            len(regimes),
            ", ".join(f"{r[0].effective_date}..{r[-1].effective_date}({len(r)})" for r in regimes),
        )
    return regimes


def minority_floor(group_total: int, fraction: float) -> float:
    """Smallest certificate count a Proposal may cover."""
    return group_total * fraction


def below_minority_floor(size: int, group_total: int, fraction: float) -> bool:
    """
    True if a Proposal of `size` covers less than `fraction` of the group.

        >>> below_minority_floor(3, 100, 0.05)
        True
        >>> below_minority_floor(5, 100, 0.05)
        False
    """
    if group_total <= 0:
        return False
    return size < minority_floor(group_total, fraction)


def route_outliers(
    candidates: Sequence[T],
    sizes: Sequence[int],
    group_total: int,
    fraction: float,
) -> tuple[list[T], list[T]]:
    """
    Partition candidates into (kept, discarded) by the minority floor.

    `sizes[i]` is the certificate count of `candidates[i]`.
    """
    kept: list[T] = []
    discarded: list[T] = []
    for candidate, size in zip(candidates, sizes):
        if below_minority_floor(size, group_total, fraction):
            discarded.append(candidate)
        else:
            kept.append(candidate)
    return kept, discarded
