"""
ProposalPilot Non-Conformant Case Identifier

Runs once per group before fingerprinting and partitions the group's
certificates:

- already covered by pre-existing PHA records: removed from the pool, no
  new records (they keep their existing individualized treatment)
- routed straight to new PHA records:
    * no splits, or a split without tiers ("empty split configuration")
    * split percents not totalling 100 ("split percent mismatch")
    * every certificate of a group whose id is blank or all zeros,
      optionally G-prefixed ("invalid group")
- everything else: the pool handed to the statistics analyzer
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import AbstractSet, Iterable, Optional

from ..models import HUNDRED, Certificate, PhaReason


logger = logging.getLogger(__name__)

_INVALID_GROUP = re.compile(r"^G?0*$")


def is_invalid_group_id(group_id: str) -> bool:
    """
    True for placeholder group ids.

        >>> is_invalid_group_id("G0000")
        True
        >>> is_invalid_group_id("G1042")
        False
    """
    return bool(_INVALID_GROUP.match((group_id or "").strip().upper()))


def conformance_reason(certificate: Certificate) -> Optional[PhaReason]:
    """Why a single certificate cannot be templated, or None."""
    if not certificate.splits or any(not s.tiers for s in certificate.splits):
        return PhaReason.EMPTY_SPLITS
    if certificate.total_split_percent != HUNDRED:
        return PhaReason.SPLIT_PERCENT_MISMATCH
    return None


@dataclass
class Exclusions:
    """
    Outcome of the non-conformance pass for one group.

    Attributes:
        existing: Certificates already holding PHA records (no new records)
        routed: certificate_id -> reason for certificates going to new PHA
        pool: Certificates to fingerprint and classify
    """
    group_id: str
    existing: frozenset[str] = frozenset()
    routed: dict[str, PhaReason] = field(default_factory=dict)
    pool: list[Certificate] = field(default_factory=list)

    @property
    def excluded_ids(self) -> set[str]:
        return set(self.existing) | set(self.routed)


def identify_non_conformant(
    group_id: str,
    certificates: Iterable[Certificate],
    existing_pha: AbstractSet[str] = frozenset(),
) -> Exclusions:
    """
    Partition a group's certificates before classification.

    Args:
        group_id: Employer group
        certificates: All certificates loaded for the group
        existing_pha: Certificate ids already in the PHA store

    Returns:
        Exclusions for the group
    """
    certs = list(certificates)
    existing = frozenset(c.certificate_id for c in certs if c.certificate_id in existing_pha)
    result = Exclusions(group_id=group_id, existing=existing)

    invalid_group = is_invalid_group_id(group_id)
    for cert in certs:
        if cert.certificate_id in existing:
            continue
        if invalid_group:
            result.routed[cert.certificate_id] = PhaReason.INVALID_GROUP
            continue
        reason = conformance_reason(cert)
        if reason is not None:
            result.routed[cert.certificate_id] = reason
        else:
            result.pool.append(cert)

    if existing or result.routed:
        logger.debug(
            "Group %s: %d existing PHA, %d routed to PHA before classification, %d in pool",
            group_id, len(existing), len(result.routed), len(result.pool),
            extra={"group_id": group_id},
        )
    return result
