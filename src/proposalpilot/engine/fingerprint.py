"""
ProposalPilot Fingerprint Canonicalizer

Converts a certificate's split configuration into a canonical structure and
a SHA-256 content hash.

Canonical form:
- splits ordered by sequence number (the number itself is not hashed)
- each split: normalized percent and the ordered tier list
- each tier: broker id and normalized schedule (schedule code, or direct
  rate rendered as "<rate>%")
- certificate identity, broker names and paid-broker ids are not hashed

Two certificates whose splits differ only in tier order are different
fingerprints. A certificate with no splits gets EMPTY_FINGERPRINT.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional, Sequence

from ..canon import canonical_json, decimal_token, text_hash
from ..exceptions import HashCollisionError
from ..models import (
    EMPTY_FINGERPRINT,
    Certificate,
    Fingerprint,
    ScheduleRef,
    SplitEntry,
    SplitKey,
    Tier,
    TierKey,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Canonical Structure
# =============================================================================

def normalize_schedule(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a raw schedule string for hashing.

        >>> normalize_schedule(" SCH-1 ")
        'SCH-1'
        >>> normalize_schedule("5.50")
        '5.5%'
    """
    ref = ScheduleRef.parse(raw)
    if ref.rate is not None:
        return f"{decimal_token(ref.rate)}%"
    return ref.code


def tier_key(tier: Tier) -> TierKey:
    return TierKey(broker_id=tier.broker_id.strip(), schedule=normalize_schedule(tier.schedule))


def split_key(split: SplitEntry) -> SplitKey:
    return SplitKey(percent=split.percent, tiers=tuple(tier_key(t) for t in split.tiers))


def canonical_structure(keys: Sequence[SplitKey]) -> list[dict]:
    """The JSON-ready structure that is hashed."""
    return [
        {
            "pct": decimal_token(key.percent),
            "tiers": [{"broker": t.broker_id, "schedule": t.schedule} for t in key.tiers],
        }
        for key in keys
    ]


def compute_fingerprint(splits: Iterable[SplitEntry]) -> Fingerprint:
    """
    Fingerprint a split configuration.

    Pure function: the same splits always give the same fingerprint.
    """
    ordered = sorted(splits, key=lambda s: s.sequence)
    if not ordered:
        return EMPTY_FINGERPRINT
    keys = tuple(split_key(s) for s in ordered)
    canonical = canonical_json(canonical_structure(keys))
    return Fingerprint(splits=keys, canonical=canonical, digest=text_hash(canonical))


def fingerprint_certificate(certificate: Certificate) -> Fingerprint:
    return compute_fingerprint(certificate.splits)


# =============================================================================
# Collision Registry
# =============================================================================

class FingerprintRegistry:
    """
    Per-run record of digest -> canonical text.

    SHA-256 collisions are not expected in practice; the registry turns one
    into a hard HashCollisionError instead of silently merging two different
    structures into one cluster. Safe to share between planning threads.

    Usage:
        registry = FingerprintRegistry()
        fp = registry.fingerprint(certificate)
    """

    def __init__(self) -> None:
        self._canonical: dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, fingerprint: Fingerprint, group_id: Optional[str] = None) -> Fingerprint:
        with self._lock:
            seen = self._canonical.setdefault(fingerprint.digest, fingerprint.canonical)
        if seen != fingerprint.canonical:
            raise HashCollisionError(
                message=f"Digest {fingerprint.short} produced by two different split structures",
                details={
                    "digest": fingerprint.digest,
                    "first": seen,
                    "second": fingerprint.canonical,
                },
                group_id=group_id,
            )
        return fingerprint

    def fingerprint(self, certificate: Certificate) -> Fingerprint:
        return self.register(fingerprint_certificate(certificate), certificate.group_id)

    def __len__(self) -> int:
        return len(self._canonical)

    def __contains__(self, digest: object) -> bool:
        return digest in self._canonical


def fingerprint_group(
    certificates: Iterable[Certificate],
    registry: Optional[FingerprintRegistry] = None,
) -> dict[str, Fingerprint]:
    """Fingerprint each certificate; returns certificate_id -> Fingerprint."""
    result: dict[str, Fingerprint] = {}
    for cert in certificates:
        if registry is not None:
            result[cert.certificate_id] = registry.fingerprint(cert)
        else:
            result[cert.certificate_id] = fingerprint_certificate(cert)
    return result
