"""
ProposalPilot Identifier Allocator

The only path for minting surrogate identifiers. Seeded exactly once per
run from the target store's current maxima, then hands out max + 1,
max + 2, ... per EntityKind under a lock.
"""
from __future__ import annotations

import logging
import threading
from typing import Mapping, Optional, Protocol

from ..exceptions import IdentifierAllocationError
from ..models import EntityKind


logger = logging.getLogger(__name__)


class MaxIdentifierSource(Protocol):
    def current_max_identifier(self, kind: EntityKind) -> int: ...


class IdentifierAllocator:
    """
    Monotonic per-kind surrogate key counter.

    Usage:
        allocator = IdentifierAllocator()
        allocator.seed_from(store)          # exactly once
        proposal_id = allocator.next(EntityKind.PROPOSAL)
    """

    def __init__(self) -> None:
        self._counters: Optional[dict[EntityKind, int]] = None
        self._seeds: dict[EntityKind, int] = {}
        self._lock = threading.Lock()

    @property
    def is_seeded(self) -> bool:
        return self._counters is not None

    def seed(self, maxima: Optional[Mapping[EntityKind, int]] = None) -> None:
        """
        Seed every counter from the current maximum per kind.

        Kinds absent from `maxima` start from 0 (first id 1).

        Raises:
            IdentifierAllocationError: If already seeded, or a maximum is negative
        """
        maxima = dict(maxima or {})
        with self._lock:
            if self._counters is not None:
                raise IdentifierAllocationError(
                    message="Identifier allocator seeded twice",
                    details={"seeds": {k.value: v for k, v in self._seeds.items()}},
                )
            counters: dict[EntityKind, int] = {}
            for kind in EntityKind:
                value = int(maxima.get(kind, 0) or 0)
                if value < 0:
                    raise IdentifierAllocationError(
                        message=f"Negative maximum identifier for {kind.value}",
                        details={"kind": kind.value, "value": value},
                    )
                counters[kind] = value
            self._counters = counters
            self._seeds = dict(counters)
        logger.info(
            "Identifier allocator seeded: %s",
            ", ".join(f"{k.value}={v}" for k, v in self._seeds.items()),
        )

    def seed_from(self, source: MaxIdentifierSource) -> None:
        """Seed from a store's current_max_identifier(kind) for every kind."""
        self.seed({kind: source.current_max_identifier(kind) for kind in EntityKind})

    def next(self, kind: EntityKind) -> int:
        """
        Mint the next identifier for `kind`.

        Raises:
            IdentifierAllocationError: If called before seed()
        """
        with self._lock:
            if self._counters is None:
                raise IdentifierAllocationError(
                    message=f"Identifier requested for {kind.value} before seeding",
                    details={"kind": kind.value},
                )
            self._counters[kind] += 1
            return self._counters[kind]

    def peek(self, kind: EntityKind) -> int:
        """The last identifier minted (or the seed) for `kind`."""
        with self._lock:
            if self._counters is None:
                raise IdentifierAllocationError(
                    message="Identifier allocator not seeded",
                    details={"kind": kind.value},
                )
            return self._counters[kind]

    def minted(self) -> dict[str, int]:
        """Number of identifiers minted per kind since seeding."""
        with self._lock:
            if self._counters is None:
                return {}
            return {
                kind.value: self._counters[kind] - self._seeds[kind]
                for kind in EntityKind
            }
