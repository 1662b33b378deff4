"""
ProposalPilot Certificate Models

Immutable input records: a certificate and its ordered commission splits.

A certificate carries one or more SplitEntries (who shares the premium and
at what percent). Each split carries an ordered list of Tiers: the writing
broker first, then each upline broker, each with the commission schedule
that applies at that level.

These records are never mutated by the engine.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional


HUNDRED = Decimal("100")

_RATE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*%?\s*$")


# =============================================================================
# Schedule Reference
# =============================================================================

@dataclass(frozen=True)
class ScheduleRef:
    """
    How a hierarchy participant is paid.

    Either a schedule code looked up in the schedule reference table, or a
    direct commission rate. Exactly one of the two is set for a non-empty
    reference.
    """
    code: Optional[str] = None
    rate: Optional[Decimal] = None

    @classmethod
    def parse(cls, raw: Optional[str]) -> ScheduleRef:
        """
        Interpret a raw schedule string from source data.

        Numeric values (optionally suffixed with %) are direct rates,
        anything else is a schedule code.

            >>> ScheduleRef.parse("5.5%")
            ScheduleRef(code=None, rate=Decimal('5.5'))
            >>> ScheduleRef.parse("SCH-12")
            ScheduleRef(code='SCH-12', rate=None)
        """
        if raw is None:
            return cls()
        text = raw.strip()
        if not text:
            return cls()
        match = _RATE_PATTERN.match(text)
        if match:
            try:
                return cls(rate=Decimal(match.group(1)))
            except InvalidOperation:
                pass
        return cls(code=text)

    @property
    def is_empty(self) -> bool:
        return self.code is None and self.rate is None


# =============================================================================
# Tier / Split / Certificate
# =============================================================================

@dataclass(frozen=True)
class Tier:
    """
    One level of a split's broker hierarchy.

    Attributes:
        broker_id: Broker at this level (writing broker at level 1), stripped
        schedule: Raw schedule string (code or direct rate)
        broker_name: Display name, not part of the fingerprint
        paid_broker_id: Broker actually paid when commission is assigned away
    """
    broker_id: str
    schedule: Optional[str] = None
    broker_name: Optional[str] = None
    paid_broker_id: Optional[str] = None

    def __post_init__(self) -> None:
        # Source rows pad broker ids; matching downstream is on the bare id.
        object.__setattr__(self, "broker_id", (self.broker_id or "").strip())
        if self.paid_broker_id is not None:
            object.__setattr__(self, "paid_broker_id", self.paid_broker_id.strip() or None)

    @property
    def schedule_ref(self) -> ScheduleRef:
        return ScheduleRef.parse(self.schedule)

    @property
    def is_assigned(self) -> bool:
        """True when commission for this tier is paid to a different broker."""
        return bool(self.paid_broker_id) and self.paid_broker_id != self.broker_id


@dataclass(frozen=True)
class SplitEntry:
    """
    A share of the certificate's premium and the hierarchy that earns it.

    Tier order is significant: tiers[0] is the writing broker.
    """
    sequence: int
    percent: Decimal
    tiers: tuple[Tier, ...] = ()

    @property
    def writing_broker_id(self) -> Optional[str]:
        return self.tiers[0].broker_id if self.tiers else None


@dataclass(frozen=True)
class Certificate:
    """
    An insurance certificate with its full historical split configuration.

    Attributes:
        certificate_id: Source certificate identifier
        group_id: Employer group
        product_code: Product the certificate was issued under
        plan_code: Plan within the product ("" when absent)
        effective_date: Certificate effective date
        status: Source status code, stripped and upper-cased
        splits: Ordered split entries
        situs_state: Issue state, informational
    """
    certificate_id: str
    group_id: str
    product_code: str
    plan_code: str
    effective_date: date
    status: str = "A"
    splits: tuple[SplitEntry, ...] = field(default_factory=tuple)
    situs_state: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", (self.status or "").strip().upper())

    @property
    def total_split_percent(self) -> Decimal:
        return sum((s.percent for s in self.splits), Decimal("0"))

    @property
    def ordered_splits(self) -> tuple[SplitEntry, ...]:
        """Splits ordered by sequence number."""
        return tuple(sorted(self.splits, key=lambda s: s.sequence))

    def broker_ids(self) -> set[str]:
        """Every broker referenced anywhere in this certificate's splits."""
        return {t.broker_id for s in self.splits for t in s.tiers if t.broker_id}

    def schedule_codes(self) -> set[str]:
        """Every schedule code (not direct rate) referenced by this certificate."""
        codes = set()
        for split in self.splits:
            for tier in split.tiers:
                ref = tier.schedule_ref
                if ref.code:
                    codes.add(ref.code)
        return codes
