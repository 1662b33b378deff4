"""
Pytest configuration and fixtures for ProposalPilot tests.

Provides helper factories and common fixtures matching actual model definitions.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import pytest

from proposalpilot.config import MigrationConfig, config_from_dict
from proposalpilot.engine import IdentifierAllocator
from proposalpilot.models import Certificate, EntityKind, SplitEntry, Tier
from proposalpilot.store import InMemoryStore, SqliteStore


BASE_DATE = date(2021, 1, 1)

SCHEDULE_CODES = {"SCH-A", "SCH-B", "SCH-C"}


# =============================================================================
# Factory Helpers
# =============================================================================

def make_tier(
    broker_id: str = "B1",
    schedule: Optional[str] = "SCH-A",
    broker_name: Optional[str] = None,
    paid_broker_id: Optional[str] = None,
) -> Tier:
    """Create a Tier with sensible defaults."""
    return Tier(
        broker_id=broker_id,
        schedule=schedule,
        broker_name=broker_name,
        paid_broker_id=paid_broker_id,
    )


def make_split(
    sequence: int = 1,
    percent="100",
    tiers: Optional[list[Tier]] = None,
) -> SplitEntry:
    """Create a SplitEntry; defaults to a writing broker plus one upline."""
    if tiers is None:
        tiers = [make_tier("B1", "SCH-A"), make_tier("B2", "SCH-B")]
    return SplitEntry(sequence=sequence, percent=Decimal(str(percent)), tiers=tuple(tiers))


def make_certificate(
    certificate_id: str = "C-0001",
    group_id: str = "G100",
    product_code: str = "LIFE",
    plan_code: str = "BASIC",
    effective_date: date = BASE_DATE,
    status: str = "A",
    splits: Optional[list[SplitEntry]] = None,
) -> Certificate:
    """Create a Certificate; defaults to one 100% split."""
    if splits is None:
        splits = [make_split()]
    return Certificate(
        certificate_id=certificate_id,
        group_id=group_id,
        product_code=product_code,
        plan_code=plan_code,
        effective_date=effective_date,
        status=status,
        splits=tuple(splits),
    )


def make_identical_certificates(
    count: int,
    group_id: str = "G100",
    prefix: str = "C",
    start: date = BASE_DATE,
    splits: Optional[list[SplitEntry]] = None,
    **kwargs,
) -> list[Certificate]:
    """`count` certificates sharing one split structure, one day apart."""
    return [
        make_certificate(
            certificate_id=f"{prefix}-{i:04d}",
            group_id=group_id,
            effective_date=start + timedelta(days=i),
            splits=splits,
            **kwargs,
        )
        for i in range(count)
    ]


def make_unique_certificates(
    count: int,
    group_id: str = "G100",
    prefix: str = "U",
    start: date = BASE_DATE,
    **kwargs,
) -> list[Certificate]:
    """`count` certificates each with a different writing broker."""
    return [
        make_certificate(
            certificate_id=f"{prefix}-{i:04d}",
            group_id=group_id,
            effective_date=start + timedelta(days=i),
            splits=[make_split(tiers=[make_tier(f"W{prefix}{i}", "SCH-C"), make_tier("B2", "SCH-B")])],
            **kwargs,
        )
        for i in range(count)
    ]


def make_config(**overrides) -> MigrationConfig:
    """Create a MigrationConfig with test thresholds."""
    data = {
        "high_entropy_unique_ratio": 0.9,
        "high_entropy_shannon": 3.0,
        "dominant_coverage_threshold": 0.5,
        "pha_cluster_size_threshold": 10,
    }
    data.update(overrides)
    return config_from_dict(data)


def make_allocator(maxima: Optional[dict[EntityKind, int]] = None) -> IdentifierAllocator:
    """Create a seeded IdentifierAllocator."""
    allocator = IdentifierAllocator()
    allocator.seed(maxima or {})
    return allocator


def make_store(kind: str, certificates=(), existing_pha=None, watermarks=None, schedule_codes=SCHEDULE_CODES):
    """Create an InMemoryStore or SqliteStore loaded the same way."""
    store = InMemoryStore() if kind == "memory" else SqliteStore(":memory:")
    store.add_certificates(certificates)
    for group_id, ids in (existing_pha or {}).items():
        store.add_existing_pha(group_id, ids)
    for entity_kind, value in (watermarks or {}).items():
        store.set_watermark(entity_kind, value)
    store.add_schedule_codes(schedule_codes)
    return store


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def config():
    """Default test configuration."""
    return make_config()


@pytest.fixture
def allocator():
    """Allocator seeded at zero for every kind."""
    return make_allocator()


@pytest.fixture(params=["memory", "sqlite"])
def store_kind(request):
    """Run a test against both store implementations."""
    return request.param


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by configure_logging during a test."""
    yield
    logger = logging.getLogger("proposalpilot")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
