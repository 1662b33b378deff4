"""
Tests for the fingerprint canonicalizer.

Tests cover:
- Order and representation independence
- Order sensitivity of tiers
- Empty configurations
- Collision registry
"""
import pytest
from decimal import Decimal

from proposalpilot.engine import (
    FingerprintRegistry,
    compute_fingerprint,
    fingerprint_certificate,
    fingerprint_group,
    normalize_schedule,
)
from proposalpilot.exceptions import HashCollisionError
from proposalpilot.models import EMPTY_DIGEST, EMPTY_FINGERPRINT, Fingerprint

from tests.conftest import (
    make_certificate,
    make_split,
    make_tier,
)


# =============================================================================
# Canonical Structure
# =============================================================================

class TestComputeFingerprint:
    """Tests for compute_fingerprint."""

    def test_canonical_text(self):
        fp = compute_fingerprint([make_split(tiers=[make_tier("B1", "SCH-A")])])
        assert fp.canonical == '[{"pct":"100","tiers":[{"broker":"B1","schedule":"SCH-A"}]}]'
        assert len(fp.digest) == 64

    def test_sequence_numbers_not_hashed(self):
        a = compute_fingerprint([make_split(1, "60"), make_split(2, "40", [make_tier("B3")])])
        b = compute_fingerprint([make_split(7, "60"), make_split(9, "40", [make_tier("B3")])])
        assert a.digest == b.digest

    def test_splits_ordered_by_sequence(self):
        first = make_split(1, "60")
        second = make_split(2, "40", [make_tier("B3")])
        assert compute_fingerprint([second, first]).digest == compute_fingerprint([first, second]).digest

    def test_percent_representation_normalized(self):
        a = compute_fingerprint([make_split(percent="100")])
        b = compute_fingerprint([make_split(percent="100.00")])
        assert a.digest == b.digest

    def test_rate_representation_normalized(self):
        a = compute_fingerprint([make_split(tiers=[make_tier("B1", "5.50")])])
        b = compute_fingerprint([make_split(tiers=[make_tier("B1", "5.5%")])])
        assert a.digest == b.digest

    def test_tier_order_matters(self):
        a = compute_fingerprint([make_split(tiers=[make_tier("B1"), make_tier("B2")])])
        b = compute_fingerprint([make_split(tiers=[make_tier("B2"), make_tier("B1")])])
        assert a.digest != b.digest

    def test_percent_matters(self):
        a = compute_fingerprint([make_split(1, "60"), make_split(2, "40", [make_tier("B3")])])
        b = compute_fingerprint([make_split(1, "50"), make_split(2, "50", [make_tier("B3")])])
        assert a.digest != b.digest

    def test_names_and_paid_brokers_not_hashed(self):
        plain = make_certificate(splits=[make_split(tiers=[make_tier("B1")])])
        decorated = make_certificate(
            certificate_id="C-9999",
            splits=[make_split(tiers=[make_tier("B1", broker_name="Alice", paid_broker_id="B7")])],
        )
        assert fingerprint_certificate(plain).digest == fingerprint_certificate(decorated).digest

    def test_empty_configuration(self):
        fp = fingerprint_certificate(make_certificate(splits=[]))
        assert fp is EMPTY_FINGERPRINT
        assert fp.is_empty
        assert fp.digest == EMPTY_DIGEST
        assert fp.canonical == "[]"

    def test_total_percent(self):
        fp = compute_fingerprint([make_split(1, "60"), make_split(2, "40")])
        assert fp.total_percent == Decimal("100")


class TestNormalizeSchedule:
    """Tests for schedule normalization."""

    @pytest.mark.parametrize("raw,expected", [
        (" SCH-1 ", "SCH-1"),
        ("5.50", "5.5%"),
        ("5%", "5%"),
        ("", None),
        (None, None),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_schedule(raw) == expected


# =============================================================================
# Registry
# =============================================================================

class TestFingerprintRegistry:
    """Tests for the collision registry."""

    def test_same_structure_registers_once(self):
        registry = FingerprintRegistry()
        a = registry.fingerprint(make_certificate("C-1"))
        b = registry.fingerprint(make_certificate("C-2"))
        assert a.digest == b.digest
        assert len(registry) == 1
        assert a.digest in registry

    def test_collision_raises(self):
        registry = FingerprintRegistry()
        real = registry.fingerprint(make_certificate())
        forged = Fingerprint(splits=(), canonical='["different"]', digest=real.digest)
        with pytest.raises(HashCollisionError) as exc_info:
            registry.register(forged, group_id="G100")
        assert exc_info.value.code == "PP_HASH_COLLISION"
        assert exc_info.value.group_id == "G100"

    def test_fingerprint_group(self):
        certs = [make_certificate("C-1"), make_certificate("C-2", splits=[])]
        result = fingerprint_group(certs, FingerprintRegistry())
        assert set(result) == {"C-1", "C-2"}
        assert result["C-2"].is_empty
