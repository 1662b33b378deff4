"""
Tests for the non-conformant case identifier.
"""
import pytest

from proposalpilot.engine import identify_non_conformant, is_invalid_group_id
from proposalpilot.models import PhaReason

from tests.conftest import make_certificate, make_split, make_tier


class TestInvalidGroup:
    """Placeholder group ids."""

    @pytest.mark.parametrize("group_id", ["", "   ", "0", "0000", "G0000", "g000", "G"])
    def test_invalid(self, group_id):
        assert is_invalid_group_id(group_id)

    @pytest.mark.parametrize("group_id", ["G100", "G0001", "100", "GROUP"])
    def test_valid(self, group_id):
        assert not is_invalid_group_id(group_id)

    def test_every_certificate_routed(self):
        certs = [make_certificate("C-1", group_id="G0000"), make_certificate("C-2", group_id="G0000")]
        result = identify_non_conformant("G0000", certs)
        assert result.routed == {"C-1": PhaReason.INVALID_GROUP, "C-2": PhaReason.INVALID_GROUP}
        assert result.pool == []


class TestConformance:
    """Per-certificate checks."""

    def test_no_splits(self):
        result = identify_non_conformant("G100", [make_certificate(splits=[])])
        assert result.routed == {"C-0001": PhaReason.EMPTY_SPLITS}

    def test_split_without_tiers(self):
        cert = make_certificate(splits=[make_split(1, "60"), make_split(2, "40", tiers=[])])
        result = identify_non_conformant("G100", [cert])
        assert result.routed == {"C-0001": PhaReason.EMPTY_SPLITS}

    def test_percent_mismatch(self):
        cert = make_certificate(splits=[make_split(1, "60"), make_split(2, "30", [make_tier("B3")])])
        result = identify_non_conformant("G100", [cert])
        assert result.routed == {"C-0001": PhaReason.SPLIT_PERCENT_MISMATCH}

    def test_percent_total_with_decimals(self):
        cert = make_certificate(splits=[make_split(1, "33.34"), make_split(2, "66.66", [make_tier("B3")])])
        result = identify_non_conformant("G100", [cert])
        assert result.routed == {}
        assert result.pool == [cert]

    def test_existing_pha_removed(self):
        certs = [make_certificate("C-1"), make_certificate("C-2", splits=[]), make_certificate("C-3")]
        result = identify_non_conformant("G100", certs, existing_pha={"C-1", "C-2"})
        assert result.existing == frozenset({"C-1", "C-2"})
        assert result.routed == {}
        assert [c.certificate_id for c in result.pool] == ["C-3"]
        assert result.excluded_ids == {"C-1", "C-2"}
