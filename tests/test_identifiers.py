"""
Tests for the identifier allocator.
"""
import pytest

from proposalpilot.engine import IdentifierAllocator
from proposalpilot.exceptions import IdentifierAllocationError
from proposalpilot.models import EntityKind
from proposalpilot.store import InMemoryStore


class TestIdentifierAllocator:
    """Tests for seeding and minting."""

    def test_next_before_seed_raises(self):
        allocator = IdentifierAllocator()
        assert not allocator.is_seeded
        with pytest.raises(IdentifierAllocationError) as exc_info:
            allocator.next(EntityKind.PROPOSAL)
        assert exc_info.value.code == "PP_IDENTIFIER_ALLOCATION"

    def test_ids_continue_from_seed(self):
        allocator = IdentifierAllocator()
        allocator.seed({EntityKind.PROPOSAL: 41})
        assert allocator.next(EntityKind.PROPOSAL) == 42
        assert allocator.next(EntityKind.PROPOSAL) == 43
        assert allocator.next(EntityKind.HIERARCHY) == 1

    def test_kinds_are_independent(self):
        allocator = IdentifierAllocator()
        allocator.seed({EntityKind.HIERARCHY: 10})
        allocator.next(EntityKind.PROPOSAL)
        assert allocator.peek(EntityKind.HIERARCHY) == 10
        assert allocator.peek(EntityKind.PROPOSAL) == 1

    def test_seed_twice_raises(self):
        allocator = IdentifierAllocator()
        allocator.seed()
        with pytest.raises(IdentifierAllocationError):
            allocator.seed()

    def test_negative_seed_raises(self):
        with pytest.raises(IdentifierAllocationError):
            IdentifierAllocator().seed({EntityKind.PROPOSAL: -1})

    def test_seed_from_store(self):
        store = InMemoryStore(watermarks={EntityKind.POLICY_HIERARCHY_ASSIGNMENT: 900})
        allocator = IdentifierAllocator()
        allocator.seed_from(store)
        assert allocator.next(EntityKind.POLICY_HIERARCHY_ASSIGNMENT) == 901

    def test_minted_counts(self):
        allocator = IdentifierAllocator()
        assert allocator.minted() == {}
        allocator.seed({EntityKind.PROPOSAL: 5})
        allocator.next(EntityKind.PROPOSAL)
        allocator.next(EntityKind.PROPOSAL)
        minted = allocator.minted()
        assert minted["proposal"] == 2
        assert minted["hierarchy"] == 0
