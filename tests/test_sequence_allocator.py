"""
Tests for the Sequence Allocator.

These tests verify:
1. A number, once assigned, is returned again without any write
2. Numbers within a bucket are contiguous from 1
3. Buckets are isolated by month, audience and category
4. Precondition failures never write
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from approval_desk.core.errors import MissingRequiredField, NotFound
from approval_desk.models import AudienceTarget, Collection, Proposal
from approval_desk.services import NO_CATEGORY, SequenceAllocator, month_window
from approval_desk.store import InMemoryRecordStore


# =============================================================================
# TEST: IDEMPOTENCY
# =============================================================================


class TestIdempotentNumbering:

    async def test_first_proposal_in_bucket_gets_one(self, store, add_proposal):
        """A board proposal with no March 2025 siblings is number 1."""
        add_proposal("P1")
        allocator = SequenceAllocator(store)

        assert await allocator.ensure_issue_number("P1") == 1
        assert (await store.get(Collection.PROPOSALS, "P1")).issue_number == 1

    async def test_existing_number_is_returned_without_write(self, store, add_proposal):
        add_proposal("P1", issue_number=7)
        allocator = SequenceAllocator(store)

        for _ in range(3):
            assert await allocator.ensure_issue_number("P1") == 7

        assert store.writes == 0

    async def test_repeated_allocation_keeps_first_number(self, store, add_proposal):
        add_proposal("P2", issue_number=1)
        add_proposal("P3")
        allocator = SequenceAllocator(store)

        assert await allocator.ensure_issue_number("P3") == 2
        writes_after_first = store.writes
        assert await allocator.ensure_issue_number("P3") == 2
        assert store.writes == writes_after_first


# =============================================================================
# TEST: BUCKETS
# =============================================================================


class TestBucketNumbering:

    async def test_numbers_are_contiguous_in_assignment_order(self, store, add_proposal):
        for index in range(5):
            add_proposal(f"P{index}", created_at=datetime(2025, 3, index + 1, tzinfo=timezone.utc))
        allocator = SequenceAllocator(store)

        numbers = [await allocator.ensure_issue_number(f"P{index}") for index in range(5)]

        assert numbers == [1, 2, 3, 4, 5]

    async def test_continues_after_max_not_count(self, store, add_proposal):
        add_proposal("A", issue_number=1)
        add_proposal("B", issue_number=4)
        add_proposal("C")

        assert await SequenceAllocator(store).ensure_issue_number("C") == 5

    async def test_non_positive_numbers_count_as_zero(self, store, add_proposal):
        add_proposal("A", issue_number=0)
        add_proposal("B", issue_number=-3)
        add_proposal("C")

        assert await SequenceAllocator(store).ensure_issue_number("C") == 1

    async def test_other_month_does_not_share_bucket(self, store, add_proposal):
        add_proposal("FEB", created_at=datetime(2025, 2, 28, 23, 59, tzinfo=timezone.utc), issue_number=9)
        add_proposal("APR", created_at=datetime(2025, 4, 1, tzinfo=timezone.utc), issue_number=3)
        add_proposal("MAR")

        assert await SequenceAllocator(store).ensure_issue_number("MAR") == 1

    async def test_same_month_other_year_does_not_share_bucket(self, store, add_proposal):
        add_proposal("OLD", created_at=datetime(2024, 3, 10, tzinfo=timezone.utc), issue_number=6)
        add_proposal("NEW")

        assert await SequenceAllocator(store).ensure_issue_number("NEW") == 1

    async def test_audience_separates_buckets(self, store, add_proposal):
        add_proposal("G1", audience_target=AudienceTarget.GENERAL_MEMBERS, issue_number=3)
        add_proposal("B1")

        assert await SequenceAllocator(store).ensure_issue_number("B1") == 1

    async def test_category_separates_buckets(self, store, add_proposal):
        add_proposal("FIN-1", category="finance", issue_number=2)
        add_proposal("EVT-1", category="events", issue_number=5)
        add_proposal("FIN-2", category="finance")

        assert await SequenceAllocator(store).ensure_issue_number("FIN-2") == 3

    async def test_bucket_uses_utc_month(self, store, add_proposal):
        """April 1st 01:00 in Japan is March 31st in UTC."""
        jst = timezone(timedelta(hours=9))
        add_proposal("LATE", created_at=datetime(2025, 4, 1, 1, 0, tzinfo=jst))
        add_proposal("EARLY", issue_number=1)

        assert await SequenceAllocator(store).ensure_issue_number("LATE") == 2


class TestUncategorizedPolicy:

    async def test_shared_policy_uses_sentinel_bucket(self, store, add_proposal):
        add_proposal("CAT", category="finance", issue_number=4)
        add_proposal("NONE-1", issue_number=1)
        add_proposal("NONE-2")
        allocator = SequenceAllocator(store, uncategorized_policy="shared")

        assert allocator.bucket_key(await store.get(Collection.PROPOSALS, "NONE-2")).category == NO_CATEGORY
        assert await allocator.ensure_issue_number("NONE-2") == 2

    async def test_audience_only_policy_numbers_across_categories(self, store, add_proposal):
        add_proposal("CAT", category="finance", issue_number=4)
        add_proposal("NONE")

        allocator = SequenceAllocator(store, uncategorized_policy="audience_only")

        assert await allocator.ensure_issue_number("NONE") == 5

    async def test_categorized_proposal_ignores_uncategorized_under_either_policy(
        self, store, add_proposal
    ):
        add_proposal("NONE", issue_number=8)
        add_proposal("CAT", category="finance")

        allocator = SequenceAllocator(store, uncategorized_policy="audience_only")

        assert await allocator.ensure_issue_number("CAT") == 1


# =============================================================================
# TEST: FAILURES
# =============================================================================


class TestAllocationFailures:

    async def test_missing_audience_raises_without_write(self, store, add_proposal):
        add_proposal("P", audience_target=None)

        with pytest.raises(MissingRequiredField) as exc_info:
            await SequenceAllocator(store).ensure_issue_number("P")

        assert exc_info.value.field == "audience_target"
        assert store.writes == 0

    async def test_missing_created_at_raises(self, store, add_proposal):
        add_proposal("P", created_at=None)

        with pytest.raises(MissingRequiredField) as exc_info:
            await SequenceAllocator(store).ensure_issue_number("P")

        assert exc_info.value.field == "created_at"

    async def test_unknown_proposal_raises(self, store):
        with pytest.raises(NotFound):
            await SequenceAllocator(store).ensure_issue_number("missing")


class TestMonthWindow:

    def test_december_rolls_into_next_year(self):
        start, end = month_window(datetime(2025, 12, 15, tzinfo=timezone.utc))

        assert start == datetime(2025, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2026, 1, 1, tzinfo=timezone.utc)


class YieldingStore(InMemoryRecordStore):
    """Suspends on every query, like a networked store."""

    async def query(self, collection, filters=()):
        records = await super().query(collection, filters)
        await asyncio.sleep(0)
        return records


class TestConcurrentAllocation:

    async def test_simultaneous_allocations_can_share_a_number(self):
        """Read-max-then-write is not atomic; concurrent callers may collide."""
        store = YieldingStore()
        allocator = SequenceAllocator(store)
        created = datetime(2025, 3, 14, tzinfo=timezone.utc)
        for proposal_id in ("A", "B"):
            store.add(Collection.PROPOSALS, Proposal(
                id=proposal_id,
                audience_target=AudienceTarget.BOARD_OF_DIRECTORS,
                created_at=created,
            ))

        numbers = await asyncio.gather(
            allocator.ensure_issue_number("A"),
            allocator.ensure_issue_number("B"),
        )

        assert numbers == [1, 1]

    async def test_sequential_allocations_never_collide(self):
        store = YieldingStore()
        allocator = SequenceAllocator(store)
        created = datetime(2025, 3, 14, tzinfo=timezone.utc)
        for proposal_id in ("A", "B"):
            store.add(Collection.PROPOSALS, Proposal(
                id=proposal_id,
                audience_target=AudienceTarget.BOARD_OF_DIRECTORS,
                created_at=created,
            ))

        assert await allocator.ensure_issue_number("A") == 1
        assert await allocator.ensure_issue_number("B") == 2
