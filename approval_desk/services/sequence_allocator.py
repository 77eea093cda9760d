"""
Sequence Allocator: per-bucket issue numbers for proposals.

A proposal's issue number is the largest number already used in its
bucket plus one. The bucket is (year, month of creation in UTC, audience,
category). Once set, a number is never reassigned.

The read-max-then-write sequence is not atomic: two allocations for the
same bucket running at the same moment can both read the same maximum.
Proposals are dispatched one at a time, so this is accepted.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from ..core.errors import MissingRequiredField
from ..models import AudienceTarget, Collection, Proposal
from ..store import FieldFilter, RecordStore


logger = logging.getLogger(__name__)


NO_CATEGORY = "__NO_CATEGORY__"

UncategorizedPolicy = Literal["shared", "audience_only"]


@dataclass(frozen=True)
class BucketKey:
    year: int
    month: int
    audience_target: AudienceTarget
    category: str


def month_window(moment: datetime) -> tuple[datetime, datetime]:
    """UTC start of the month containing ``moment`` and of the next month."""
    moment = moment.astimezone(timezone.utc)
    start = datetime(moment.year, moment.month, 1, tzinfo=timezone.utc)
    if moment.month == 12:
        end = datetime(moment.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(moment.year, moment.month + 1, 1, tzinfo=timezone.utc)
    return start, end


class SequenceAllocator:
    """Assigns issue numbers to proposals, at most once each."""

    def __init__(
        self,
        store: RecordStore,
        uncategorized_policy: UncategorizedPolicy = "shared",
    ):
        self._store = store
        self._uncategorized_policy = uncategorized_policy

    def bucket_key(self, proposal: Proposal) -> BucketKey:
        if proposal.audience_target is None:
            raise MissingRequiredField(proposal.id, "audience_target")
        if proposal.created_at is None:
            raise MissingRequiredField(proposal.id, "created_at")

        created = proposal.created_at.astimezone(timezone.utc)
        return BucketKey(
            year=created.year,
            month=created.month,
            audience_target=proposal.audience_target,
            category=proposal.category or NO_CATEGORY,
        )

    def _shares_bucket(self, key: BucketKey, other: Proposal) -> bool:
        if key.category == NO_CATEGORY and self._uncategorized_policy == "audience_only":
            return True
        return (other.category or NO_CATEGORY) == key.category

    async def ensure_issue_number(self, proposal_id: str) -> int:
        """
        Return the proposal's issue number, assigning one if absent.

        Raises:
            NotFound: proposal does not exist
            MissingRequiredField: audience target or creation time is absent
            UpstreamUnavailable: record store could not be read or written
        """
        proposal = await self._store.get(Collection.PROPOSALS, proposal_id)
        if proposal.has_issue_number:
            return proposal.issue_number

        key = self.bucket_key(proposal)
        month_start, month_end = month_window(proposal.created_at)

        candidates = await self._store.query(
            Collection.PROPOSALS,
            [
                FieldFilter("audience_target", key.audience_target),
                FieldFilter("created_at", month_start, op="on_or_after"),
                FieldFilter("created_at", month_end, op="before"),
            ],
        )

        max_existing = 0
        for other in candidates:
            if other.id == proposal.id or not self._shares_bucket(key, other):
                continue
            if other.has_issue_number and other.issue_number > max_existing:
                max_existing = other.issue_number

        issue_number = max_existing + 1
        await self._store.update(
            Collection.PROPOSALS, proposal.id, {"issue_number": issue_number}
        )

        logger.info(
            f"Assigned issue number {issue_number} to proposal {proposal.id} "
            f"(bucket {key.year}-{key.month:02d}/{key.audience_target.value}/{key.category})"
        )
        return issue_number
