"""
Proposal Dispatcher: number a proposal, issue its tickets, mark it sent.

Every step is idempotent, so a proposal that failed half-way is simply
dispatched again on the next run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import ApprovalDeskError
from ..models import Collection, DispatchStatus, Proposal
from ..store import FieldFilter, RecordStore
from .sequence_allocator import SequenceAllocator
from .ticket_issuer import IssueResult, TicketIssuer


logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    proposal_id: str
    issue_number: int
    issue: IssueResult


@dataclass
class DispatchSummary:
    dispatched: list[DispatchResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def notifications_failed(self) -> int:
        return sum(len(result.issue.failed_notifications) for result in self.dispatched)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dispatched": len(self.dispatched),
            "proposals": [result.proposal_id for result in self.dispatched],
            "tickets_created": sum(len(result.issue.created) for result in self.dispatched),
            "notifications_failed": self.notifications_failed,
            "errors": self.errors,
        }


class ProposalDispatcher:
    """Runs allocation and ticket issuance for one or many proposals."""

    def __init__(
        self,
        store: RecordStore,
        allocator: SequenceAllocator,
        issuer: TicketIssuer,
    ):
        self._store = store
        self._allocator = allocator
        self._issuer = issuer

    async def dispatch(self, proposal_id: str) -> DispatchResult:
        issue_number = await self._allocator.ensure_issue_number(proposal_id)
        issue = await self._issuer.issue_tickets(proposal_id)
        await self._store.update(
            Collection.PROPOSALS, proposal_id, {"dispatch_status": DispatchStatus.SENT}
        )
        logger.info(f"Dispatched proposal {proposal_id} as issue {issue_number}")
        return DispatchResult(proposal_id=proposal_id, issue_number=issue_number, issue=issue)

    async def pending_proposals(self, limit: int) -> list[Proposal]:
        """Proposals not yet sent: status pending or never set."""
        pending = await self._store.query(
            Collection.PROPOSALS, [FieldFilter("dispatch_status", DispatchStatus.PENDING)]
        )
        unset = await self._store.query(
            Collection.PROPOSALS, [FieldFilter("dispatch_status", None)]
        )

        seen: dict[str, Proposal] = {}
        for proposal in [*pending, *unset]:
            seen.setdefault(proposal.id, proposal)

        ordered = sorted(
            seen.values(),
            key=lambda p: (p.created_at is None, p.created_at or 0),
        )
        return ordered[:limit]

    async def dispatch_pending(self, limit: int = 50) -> DispatchSummary:
        """Dispatch unsent proposals. One failure never stops the rest."""
        summary = DispatchSummary()
        proposals = await self.pending_proposals(limit)

        if not proposals:
            logger.info("No pending proposals to dispatch")
            return summary

        for proposal in proposals:
            try:
                summary.dispatched.append(await self.dispatch(proposal.id))
            except ApprovalDeskError as e:
                error_msg = f"Proposal {proposal.id}: {e.message}"
                logger.error(f"Dispatch failed. {error_msg}")
                summary.errors.append(error_msg)

        return summary
