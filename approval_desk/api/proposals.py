"""API routes for proposal numbering, ticket issuance and dispatch."""

from fastapi import APIRouter

from ..core.dependencies import AllocatorDep, DispatcherDep, IssuerDep
from ..schemas import (
    DispatchResponse,
    IssueNumberResponse,
    IssueTicketsResponse,
    NotificationAttemptResponse,
)
from ..services import IssueResult

router = APIRouter(prefix="/proposals", tags=["proposals"])


def issue_result_fields(result: IssueResult) -> dict:
    return {
        "created": result.created,
        "skipped": result.skipped,
        "notifications": [
            NotificationAttemptResponse(
                member_id=attempt.member_id,
                ticket_id=attempt.ticket_id,
                delivered=attempt.delivered,
                error=attempt.error,
            )
            for attempt in result.notifications
        ],
    }


@router.post("/{proposal_id}/issue-number", response_model=IssueNumberResponse)
async def ensure_issue_number(proposal_id: str, allocator: AllocatorDep):
    """Assign the proposal's issue number if it has none, and return it."""
    issue_number = await allocator.ensure_issue_number(proposal_id)
    return IssueNumberResponse(proposal_id=proposal_id, issue_number=issue_number)


@router.post("/{proposal_id}/tickets", response_model=IssueTicketsResponse)
async def issue_tickets(proposal_id: str, issuer: IssuerDep):
    """Create missing approval tickets and push them to their recipients."""
    result = await issuer.issue_tickets(proposal_id)
    return IssueTicketsResponse(proposal_id=proposal_id, **issue_result_fields(result))


@router.post("/{proposal_id}/dispatch", response_model=DispatchResponse)
async def dispatch_proposal(proposal_id: str, dispatcher: DispatcherDep):
    """Number the proposal, issue its tickets and mark it sent."""
    result = await dispatcher.dispatch(proposal_id)
    return DispatchResponse(
        proposal_id=proposal_id,
        issue_number=result.issue_number,
        **issue_result_fields(result.issue),
    )
