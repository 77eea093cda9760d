"""API routes for approval tickets: form view, answers, re-sending."""

from fastapi import APIRouter

from ..core.dependencies import IssuerDep, RecorderDep
from ..schemas import (
    AttachmentResponse,
    DecisionRequest,
    DecisionResponse,
    NotifyResponse,
    TicketResponse,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, recorder: RecorderDep):
    """Ticket with the proposal and member details shown on the form."""
    context = await recorder.describe(ticket_id)
    ticket = context.ticket
    return TicketResponse(
        id=ticket.id,
        proposal_id=ticket.proposal_id,
        member_id=ticket.member_id,
        proposal_title=context.proposal_title,
        issue_number=context.issue_number,
        display_number=context.display_number,
        description=context.description,
        proposer_names=context.proposer_names,
        deadline=context.deadline,
        attachments=[
            AttachmentResponse(url=attachment.url, label=attachment.label)
            for attachment in context.attachments
        ],
        member_name=context.member_name,
        decision=ticket.decision,
        decided_at=ticket.decided_at,
        comment=ticket.comment,
    )


@router.post("/{ticket_id}/decision", response_model=DecisionResponse)
async def record_decision(ticket_id: str, data: DecisionRequest, recorder: RecorderDep):
    """
    Record approve/deny on a ticket.

    A ticket that was already answered keeps its original answer; the
    response then has status ``already_decided`` and the stored values.
    """
    outcome = await recorder.record_decision(ticket_id, data.decision, data.comment)
    return DecisionResponse(
        ticket_id=outcome.ticket_id,
        status="already_decided" if outcome.already_decided else "recorded",
        decision=outcome.decision,
        decided_at=outcome.decided_at,
        comment=outcome.comment,
    )


@router.post("/{ticket_id}/notify", response_model=NotifyResponse)
async def resend_notification(ticket_id: str, issuer: IssuerDep):
    """Push the approval request for this ticket again."""
    attempt = await issuer.resend_notification(ticket_id)
    return NotifyResponse(
        ticket_id=attempt.ticket_id,
        delivered=attempt.delivered,
        error=attempt.error,
    )
