"""Pydantic schemas for proposals, tickets and decisions."""

from datetime import date, datetime
from typing import Literal

from pydantic import Field

from ..models import Decision
from .base import DeskBaseModel


# =============================================================================
# PROPOSALS
# =============================================================================


class IssueNumberResponse(DeskBaseModel):
    proposal_id: str
    issue_number: int


class NotificationAttemptResponse(DeskBaseModel):
    member_id: str
    ticket_id: str
    delivered: bool
    error: str | None = None


class IssueTicketsResponse(DeskBaseModel):
    """Result of issuing approval tickets for a proposal."""

    proposal_id: str
    created: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    notifications: list[NotificationAttemptResponse] = Field(default_factory=list)


class DispatchResponse(IssueTicketsResponse):
    issue_number: int


# =============================================================================
# TICKETS
# =============================================================================


class DecisionRequest(DeskBaseModel):
    """Answer submitted from the approval form."""

    decision: str = Field(
        ...,
        min_length=1,
        description="approve or deny",
    )
    comment: str | None = Field(default=None, max_length=2000)


class DecisionResponse(DeskBaseModel):
    ticket_id: str
    status: Literal["recorded", "already_decided"]
    decision: Decision
    decided_at: datetime | None = None
    comment: str | None = None


class AttachmentResponse(DeskBaseModel):
    url: str
    label: str


class TicketResponse(DeskBaseModel):
    """Ticket with display values for the approval form."""

    id: str
    proposal_id: str
    member_id: str
    proposal_title: str = ""
    issue_number: int | None = None
    display_number: str = ""
    description: str = ""
    proposer_names: list[str] = Field(default_factory=list)
    deadline: date | None = None
    attachments: list[AttachmentResponse] = Field(default_factory=list)
    member_name: str = ""
    decision: Decision | None = None
    decided_at: datetime | None = None
    comment: str | None = None


class NotifyResponse(DeskBaseModel):
    ticket_id: str
    delivered: bool
    error: str | None = None
