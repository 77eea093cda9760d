"""Pydantic schemas for API request/response validation."""

from .approvals import (
    AttachmentResponse,
    DecisionRequest,
    DecisionResponse,
    DispatchResponse,
    IssueNumberResponse,
    IssueTicketsResponse,
    NotificationAttemptResponse,
    NotifyResponse,
    TicketResponse,
)
from .base import DeskBaseModel, ErrorResponse

__all__ = [
    # Base
    "DeskBaseModel",
    "ErrorResponse",
    # Proposals
    "IssueNumberResponse",
    "IssueTicketsResponse",
    "NotificationAttemptResponse",
    "DispatchResponse",
    # Tickets
    "DecisionRequest",
    "DecisionResponse",
    "TicketResponse",
    "AttachmentResponse",
    "NotifyResponse",
]
