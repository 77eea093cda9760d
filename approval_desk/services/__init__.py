"""Business logic services for Approval Desk."""

from .decision_recorder import (
    Attachment,
    DecisionOutcome,
    DecisionRecorder,
    TicketContext,
    attachment_label,
    parse_decision,
)
from .dispatch import DispatchResult, DispatchSummary, ProposalDispatcher
from .notifier import LineNotifier, Notifier, RecordingNotifier, approval_form_url
from .sequence_allocator import NO_CATEGORY, BucketKey, SequenceAllocator, month_window
from .ticket_issuer import IssueResult, NotificationAttempt, TicketIssuer

__all__ = [
    # Numbering
    "SequenceAllocator",
    "BucketKey",
    "NO_CATEGORY",
    "month_window",
    # Tickets
    "TicketIssuer",
    "IssueResult",
    "NotificationAttempt",
    # Decisions
    "DecisionRecorder",
    "DecisionOutcome",
    "TicketContext",
    "Attachment",
    "attachment_label",
    "parse_decision",
    # Dispatch
    "ProposalDispatcher",
    "DispatchResult",
    "DispatchSummary",
    # Notification
    "Notifier",
    "LineNotifier",
    "RecordingNotifier",
    "approval_form_url",
]
