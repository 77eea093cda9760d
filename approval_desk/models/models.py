"""
Typed records for the three collections: proposals, members, approval tickets.

Records are plain immutable values. The record store translates external
field names into these shapes; services never see raw store payloads.
"""

import enum
from dataclasses import dataclass, replace
from datetime import date, datetime


# =============================================================================
# ENUMS
# =============================================================================


class Collection(str, enum.Enum):
    PROPOSALS = "proposals"
    MEMBERS = "members"
    APPROVAL_TICKETS = "approval_tickets"


class AudienceTarget(str, enum.Enum):
    """Population that must respond to a proposal."""

    BOARD_OF_DIRECTORS = "board_of_directors"
    GENERAL_MEMBERS = "general_members"


class ServiceStatus(str, enum.Enum):
    PRODUCTION = "production"
    OTHER = "other"


class Decision(str, enum.Enum):
    APPROVED = "approved"
    DENIED = "denied"


class DispatchStatus(str, enum.Enum):
    """Whether approval requests for a proposal have been sent out."""

    PENDING = "pending"
    SENT = "sent"


# =============================================================================
# RECORDS
# =============================================================================


@dataclass(frozen=True)
class Proposal:
    id: str
    title: str = ""
    audience_target: AudienceTarget | None = None
    category: str | None = None
    created_at: datetime | None = None
    issue_number: int | None = None
    dispatch_status: DispatchStatus | None = None
    display_number: str = ""
    description: str = ""
    proposer_ids: tuple[str, ...] = ()
    deadline: date | None = None
    attachment_urls: tuple[str, ...] = ()

    @property
    def has_issue_number(self) -> bool:
        return isinstance(self.issue_number, int) and self.issue_number > 0


@dataclass(frozen=True)
class Member:
    id: str
    display_name: str = ""
    is_board_director: bool = False
    is_general_member: bool = False
    notification_channel_id: str | None = None
    service_status: ServiceStatus = ServiceStatus.OTHER
    notifications_enabled: bool = False

    @property
    def can_receive_push(self) -> bool:
        """Production member who opted in and has a channel ID."""
        return (
            self.service_status == ServiceStatus.PRODUCTION
            and self.notifications_enabled
            and bool(self.notification_channel_id)
        )

    def is_eligible_for(self, audience: AudienceTarget) -> bool:
        """Push-reachable member with the role matching the audience."""
        if not self.can_receive_push:
            return False
        if audience == AudienceTarget.BOARD_OF_DIRECTORS:
            return self.is_board_director
        return self.is_general_member


@dataclass(frozen=True)
class ApprovalTicket:
    id: str
    proposal_id: str
    member_id: str
    decision: Decision | None = None
    decided_at: datetime | None = None
    comment: str | None = None
    form_url: str | None = None

    @property
    def is_decided(self) -> bool:
        return self.decision is not None


Record = Proposal | Member | ApprovalTicket

RECORD_TYPES: dict[Collection, type] = {
    Collection.PROPOSALS: Proposal,
    Collection.MEMBERS: Member,
    Collection.APPROVAL_TICKETS: ApprovalTicket,
}


def with_fields(record: Record, fields: dict) -> Record:
    """Return a copy of ``record`` with ``fields`` applied."""
    return replace(record, **fields)
