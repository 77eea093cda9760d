"""Shared fixtures: an in-memory record store and a recording notifier."""

from datetime import datetime, timezone

import pytest

from approval_desk.models import (
    ApprovalTicket,
    AudienceTarget,
    Collection,
    Member,
    Proposal,
    ServiceStatus,
)
from approval_desk.services import RecordingNotifier
from approval_desk.store import InMemoryRecordStore


MARCH_14 = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def add_proposal(store: InMemoryRecordStore):
    """Seed a proposal. Defaults to a board proposal created on 2025-03-14."""

    def _add(
        proposal_id: str,
        audience_target: AudienceTarget | None = AudienceTarget.BOARD_OF_DIRECTORS,
        created_at: datetime | None = MARCH_14,
        category: str | None = None,
        issue_number: int | None = None,
        **fields,
    ) -> Proposal:
        return store.add(
            Collection.PROPOSALS,
            Proposal(
                id=proposal_id,
                title=fields.pop("title", f"Proposal {proposal_id}"),
                audience_target=audience_target,
                created_at=created_at,
                category=category,
                issue_number=issue_number,
                **fields,
            ),
        )

    return _add


@pytest.fixture
def add_member(store: InMemoryRecordStore):
    """Seed a member. Defaults to an opted-in production board director with a channel."""

    def _add(
        member_id: str,
        is_board_director: bool = True,
        is_general_member: bool = False,
        channel_id: str | None = "default",
        service_status: ServiceStatus = ServiceStatus.PRODUCTION,
        notifications_enabled: bool = True,
        **fields,
    ) -> Member:
        if channel_id == "default":
            channel_id = f"U-{member_id}"
        return store.add(
            Collection.MEMBERS,
            Member(
                id=member_id,
                display_name=fields.pop("display_name", f"Member {member_id}"),
                is_board_director=is_board_director,
                is_general_member=is_general_member,
                notification_channel_id=channel_id,
                service_status=service_status,
                notifications_enabled=notifications_enabled,
                **fields,
            ),
        )

    return _add


@pytest.fixture
def add_ticket(store: InMemoryRecordStore):
    def _add(ticket_id: str, proposal_id: str, member_id: str, **fields) -> ApprovalTicket:
        return store.add(
            Collection.APPROVAL_TICKETS,
            ApprovalTicket(id=ticket_id, proposal_id=proposal_id, member_id=member_id, **fields),
        )

    return _add
