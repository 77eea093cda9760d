"""
Ticket Issuer: one approval ticket per eligible member of a proposal's audience.

Issuing is idempotent. Each member is checked for an existing ticket right
before that member's ticket is created, so re-running after a partial
failure only fills the gaps.
"""

import logging
from dataclasses import dataclass, field

from ..core.errors import MissingRequiredField, UpstreamUnavailable
from ..models import ApprovalTicket, AudienceTarget, Collection, Member, ServiceStatus
from ..store import FieldFilter, RecordStore
from .notifier import Notifier, approval_form_url


logger = logging.getLogger(__name__)


@dataclass
class NotificationAttempt:
    """Outcome of one push to one recipient."""
    member_id: str
    ticket_id: str
    channel_id: str
    delivered: bool
    error: str | None = None


@dataclass
class IssueResult:
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    notifications: list[NotificationAttempt] = field(default_factory=list)

    @property
    def failed_notifications(self) -> list[NotificationAttempt]:
        return [attempt for attempt in self.notifications if not attempt.delivered]


class TicketIssuer:
    """Creates missing approval tickets and notifies their recipients."""

    def __init__(
        self,
        store: RecordStore,
        notifier: Notifier,
        form_base_url: str | None = None,
    ):
        self._store = store
        self._notifier = notifier
        self._form_base_url = form_base_url

    async def eligible_members(self, audience: AudienceTarget) -> list[Member]:
        """Production members of the audience who can receive a push."""
        role_field = (
            "is_board_director"
            if audience == AudienceTarget.BOARD_OF_DIRECTORS
            else "is_general_member"
        )
        members = await self._store.query(
            Collection.MEMBERS,
            [
                FieldFilter(role_field, True),
                FieldFilter("service_status", ServiceStatus.PRODUCTION),
            ],
        )

        eligible: dict[str, Member] = {}
        for member in members:
            if member.is_eligible_for(audience) and member.id not in eligible:
                eligible[member.id] = member
        return list(eligible.values())

    async def find_ticket(self, proposal_id: str, member_id: str) -> ApprovalTicket | None:
        tickets = await self._store.query(
            Collection.APPROVAL_TICKETS,
            [
                FieldFilter("proposal_id", proposal_id, op="contains"),
                FieldFilter("member_id", member_id, op="contains"),
            ],
        )
        return tickets[0] if tickets else None

    async def _deliver(self, member: Member, ticket_id: str) -> NotificationAttempt:
        try:
            delivered, error = await self._notifier.notify(
                member.notification_channel_id, ticket_id
            )
        except Exception as e:
            logger.exception(f"Notifier raised for ticket {ticket_id}, member {member.id}")
            delivered, error = False, f"Notifier error: {e}"

        if not delivered:
            logger.warning(
                f"Notification for ticket {ticket_id} to member {member.id} failed: {error}"
            )
        return NotificationAttempt(
            member_id=member.id,
            ticket_id=ticket_id,
            channel_id=member.notification_channel_id,
            delivered=delivered,
            error=error,
        )

    async def _record_form_url(self, ticket_id: str) -> None:
        """Store the approval form link on the ticket. Failures are only logged."""
        url = approval_form_url(self._form_base_url, ticket_id)
        try:
            await self._store.update(Collection.APPROVAL_TICKETS, ticket_id, {"form_url": url})
        except UpstreamUnavailable as e:
            logger.warning(f"Could not store form URL on ticket {ticket_id}: {e.message}")

    async def issue_tickets(self, proposal_id: str) -> IssueResult:
        """
        Create one ticket per eligible member who does not have one yet.

        Notification failures are collected in the result. Record store
        failures raise UpstreamUnavailable naming the member and step;
        tickets created before the failure are kept.
        """
        proposal = await self._store.get(Collection.PROPOSALS, proposal_id)
        if proposal.audience_target is None:
            raise MissingRequiredField(proposal.id, "audience_target")

        members = await self.eligible_members(proposal.audience_target)
        result = IssueResult()

        if not members:
            logger.info(
                f"No eligible members for proposal {proposal.id} "
                f"({proposal.audience_target.value})"
            )
            return result

        for member in members:
            try:
                existing = await self.find_ticket(proposal.id, member.id)
            except UpstreamUnavailable as e:
                raise UpstreamUnavailable(
                    e.service, "check existing ticket", e.detail, recipient=member.id
                ) from e

            if existing is not None:
                result.skipped.append(member.id)
                continue

            try:
                ticket = await self._store.create(
                    Collection.APPROVAL_TICKETS,
                    {"proposal_id": proposal.id, "member_id": member.id},
                )
            except UpstreamUnavailable as e:
                raise UpstreamUnavailable(
                    e.service, "create ticket", e.detail, recipient=member.id
                ) from e

            result.created.append(ticket.id)
            logger.info(
                f"Created approval ticket {ticket.id} for proposal {proposal.id}, "
                f"member {member.id}"
            )
            if self._form_base_url:
                await self._record_form_url(ticket.id)
            result.notifications.append(await self._deliver(member, ticket.id))

        logger.info(
            f"Issued tickets for proposal {proposal.id}: {len(result.created)} created, "
            f"{len(result.skipped)} skipped, "
            f"{len(result.failed_notifications)} notifications failed"
        )
        return result

    async def resend_notification(self, ticket_id: str) -> NotificationAttempt:
        """
        Push the approval request for an existing ticket again.

        Members who are no longer in production or have turned approvals off
        get no push; the attempt comes back undelivered with the reason.
        """
        ticket = await self._store.get(Collection.APPROVAL_TICKETS, ticket_id)
        if not ticket.member_id:
            raise MissingRequiredField(ticket.id, "member_id")

        member = await self._store.get(Collection.MEMBERS, ticket.member_id)
        if not member.notification_channel_id:
            raise MissingRequiredField(member.id, "notification_channel_id")

        if not member.can_receive_push:
            reason = (
                "member is not in production"
                if member.service_status != ServiceStatus.PRODUCTION
                else "member has LINE approvals turned off"
            )
            logger.warning(f"Not re-sending ticket {ticket.id} to member {member.id}: {reason}")
            return NotificationAttempt(
                member_id=member.id,
                ticket_id=ticket.id,
                channel_id=member.notification_channel_id,
                delivered=False,
                error=reason,
            )

        return await self._deliver(member, ticket.id)
