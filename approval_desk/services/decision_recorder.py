"""
Decision Recorder: write-once approve/deny answers on approval tickets.

A ticket moves Open -> Decided exactly once. Answering a decided ticket
again returns the stored answer instead of overwriting it.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable
from urllib.parse import unquote, urlsplit

from ..core.errors import InvalidDecision, NotFound
from ..models import ApprovalTicket, Collection, Decision
from ..store import RecordStore


logger = logging.getLogger(__name__)


_DECISION_ALIASES = {
    "approve": Decision.APPROVED,
    "approved": Decision.APPROVED,
    "deny": Decision.DENIED,
    "denied": Decision.DENIED,
}


def parse_decision(value: Decision | str) -> Decision:
    """Accept a Decision or one of approve/approved/deny/denied."""
    if isinstance(value, Decision):
        return value
    if isinstance(value, str):
        decision = _DECISION_ALIASES.get(value.strip().lower())
        if decision is not None:
            return decision
    raise InvalidDecision(value)


@dataclass
class DecisionOutcome:
    ticket_id: str
    decision: Decision
    decided_at: datetime | None
    comment: str | None
    already_decided: bool = False


@dataclass
class Attachment:
    url: str
    label: str


def attachment_label(url: str, index: int) -> str:
    """File name from the URL path, or a numbered fallback label."""
    name = unquote(urlsplit(url).path.rsplit("/", 1)[-1])
    if not name or name.lower() == "view":
        return f"添付資料{index}"
    return name


@dataclass
class TicketContext:
    """What a member sees when opening an approval form."""
    ticket: ApprovalTicket
    proposal_title: str = ""
    issue_number: int | None = None
    display_number: str = ""
    description: str = ""
    proposer_names: list[str] = field(default_factory=list)
    deadline: date | None = None
    attachments: list[Attachment] = field(default_factory=list)
    member_name: str = ""


class DecisionRecorder:
    """Records a member's answer on their approval ticket."""

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def record_decision(
        self,
        ticket_id: str,
        decision: Decision | str,
        comment: str | None = None,
    ) -> DecisionOutcome:
        """
        Record an answer unless the ticket already has one.

        Raises:
            InvalidDecision: decision is not approve/deny
            NotFound: ticket does not exist
            UpstreamUnavailable: record store could not be read or written
        """
        decision = parse_decision(decision)

        ticket = await self._store.get(Collection.APPROVAL_TICKETS, ticket_id)

        if ticket.is_decided:
            logger.warning(
                f"Ticket {ticket.id} already decided ({ticket.decision.value}); "
                f"ignoring {decision.value}"
            )
            return DecisionOutcome(
                ticket_id=ticket.id,
                decision=ticket.decision,
                decided_at=ticket.decided_at,
                comment=ticket.comment,
                already_decided=True,
            )

        fields = {
            "decision": decision,
            "decided_at": self._clock(),
            "comment": (comment or "").strip() or None,
        }
        await self._store.update(Collection.APPROVAL_TICKETS, ticket.id, fields)

        logger.info(f"Recorded {decision.value} on ticket {ticket.id}")
        return DecisionOutcome(
            ticket_id=ticket.id,
            decision=fields["decision"],
            decided_at=fields["decided_at"],
            comment=fields["comment"],
        )

    async def _member_name(self, member_id: str) -> str:
        try:
            member = await self._store.get(Collection.MEMBERS, member_id)
        except NotFound:
            logger.warning(f"Referenced member {member_id} does not exist")
            return ""
        return member.display_name

    async def describe(self, ticket_id: str) -> TicketContext:
        """
        Ticket with the proposal and member values shown on the approval form.

        A missing proposal, proposer or member leaves its fields empty.
        """
        ticket = await self._store.get(Collection.APPROVAL_TICKETS, ticket_id)
        context = TicketContext(ticket=ticket)

        if ticket.proposal_id:
            try:
                proposal = await self._store.get(Collection.PROPOSALS, ticket.proposal_id)
            except NotFound:
                logger.warning(f"Ticket {ticket.id} references missing proposal {ticket.proposal_id}")
            else:
                context.proposal_title = proposal.title
                context.issue_number = proposal.issue_number
                context.display_number = proposal.display_number
                context.description = proposal.description
                context.deadline = proposal.deadline
                context.attachments = [
                    Attachment(url=url, label=attachment_label(url, index))
                    for index, url in enumerate(proposal.attachment_urls, start=1)
                ]
                for proposer_id in proposal.proposer_ids:
                    name = await self._member_name(proposer_id)
                    if name:
                        context.proposer_names.append(name)

        if ticket.member_id:
            context.member_name = await self._member_name(ticket.member_id)

        return context
