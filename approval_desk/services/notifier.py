"""
Notifier: pushes an approval request to a member's messaging identity.

Delivery is best-effort. Channels report ``(success, error_message)``
instead of raising, so a caller can keep going when one recipient fails.
"""

import logging
from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx

from ..core.config import Settings


logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Abstract base for notification delivery."""

    @abstractmethod
    async def notify(
        self,
        recipient_channel_id: str,
        ticket_id: str,
    ) -> tuple[bool, str | None]:
        """
        Send an approval request for one ticket.

        Returns:
            (success, error_message)
        """
        pass


def approval_form_url(base_url: str, ticket_id: str) -> str:
    return f"{base_url}?id={quote(ticket_id, safe='')}"


class LineNotifier(Notifier):
    """LINE Messaging API push delivery."""

    PUSH_URL = "https://api.line.me/v2/bot/message/push"

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._access_token = settings.line_channel_access_token
        self._form_base_url = settings.approval_form_base_url
        self._timeout = settings.http_timeout_seconds
        self._transport = transport

    def build_message(self, ticket_id: str) -> dict:
        url = approval_form_url(self._form_base_url, ticket_id)
        return {
            "type": "text",
            "text": (
                "【承認依頼】NPO法人ガレージ都農\n"
                "リンク先の画面で内容を確認し、「承認」または「否認」を選んで送信してください。\n"
                f"{url}"
            ),
        }

    async def notify(
        self,
        recipient_channel_id: str,
        ticket_id: str,
    ) -> tuple[bool, str | None]:
        if not self._access_token:
            return False, "LINE_CHANNEL_ACCESS_TOKEN is not set"

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                response = await client.post(
                    self.PUSH_URL,
                    headers={
                        "Authorization": f"Bearer {self._access_token}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "to": recipient_channel_id,
                        "messages": [self.build_message(ticket_id)],
                    },
                )
        except httpx.HTTPError as e:
            error_msg = f"LINE push failed: {e}"
            logger.error(error_msg)
            return False, error_msg

        if response.status_code >= 400:
            error_msg = f"LINE push error: {response.status_code} {response.text[:200]}"
            logger.error(error_msg)
            return False, error_msg

        logger.info(f"[LINE] Pushed approval request for ticket {ticket_id}")
        return True, None


class RecordingNotifier(Notifier):
    """Keeps deliveries in memory. Used for local runs without LINE."""

    def __init__(self, failing_channels: set[str] | None = None):
        self.sent: list[tuple[str, str]] = []
        self.failing_channels = failing_channels or set()

    async def notify(
        self,
        recipient_channel_id: str,
        ticket_id: str,
    ) -> tuple[bool, str | None]:
        if recipient_channel_id in self.failing_channels:
            return False, f"Delivery to {recipient_channel_id} failed"
        self.sent.append((recipient_channel_id, ticket_id))
        logger.info(f"[NOTIFY] To: {recipient_channel_id}, Ticket: {ticket_id}")
        return True, None
