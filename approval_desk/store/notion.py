"""Notion-backed record store.

Uses the Notion REST API directly over httpx (no SDK dependency).
"""

import logging
from typing import Any, Sequence

import httpx

from ..core.config import Settings
from ..core.errors import ConfigurationError, NotFound, UpstreamUnavailable
from ..models import Collection, Record
from .base import FieldFilter, RecordStore
from .notion_mapping import (
    PAGE_PARSERS,
    encode_filter,
    encode_properties,
    ticket_comment_property,
)


logger = logging.getLogger(__name__)


class NotionRecordStore(RecordStore):
    """Record store over three Notion databases."""

    API_BASE_URL = "https://api.notion.com/v1/"
    PAGE_SIZE = 100

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = settings.notion_api_key
        self._notion_version = settings.notion_version
        self._timeout = settings.http_timeout_seconds
        self._database_ids = {
            Collection.PROPOSALS: settings.notion_proposal_database_id,
            Collection.MEMBERS: settings.notion_member_database_id,
            Collection.APPROVAL_TICKETS: settings.notion_approval_database_id,
        }
        self._transport = transport

    def _database_id(self, collection: Collection) -> str:
        database_id = self._database_ids[collection]
        if not database_id:
            raise ConfigurationError(
                f"Notion database ID for {collection.value} is not configured"
            )
        return database_id

    async def _request(
        self,
        method: str,
        path: str,
        step: str,
        body: dict | None = None,
        not_found: tuple[Collection, str] | None = None,
    ) -> dict:
        if not self._api_key:
            raise ConfigurationError("NOTION_API_KEY is not set")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Notion-Version": self._notion_version,
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                response = await client.request(method, path, headers=headers, json=body)
        except httpx.HTTPError as e:
            logger.error(f"Notion request failed [{step}]: {e}")
            raise UpstreamUnavailable("notion", step, str(e)) from e

        if response.status_code == 404 and not_found:
            collection, record_id = not_found
            raise NotFound(collection.value, record_id)

        if response.status_code >= 400:
            logger.error(
                f"Notion API error [{step}]: {response.status_code} {response.text[:500]}"
            )
            raise UpstreamUnavailable(
                "notion", step, f"HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Notion returned a non-JSON body [{step}]: {response.text[:200]}")
            raise UpstreamUnavailable("notion", step, "response body is not JSON") from e

    async def _get_page(self, collection: Collection, record_id: str) -> dict:
        return await self._request(
            "GET",
            f"pages/{record_id}",
            step=f"get {collection.value}",
            not_found=(collection, record_id),
        )

    async def get(self, collection: Collection, record_id: str) -> Record:
        page = await self._get_page(collection, record_id)
        return PAGE_PARSERS[collection](page)

    async def query(
        self,
        collection: Collection,
        filters: Sequence[FieldFilter] = (),
    ) -> list[Record]:
        database_id = self._database_id(collection)
        body: dict[str, Any] = {"page_size": self.PAGE_SIZE}
        if filters:
            body["filter"] = {"and": [encode_filter(collection, flt) for flt in filters]}

        parse = PAGE_PARSERS[collection]
        records: list[Record] = []
        while True:
            data = await self._request(
                "POST",
                f"databases/{database_id}/query",
                step=f"query {collection.value}",
                body=body,
            )
            records.extend(parse(page) for page in data.get("results") or [])
            if not data.get("has_more") or not data.get("next_cursor"):
                break
            body = {**body, "start_cursor": data["next_cursor"]}

        return records

    async def create(self, collection: Collection, fields: dict[str, Any]) -> Record:
        body = {
            "parent": {"database_id": self._database_id(collection)},
            "properties": encode_properties(collection, fields),
        }
        page = await self._request("POST", "pages", step=f"create {collection.value}", body=body)
        return PAGE_PARSERS[collection](page)

    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: dict[str, Any],
    ) -> Record:
        comment_property = None
        if collection == Collection.APPROVAL_TICKETS and "comment" in fields:
            # Comment property name differs between ticket databases
            page = await self._get_page(collection, record_id)
            comment_property = ticket_comment_property(page.get("properties") or {})

        body = {"properties": encode_properties(collection, fields, comment_property)}
        page = await self._request(
            "PATCH",
            f"pages/{record_id}",
            step=f"update {collection.value}",
            body=body,
            not_found=(collection, record_id),
        )
        return PAGE_PARSERS[collection](page)
