"""In-process record store for local runs and tests."""

import logging
from datetime import datetime
from typing import Any, Sequence
from uuid import uuid4

from ..core.errors import NotFound
from ..models import RECORD_TYPES, Collection, Record, with_fields
from .base import FieldFilter, RecordStore


logger = logging.getLogger(__name__)

# Relation fields hold a single record ID on the typed records.
_RELATION_FIELDS = {"proposal_id", "member_id"}


def _matches(record: Record, flt: FieldFilter) -> bool:
    value = getattr(record, flt.field)
    if flt.op == "equals":
        return value == flt.value
    if flt.op == "contains":
        if flt.field not in _RELATION_FIELDS:
            raise ValueError(f"Field {flt.field} is not a relation")
        return value == flt.value
    if flt.op in ("on_or_after", "before"):
        if not isinstance(value, datetime):
            return False
        if flt.op == "on_or_after":
            return value >= flt.value
        return value < flt.value
    raise ValueError(f"Unsupported filter op: {flt.op}")


class InMemoryRecordStore(RecordStore):
    """
    Dict-backed store with the same semantics as the hosted backend.

    ``writes`` counts create and update calls so callers can assert that an
    operation performed no mutation.
    """

    def __init__(self):
        self._records: dict[Collection, dict[str, Record]] = {
            collection: {} for collection in Collection
        }
        self.writes = 0

    def add(self, collection: Collection, record: Record) -> Record:
        """Seed a record without counting it as a write."""
        self._records[collection][record.id] = record
        return record

    def all(self, collection: Collection) -> list[Record]:
        return list(self._records[collection].values())

    async def get(self, collection: Collection, record_id: str) -> Record:
        record = self._records[collection].get(record_id)
        if record is None:
            raise NotFound(collection.value, record_id)
        return record

    async def query(
        self,
        collection: Collection,
        filters: Sequence[FieldFilter] = (),
    ) -> list[Record]:
        return [
            record
            for record in self._records[collection].values()
            if all(_matches(record, flt) for flt in filters)
        ]

    async def create(self, collection: Collection, fields: dict[str, Any]) -> Record:
        record_type = RECORD_TYPES[collection]
        fields = dict(fields)
        record = record_type(id=fields.pop("id", None) or str(uuid4()), **fields)
        self._records[collection][record.id] = record
        self.writes += 1
        logger.debug(f"Created {collection.value} record {record.id}")
        return record

    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: dict[str, Any],
    ) -> Record:
        record = await self.get(collection, record_id)
        updated = with_fields(record, fields)
        self._records[collection][record_id] = updated
        self.writes += 1
        return updated
