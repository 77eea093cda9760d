"""Record store interface consumed by the services."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal, Sequence

from ..models import Collection, Record


FilterOp = Literal["equals", "contains", "on_or_after", "before"]


@dataclass(frozen=True)
class FieldFilter:
    """
    A single filter on an internal field name.

    ``equals`` matches select/enum and boolean fields, ``contains`` matches a
    relation that references the given record ID, ``on_or_after`` and
    ``before`` bound a timestamp field.
    """

    field: str
    value: Any
    op: FilterOp = "equals"


class RecordStore(ABC):
    """Typed read/write access to proposals, members and approval tickets."""

    @abstractmethod
    async def get(self, collection: Collection, record_id: str) -> Record:
        """Fetch one record. Raises NotFound."""

    @abstractmethod
    async def query(
        self,
        collection: Collection,
        filters: Sequence[FieldFilter] = (),
    ) -> list[Record]:
        """Return every record matching all filters."""

    @abstractmethod
    async def create(self, collection: Collection, fields: dict[str, Any]) -> Record:
        """Create a record from internal field values."""

    @abstractmethod
    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: dict[str, Any],
    ) -> Record:
        """Write internal field values to an existing record. Raises NotFound."""
