"""Record store: interface, Notion backend, in-memory backend."""

from .base import FieldFilter, RecordStore
from .memory import InMemoryRecordStore
from .notion import NotionRecordStore

__all__ = [
    "FieldFilter",
    "RecordStore",
    "InMemoryRecordStore",
    "NotionRecordStore",
]
