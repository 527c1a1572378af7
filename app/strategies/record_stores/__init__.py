"""Concrete record store implementations."""

from app.strategies.record_stores.memory import InMemoryRecordStore
from app.strategies.record_stores.notion import NotionRecordStore

__all__ = [
    "InMemoryRecordStore",
    "NotionRecordStore",
]
