"""Concrete strategy implementations."""

from app.strategies.record_stores import (
    InMemoryRecordStore,
    NotionRecordStore,
)

__all__ = [
    "InMemoryRecordStore",
    "NotionRecordStore",
]
