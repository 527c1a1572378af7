"""Abstract base classes for replication strategies."""

from app.interfaces.record_store import BaseRecordStore, Record, RecordStoreError

__all__ = [
    "BaseRecordStore",
    "Record",
    "RecordStoreError",
]
