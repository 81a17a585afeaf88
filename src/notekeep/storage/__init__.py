"""Storage layer for the notekeep persistence core."""

from notekeep.storage.base import (
    Condition,
    OperationKind,
    OperationResult,
    RecordStore,
    StoreOperation,
    eq,
    ne,
    phone_eq,
)
from notekeep.storage.sql_store import SqlRecordStore

__all__ = [
    "Condition",
    "OperationKind",
    "OperationResult",
    "RecordStore",
    "SqlRecordStore",
    "StoreOperation",
    "eq",
    "ne",
    "phone_eq",
]
