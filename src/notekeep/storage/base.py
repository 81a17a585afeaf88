"""Record store abstraction consumed by the notekeep core."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from notekeep.models.schema import Table


class OperationKind(str, Enum):
    """Kinds of operations that can be part of a batch."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class StoreOperation:
    """One operation of an atomic batch.

    Attributes:
        kind: Insert, update or delete.
        table: Target table.
        row_id: Target row for update/delete; ignored for insert.
        values: Column values for insert/update.
    """

    kind: OperationKind
    table: Table
    row_id: Optional[int] = None
    values: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def insert(cls, table: Table, values: Mapping[str, Any]) -> "StoreOperation":
        return cls(OperationKind.INSERT, table, None, dict(values))

    @classmethod
    def update(
        cls, table: Table, row_id: int, values: Mapping[str, Any]
    ) -> "StoreOperation":
        return cls(OperationKind.UPDATE, table, row_id, dict(values))

    @classmethod
    def delete(cls, table: Table, row_id: int) -> "StoreOperation":
        return cls(OperationKind.DELETE, table, row_id)


@dataclass(frozen=True)
class OperationResult:
    """Result of one batch operation.

    Attributes:
        count: Rows affected (update/delete) or 1 for an insert.
        row_id: Id of the inserted row, else the target row id.
    """

    count: int
    row_id: Optional[int] = None


@dataclass(frozen=True)
class Condition:
    """One predicate term. Terms passed together are AND-composed."""

    column: str
    op: str
    value: Any

    EQ = "eq"
    NE = "ne"
    PHONE_EQ = "phone_eq"


def eq(column: str, value: Any) -> Condition:
    return Condition(column, Condition.EQ, value)


def ne(column: str, value: Any) -> Condition:
    return Condition(column, Condition.NE, value)


def phone_eq(column: str, value: str) -> Condition:
    """Phone-number equality, tolerant of formatting and prefixes."""
    return Condition(column, Condition.PHONE_EQ, value)


class RecordStore(ABC):
    """Generic transactional row store.

    Implementations must run ``apply_batch`` as one unit: either every
    operation is applied or none is. Failures are reported by raising
    ``notekeep.exceptions.StoreError``.
    """

    @abstractmethod
    def insert(self, table: Table, values: Mapping[str, Any]) -> int:
        """Insert a row and return its new id."""

    @abstractmethod
    def update(self, table: Table, row_id: int, values: Mapping[str, Any]) -> int:
        """Update one row and return the number of rows affected."""

    @abstractmethod
    def delete(self, table: Table, row_id: int) -> int:
        """Delete one row and return the number of rows affected."""

    @abstractmethod
    def query(
        self,
        table: Table,
        columns: Optional[Sequence[str]] = None,
        where: Sequence[Condition] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """Return matching rows as dicts restricted to ``columns`` (all if None)."""

    @abstractmethod
    def apply_batch(
        self, operations: Sequence[StoreOperation]
    ) -> List[OperationResult]:
        """Apply all operations atomically and return one result per operation."""
