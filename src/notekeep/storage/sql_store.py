"""SQLite record store built on SQLAlchemy Core."""

import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from notekeep.exceptions import ErrorCode, InvalidArgumentError, StoreError
from notekeep.models.db_models import Base, get_session_factory, init_db
from notekeep.models.schema import Table
from notekeep.storage.base import (
    Condition,
    OperationKind,
    OperationResult,
    RecordStore,
    StoreOperation,
)

logger = logging.getLogger(__name__)


class SqlRecordStore(RecordStore):
    """RecordStore backed by a SQLite database.

    Every single-row call runs in its own session and commits immediately.
    ``apply_batch`` runs all operations in one session and commits once, so
    a failure anywhere rolls back the whole batch. On an in-memory database
    sessions are serialized across threads.
    """

    def __init__(self, engine: Optional[Engine] = None, db_url: Optional[str] = None):
        """Initialize the store.

        Args:
            engine: Pre-configured SQLAlchemy engine. When provided it is used
                    directly and ``db_url`` is ignored.
            db_url: Database URL for a new engine. Defaults to the configured one.
        """
        self.engine = engine if engine is not None else init_db(db_url)
        self.session_factory = get_session_factory(self.engine)
        # An in-memory engine has a single shared connection, so sessions
        # from different threads must not overlap or their transactions mix.
        self._connection_lock = (
            threading.RLock() if isinstance(self.engine.pool, StaticPool) else nullcontext()
        )
        logger.info(f"SqlRecordStore initialized: url={self.engine.url}")

    @contextmanager
    def _session(self):
        with self._connection_lock, self.session_factory() as session:
            yield session

    def _table(self, table: Table):
        return Base.metadata.tables[Table(table).value]

    def _column(self, table: Table, column: str):
        sql_table = self._table(table)
        try:
            return sql_table.c[column]
        except KeyError:
            raise InvalidArgumentError(
                f"Unknown column '{column}' for table '{sql_table.name}'",
                field="column",
                value=column,
            )

    def _clause(self, table: Table, condition: Condition):
        column = self._column(table, condition.column)
        if condition.op == Condition.EQ:
            return column == condition.value
        if condition.op == Condition.NE:
            return column != condition.value
        if condition.op == Condition.PHONE_EQ:
            return func.phone_numbers_equal(column, condition.value) == 1
        raise InvalidArgumentError(
            f"Unsupported predicate operator '{condition.op}'",
            field="op",
            value=condition.op,
        )

    def _check_columns(self, table: Table, values: Mapping[str, Any]) -> None:
        for column in values:
            self._column(table, column)

    def _execute(self, session: Session, operation: StoreOperation) -> OperationResult:
        sql_table = self._table(operation.table)
        self._check_columns(operation.table, operation.values)

        if operation.kind == OperationKind.INSERT:
            result = session.execute(insert(sql_table).values(**operation.values))
            row_id = result.inserted_primary_key[0]
            return OperationResult(count=1, row_id=row_id)

        if operation.row_id is None:
            raise InvalidArgumentError(
                f"{operation.kind.value} needs a row id", field="row_id"
            )

        if operation.kind == OperationKind.UPDATE:
            result = session.execute(
                update(sql_table)
                .where(sql_table.c.id == operation.row_id)
                .values(**operation.values)
            )
        else:
            result = session.execute(
                delete(sql_table).where(sql_table.c.id == operation.row_id)
            )
        return OperationResult(count=result.rowcount, row_id=operation.row_id)

    def _run_single(
        self, operation: StoreOperation, code: ErrorCode
    ) -> OperationResult:
        try:
            with self._session() as session:
                result = self._execute(session, operation)
                session.commit()
                return result
        except SQLAlchemyError as e:
            logger.error(
                f"{operation.kind.value} on {operation.table.value} "
                f"(row_id={operation.row_id}) failed: {e}"
            )
            raise StoreError(
                f"{operation.kind.value} failed: {e}",
                operation=operation.kind.value,
                table=operation.table.value,
                row_id=operation.row_id,
                code=code,
                original_error=e,
            )

    def insert(self, table: Table, values: Mapping[str, Any]) -> int:
        op = StoreOperation.insert(Table(table), values)
        return self._run_single(op, ErrorCode.STORE_WRITE_FAILED).row_id

    def update(self, table: Table, row_id: int, values: Mapping[str, Any]) -> int:
        op = StoreOperation.update(Table(table), row_id, values)
        return self._run_single(op, ErrorCode.STORE_WRITE_FAILED).count

    def delete(self, table: Table, row_id: int) -> int:
        op = StoreOperation.delete(Table(table), row_id)
        return self._run_single(op, ErrorCode.STORE_DELETE_FAILED).count

    def query(
        self,
        table: Table,
        columns: Optional[Sequence[str]] = None,
        where: Sequence[Condition] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        sql_table = self._table(table)
        if columns:
            stmt = select(*[self._column(table, c) for c in columns])
        else:
            stmt = select(sql_table)
        if where:
            stmt = stmt.where(and_(*[self._clause(table, c) for c in where]))
        if order_by:
            order_column = self._column(table, order_by)
            stmt = stmt.order_by(order_column.desc() if descending else order_column)

        try:
            with self._session() as session:
                rows = session.execute(stmt).mappings().all()
                return [dict(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"query on {Table(table).value} failed: {e}")
            raise StoreError(
                f"query failed: {e}",
                operation="query",
                table=Table(table).value,
                code=ErrorCode.STORE_READ_FAILED,
                original_error=e,
            )

    def apply_batch(
        self, operations: Sequence[StoreOperation]
    ) -> List[OperationResult]:
        if not operations:
            return []

        # Validate up front so a bad column never leaves a half-built batch
        for operation in operations:
            self._check_columns(operation.table, operation.values)

        try:
            with self._session() as session:
                results = [self._execute(session, op) for op in operations]
                # This is the commit point - if this fails, the batch rolls back
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Batch of {len(operations)} operations rolled back: {e}")
            raise StoreError(
                f"Batch failed: {e}",
                operation="apply_batch",
                code=ErrorCode.STORE_BATCH_FAILED,
                original_error=e,
            )

        logger.debug(f"Applied batch of {len(operations)} operations")
        return results

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()
