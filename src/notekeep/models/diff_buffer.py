"""Per-entity accumulator of pending field changes."""

from typing import Any, Callable, Dict, Mapping, Optional

from notekeep.exceptions import ErrorCode, InvalidArgumentError


class DiffBuffer:
    """Pending field changes of one entity (a note row or a content record).

    Every ``set`` calls the ``on_change`` callback, which is how the owning
    aggregate stamps ``local_modified``/``modified_date`` on the note row.
    ``stamp`` merges fields without firing the callback.

    A content buffer may be bound to the id of an already persisted record;
    an unbound buffer (``record_id == 0``) is flushed as an insert.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None) -> None:
        self._values: Dict[str, Any] = {}
        self._on_change = on_change
        self._record_id = 0

    def set(self, field: str, value: Any) -> None:
        self._values[field] = value
        if self._on_change is not None:
            self._on_change()

    def stamp(self, fields: Mapping[str, Any]) -> None:
        self._values.update(fields)

    @property
    def is_dirty(self) -> bool:
        return bool(self._values)

    def values(self) -> Dict[str, Any]:
        """Return a copy of the pending changes."""
        return dict(self._values)

    def clear(self) -> None:
        self._values.clear()

    @property
    def record_id(self) -> int:
        return self._record_id

    @property
    def is_bound(self) -> bool:
        return self._record_id > 0

    def bind_id(self, record_id: int) -> None:
        """Bind the buffer to a persisted record.

        Raises:
            InvalidArgumentError: If record_id is not positive.
        """
        if record_id <= 0:
            raise InvalidArgumentError(
                f"Record id should be larger than 0, got {record_id}",
                field="record_id",
                value=record_id,
                code=ErrorCode.INVALID_DATA_ID,
            )
        self._record_id = record_id

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"<DiffBuffer(record_id={self._record_id}, fields={sorted(self._values)})>"
