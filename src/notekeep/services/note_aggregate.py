"""Note aggregate: pending changes of one note and its content records.

A note is persisted as one row in the note table plus at most one TEXT and
one CALL record in the data table. ``NoteAggregate`` collects edits to all
three in diff buffers and turns them into the smallest set of store calls
on commit.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from notekeep.config import config
from notekeep.exceptions import ErrorCode, InvalidArgumentError, StoreError
from notekeep.models.diff_buffer import DiffBuffer
from notekeep.models.schema import (
    ContentKind,
    DataColumns,
    NoteColumns,
    NoteType,
    Table,
    current_millis,
)
from notekeep.observability import traced
from notekeep.storage.base import RecordStore, StoreOperation

logger = logging.getLogger(__name__)

# Serializes identity allocation across every session of the process
_allocation_lock = threading.Lock()


@traced("allocate_note_id")
def allocate_note_id(store: RecordStore, folder_id: int) -> int:
    """Insert a minimal note row in ``folder_id`` and return its new id.

    Raises:
        StoreError: If the store fails or hands back an unusable id.
    """
    now = current_millis()
    values = {
        NoteColumns.CREATED_DATE: now,
        NoteColumns.MODIFIED_DATE: now,
        NoteColumns.TYPE: NoteType.NOTE.value,
        NoteColumns.LOCAL_MODIFIED: 1,
        NoteColumns.PARENT_ID: folder_id,
    }
    with _allocation_lock:
        note_id = store.insert(Table.NOTE, values)

    if note_id is None or note_id <= 0:
        raise StoreError(
            f"Store returned an invalid note id: {note_id}",
            operation="allocate_note_id",
            table=Table.NOTE.value,
            code=ErrorCode.STORE_ID_ALLOCATION_FAILED,
        )
    logger.debug(f"Allocated note {note_id} in folder {folder_id}")
    return note_id


class NoteAggregate:
    """Diff-tracking write model for one note.

    Every staged change, on the note row or on a content record, also stamps
    ``local_modified = 1`` and ``modified_date = now`` on the note row.
    """

    def __init__(self, store: RecordStore, retain_on_failure: Optional[bool] = None):
        """Create an empty aggregate.

        Args:
            store: Record store the aggregate commits to.
            retain_on_failure: Keep pending content changes after a failed
                commit so a retry resends them. Defaults to
                ``config.strict_commit``.
        """
        self._store = store
        self.retain_on_failure = (
            config.strict_commit if retain_on_failure is None else retain_on_failure
        )
        self._note_diff = DiffBuffer()
        self._content_diffs: Dict[ContentKind, DiffBuffer] = {
            kind: DiffBuffer(on_change=self._stamp_modified) for kind in ContentKind
        }

    def _stamp_modified(self) -> None:
        self._note_diff.stamp(
            {
                NoteColumns.LOCAL_MODIFIED: 1,
                NoteColumns.MODIFIED_DATE: current_millis(),
            }
        )

    def set_note_value(self, key: str, value: Any) -> None:
        self._note_diff.set(key, value)
        self._stamp_modified()

    def set_content_value(self, kind: ContentKind, key: str, value: Any) -> None:
        self._content_diffs[kind].set(key, value)

    def bind_content_id(self, kind: ContentKind, record_id: int) -> None:
        """Associate an already persisted content record with this note.

        Raises:
            InvalidArgumentError: If record_id is not positive.
        """
        self._content_diffs[kind].bind_id(record_id)

    def content_id(self, kind: ContentKind) -> int:
        return self._content_diffs[kind].record_id

    def pending_note_values(self) -> Dict[str, Any]:
        return self._note_diff.values()

    def pending_content_values(self, kind: ContentKind) -> Dict[str, Any]:
        return self._content_diffs[kind].values()

    @property
    def is_dirty(self) -> bool:
        return self._note_diff.is_dirty or any(
            diff.is_dirty for diff in self._content_diffs.values()
        )

    @traced("commit_note")
    def commit(self, note_id: int) -> bool:
        """Flush all pending changes for ``note_id``.

        The note row is updated first; a failure there is logged but does not
        stop the content records from being written. Unbound content records
        are inserted one by one and bound to their new id, bound ones are
        updated together in a single batch.

        Returns:
            True if the note row update did not raise and every content write
            succeeded (or nothing was pending). An update matching no row is
            only logged.

        Raises:
            InvalidArgumentError: If note_id is not positive.
        """
        if note_id <= 0:
            raise InvalidArgumentError(
                f"Wrong note id: {note_id}",
                field="note_id",
                value=note_id,
                code=ErrorCode.INVALID_NOTE_ID,
            )

        if not self.is_dirty:
            return True

        note_row_written = True
        if self._note_diff.is_dirty:
            note_row_written = self._flush_note_row(note_id)
        self._note_diff.clear()

        success = False
        try:
            success = self._flush_content(note_id)
            return success and note_row_written
        finally:
            if success or not self.retain_on_failure:
                for diff in self._content_diffs.values():
                    diff.clear()

    def _flush_note_row(self, note_id: int) -> bool:
        """Update the note row; False only when the store raised."""
        try:
            count = self._store.update(Table.NOTE, note_id, self._note_diff.values())
        except StoreError as e:
            logger.error(f"Update note {note_id} failed, continuing with content: {e}")
            return False
        if count == 0:
            logger.error(f"Update note {note_id} matched no row, continuing with content")
        return True

    def _flush_content(self, note_id: int) -> bool:
        operations: List[StoreOperation] = []
        for kind, diff in self._content_diffs.items():
            if not diff.is_dirty:
                continue
            diff.stamp({DataColumns.NOTE_ID: note_id})

            if diff.is_bound:
                operations.append(
                    StoreOperation.update(Table.DATA, diff.record_id, diff.values())
                )
                continue

            values = diff.values()
            values[DataColumns.MIME_TYPE] = kind.mime_type
            try:
                record_id = self._store.insert(Table.DATA, values)
            except StoreError as e:
                logger.error(f"Insert {kind.name} data for note {note_id} failed: {e}")
                return False
            if record_id is None or record_id <= 0:
                logger.error(
                    f"Insert {kind.name} data for note {note_id} returned id {record_id}"
                )
                return False
            diff.bind_id(record_id)

        if not operations:
            return True

        try:
            results = self._store.apply_batch(operations)
        except StoreError as e:
            logger.error(f"Content batch for note {note_id} failed: {e}")
            return False
        if not results or results[0] is None:
            logger.error(f"Content batch for note {note_id} returned no results")
            return False
        return True
