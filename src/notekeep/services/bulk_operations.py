"""Bulk maintenance operations and lookups against the record store.

These functions bypass the diff buffers of ``NoteAggregate`` and issue
direct, batched mutations. Mutations report failure as ``False`` and log
the cause; lookups propagate ``StoreError``.
"""

import logging
from typing import Iterable, List, Optional, Set

from notekeep.exceptions import NoteNotFoundError, StoreError
from notekeep.models.schema import (
    ID_TRASH_FOLDER,
    SYSTEM_FOLDER_IDS,
    CallColumns,
    ContentKind,
    DataColumns,
    NoteColumns,
    NoteType,
    Table,
    WidgetAttribute,
)
from notekeep.observability import traced
from notekeep.storage.base import RecordStore, StoreOperation, eq, ne, phone_eq
from notekeep.utils import first_line_of

logger = logging.getLogger(__name__)

__all__ = [
    "batch_delete",
    "batch_move",
    "data_exists",
    "exists",
    "first_line_of",
    "folder_name_taken",
    "is_visible",
    "move_note",
    "note_id_for_call_and_date",
    "phone_number_for_note",
    "snippet_for_note",
    "user_folder_count",
    "widget_bindings_in_folder",
]


def _apply(store: RecordStore, operations: List[StoreOperation], operation_name: str) -> bool:
    """Run ``operations`` as one batch and translate the outcome to a bool."""
    try:
        results = store.apply_batch(operations)
    except StoreError as e:
        logger.error(f"{operation_name} failed: {e}")
        return False

    if not results or results[0] is None:
        logger.error(f"{operation_name}: store returned no results")
        return False

    logger.info(f"{operation_name}: applied {len(operations)} operations")
    return True


@traced("batch_delete")
def batch_delete(store: RecordStore, ids: Optional[Iterable[int]]) -> bool:
    """Delete the given notes in one atomic batch.

    Reserved system folders are never deleted; their ids are skipped.
    """
    if ids is None:
        logger.debug("the ids is null")
        return True

    operations = []
    for note_id in ids:
        if note_id in SYSTEM_FOLDER_IDS:
            logger.warning(f"Don't delete system folder {note_id}")
            continue
        operations.append(StoreOperation.delete(Table.NOTE, note_id))

    if not operations:
        logger.debug("no ids to delete")
        return True

    return _apply(store, operations, "batch_delete")


@traced("batch_move")
def batch_move(store: RecordStore, ids: Optional[Iterable[int]], dest_folder_id: int) -> bool:
    """Move the given notes to ``dest_folder_id`` in one atomic batch.

    Each note remembers the folder it came from in ``origin_parent_id``.
    Ids without a row are skipped.

    Returns:
        True on success or empty input, False when nothing could be moved or
        the batch failed.
    """
    if ids is None:
        logger.debug("the ids is null")
        return True
    ids = list(ids)
    if not ids:
        return True

    operations = []
    try:
        for note_id in ids:
            rows = store.query(
                Table.NOTE, [NoteColumns.PARENT_ID], [eq(NoteColumns.ID, note_id)]
            )
            if not rows:
                logger.warning(f"Note {note_id} not found for batch_move")
                continue
            operations.append(
                StoreOperation.update(
                    Table.NOTE,
                    note_id,
                    {
                        NoteColumns.PARENT_ID: dest_folder_id,
                        NoteColumns.ORIGIN_PARENT_ID: rows[0][NoteColumns.PARENT_ID],
                        NoteColumns.LOCAL_MODIFIED: 1,
                    },
                )
            )
    except StoreError as e:
        logger.error(f"batch_move: reading current folders failed: {e}")
        return False

    if not operations:
        logger.error(f"batch_move: none of {len(ids)} notes found")
        return False

    return _apply(store, operations, "batch_move")


@traced("move_note")
def move_note(store: RecordStore, note_id: int, src_folder_id: int, dest_folder_id: int) -> bool:
    """Move a single note, recording ``src_folder_id`` as its origin."""
    values = {
        NoteColumns.PARENT_ID: dest_folder_id,
        NoteColumns.ORIGIN_PARENT_ID: src_folder_id,
        NoteColumns.LOCAL_MODIFIED: 1,
    }
    try:
        return store.update(Table.NOTE, note_id, values) > 0
    except StoreError as e:
        logger.error(f"move_note {note_id} failed: {e}")
        return False


def user_folder_count(store: RecordStore) -> int:
    """Number of user folders outside the trash."""
    rows = store.query(
        Table.NOTE,
        [NoteColumns.ID],
        [
            eq(NoteColumns.TYPE, NoteType.FOLDER.value),
            ne(NoteColumns.PARENT_ID, ID_TRASH_FOLDER),
        ],
    )
    return len(rows)


def is_visible(store: RecordStore, note_id: int, note_type: int) -> bool:
    """True when the row exists with ``note_type`` and is not in the trash."""
    rows = store.query(
        Table.NOTE,
        [NoteColumns.ID],
        [
            eq(NoteColumns.ID, note_id),
            eq(NoteColumns.TYPE, note_type),
            ne(NoteColumns.PARENT_ID, ID_TRASH_FOLDER),
        ],
    )
    return len(rows) > 0


def exists(store: RecordStore, note_id: int) -> bool:
    return bool(store.query(Table.NOTE, [NoteColumns.ID], [eq(NoteColumns.ID, note_id)]))


def data_exists(store: RecordStore, data_id: int) -> bool:
    return bool(store.query(Table.DATA, [DataColumns.ID], [eq(DataColumns.ID, data_id)]))


def folder_name_taken(store: RecordStore, name: str) -> bool:
    """True when a visible folder already uses ``name``."""
    rows = store.query(
        Table.NOTE,
        [NoteColumns.ID],
        [
            eq(NoteColumns.TYPE, NoteType.FOLDER.value),
            ne(NoteColumns.PARENT_ID, ID_TRASH_FOLDER),
            eq(NoteColumns.SNIPPET, name),
        ],
    )
    return len(rows) > 0


def widget_bindings_in_folder(store: RecordStore, folder_id: int) -> Set[WidgetAttribute]:
    """Widget bindings of the notes in ``folder_id``."""
    rows = store.query(
        Table.NOTE,
        [NoteColumns.WIDGET_ID, NoteColumns.WIDGET_TYPE],
        [eq(NoteColumns.PARENT_ID, folder_id)],
    )
    return {
        WidgetAttribute(row[NoteColumns.WIDGET_ID], row[NoteColumns.WIDGET_TYPE])
        for row in rows
    }


def phone_number_for_note(store: RecordStore, note_id: int) -> str:
    """Phone number of the call record of ``note_id``, or "" if it has none."""
    rows = store.query(
        Table.DATA,
        [CallColumns.PHONE_NUMBER],
        [
            eq(DataColumns.NOTE_ID, note_id),
            eq(DataColumns.MIME_TYPE, ContentKind.CALL.mime_type),
        ],
    )
    if not rows:
        return ""
    return rows[0][CallColumns.PHONE_NUMBER] or ""


def note_id_for_call_and_date(store: RecordStore, phone_number: str, call_date: int) -> int:
    """Id of the call note for this number and call date, or 0 if none."""
    rows = store.query(
        Table.DATA,
        [DataColumns.NOTE_ID],
        [
            eq(CallColumns.CALL_DATE, call_date),
            eq(DataColumns.MIME_TYPE, ContentKind.CALL.mime_type),
            phone_eq(CallColumns.PHONE_NUMBER, phone_number),
        ],
    )
    if not rows:
        return 0
    return rows[0][DataColumns.NOTE_ID]


def snippet_for_note(store: RecordStore, note_id: int) -> str:
    """Stored snippet of a note (the folder name, for folders).

    Raises:
        NoteNotFoundError: If no row has ``note_id``.
    """
    rows = store.query(Table.NOTE, [NoteColumns.SNIPPET], [eq(NoteColumns.ID, note_id)])
    if not rows:
        raise NoteNotFoundError(note_id)
    return rows[0][NoteColumns.SNIPPET] or ""
