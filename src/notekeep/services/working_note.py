"""Editing session for a single note."""

import logging
import threading
from typing import Optional

from notekeep.exceptions import (
    ErrorCode,
    InvalidArgumentError,
    NoteNotFoundError,
    StoreError,
)
from notekeep.models.schema import (
    ID_CALL_RECORD_FOLDER,
    INVALID_WIDGET_ID,
    CallColumns,
    ChecklistMode,
    ContentKind,
    DataColumns,
    NoteColumns,
    Table,
    TextColumns,
    WidgetType,
    current_millis,
)
from notekeep.observability import traced
from notekeep.services.note_aggregate import NoteAggregate, allocate_note_id
from notekeep.storage.base import RecordStore, eq

logger = logging.getLogger(__name__)

_NOTE_PROJECTION = [
    NoteColumns.ID,
    NoteColumns.PARENT_ID,
    NoteColumns.ALERTED_DATE,
    NoteColumns.BG_COLOR_ID,
    NoteColumns.WIDGET_ID,
    NoteColumns.WIDGET_TYPE,
    NoteColumns.MODIFIED_DATE,
]

_DATA_PROJECTION = [
    DataColumns.ID,
    DataColumns.MIME_TYPE,
    DataColumns.CONTENT,
    DataColumns.DATA1,
    DataColumns.DATA3,
]


class NoteSettingsListener:
    """Receives notifications when display-relevant settings of a note change.

    Every hook is a no-op here; subclasses override the ones they need.
    Hooks run synchronously, right after the in-memory change.
    """

    def on_background_color_changed(self) -> None:
        pass

    def on_alert_changed(self, date: int, enabled: bool) -> None:
        pass

    def on_widget_changed(self) -> None:
        pass

    def on_checklist_mode_changed(self, old_mode: int, new_mode: int) -> None:
        pass


class WorkingNote:
    """A stateful editing session wrapping one NoteAggregate.

    The session caches the fields a note editor displays, stages every
    change into its aggregate and decides on ``save`` whether anything is
    worth writing. Use ``create_empty`` or ``load`` rather than the
    constructor.
    """

    def __init__(self, store: RecordStore, folder_id: int, note_id: int = 0):
        self._store = store
        self._aggregate = NoteAggregate(store)
        self._save_lock = threading.Lock()
        self._listener: Optional[NoteSettingsListener] = None

        self._note_id = note_id
        self._folder_id = folder_id
        self._content = ""
        self._mode = ChecklistMode.NORMAL.value
        self._alert_date = 0
        self._modified_date = current_millis()
        self._bg_color_id = 0
        self._widget_id = INVALID_WIDGET_ID
        self._widget_type = WidgetType.INVALID.value
        self._phone_number = ""
        self._call_date = 0
        self._is_deleted = False

    @classmethod
    def create_empty(
        cls,
        store: RecordStore,
        folder_id: int,
        widget_id: int = INVALID_WIDGET_ID,
        widget_type: int = WidgetType.INVALID.value,
        default_bg_color_id: int = 0,
    ) -> "WorkingNote":
        """Start a session for a note that does not exist yet."""
        note = cls(store, folder_id)
        note.set_background_color(default_bg_color_id)
        note.set_widget_id(widget_id)
        note.set_widget_type(widget_type)
        return note

    @classmethod
    def load(cls, store: RecordStore, note_id: int) -> "WorkingNote":
        """Open a session on an existing note.

        Raises:
            InvalidArgumentError: If note_id is not positive (reserved folders
                and unsaved notes cannot be edited).
            NoteNotFoundError: If the note row is missing or cannot be read.
        """
        if note_id <= 0:
            raise InvalidArgumentError(
                f"Wrong note id: {note_id}",
                field="note_id",
                value=note_id,
                code=ErrorCode.INVALID_NOTE_ID,
            )
        try:
            rows = store.query(Table.NOTE, _NOTE_PROJECTION, [eq(NoteColumns.ID, note_id)])
        except StoreError as e:
            logger.error(f"Failed to read note {note_id}: {e}")
            raise NoteNotFoundError(note_id, f"Failed to read note {note_id}: {e.message}")
        if not rows:
            logger.error(f"No note with id {note_id}")
            raise NoteNotFoundError(note_id)

        row = rows[0]
        note = cls(store, row[NoteColumns.PARENT_ID], note_id)
        note._alert_date = row[NoteColumns.ALERTED_DATE]
        note._bg_color_id = row[NoteColumns.BG_COLOR_ID]
        note._widget_id = row[NoteColumns.WIDGET_ID]
        note._widget_type = row[NoteColumns.WIDGET_TYPE]
        note._modified_date = row[NoteColumns.MODIFIED_DATE]
        note._load_content()
        return note

    def _load_content(self) -> None:
        try:
            rows = self._store.query(
                Table.DATA, _DATA_PROJECTION, [eq(DataColumns.NOTE_ID, self._note_id)]
            )
        except StoreError as e:
            logger.error(f"Failed to read content of note {self._note_id}: {e}")
            raise NoteNotFoundError(
                self._note_id,
                f"Failed to read content of note {self._note_id}: {e.message}",
                code=ErrorCode.NOTE_DATA_NOT_FOUND,
            )

        for row in rows:
            kind = ContentKind.from_mime_type(row[DataColumns.MIME_TYPE])
            if kind is ContentKind.TEXT:
                self._content = row[TextColumns.CONTENT] or ""
                self._mode = row[TextColumns.MODE] or ChecklistMode.NORMAL.value
                self._aggregate.bind_content_id(ContentKind.TEXT, row[DataColumns.ID])
            elif kind is ContentKind.CALL:
                self._phone_number = row[CallColumns.PHONE_NUMBER] or ""
                self._call_date = row[CallColumns.CALL_DATE] or 0
                self._aggregate.bind_content_id(ContentKind.CALL, row[DataColumns.ID])
            else:
                logger.debug(
                    f"Skipping content {row[DataColumns.ID]} of note {self._note_id}: "
                    f"unknown mime type {row[DataColumns.MIME_TYPE]!r}"
                )

    def _has_live_widget(self) -> bool:
        return (
            self._listener is not None
            and self._widget_id != INVALID_WIDGET_ID
            and self._widget_type != WidgetType.INVALID.value
        )

    def is_worth_saving(self) -> bool:
        if self._is_deleted:
            return False
        if not self.exists_in_store:
            return bool(self._content)
        return self._aggregate.is_dirty

    @traced("save_note")
    def save(self) -> bool:
        """Persist pending changes, allocating an id for a new note first.

        Returns:
            True when the commit succeeded. False when there was nothing worth
            saving, identity allocation failed or the commit failed; in the
            last case the stored state of the note is unknown.
        """
        with self._save_lock:
            if not self.is_worth_saving():
                return False

            if not self.exists_in_store:
                try:
                    self._note_id = allocate_note_id(self._store, self._folder_id)
                except StoreError as e:
                    logger.error(f"Create new note fail with folder {self._folder_id}: {e}")
                    return False

            if not self._aggregate.commit(self._note_id):
                logger.error(f"Commit of note {self._note_id} failed")
                return False

            if self._has_live_widget():
                self._listener.on_widget_changed()
            return True

    def mark_deleted(self, deleted: bool) -> None:
        self._is_deleted = deleted
        if self._has_live_widget():
            self._listener.on_widget_changed()

    def set_content(self, text: str) -> None:
        if text != self._content:
            self._content = text
            self._aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, text)

    def set_checklist_mode(self, mode: int) -> None:
        if mode != self._mode:
            old_mode = self._mode
            self._mode = mode
            if self._listener is not None:
                self._listener.on_checklist_mode_changed(old_mode, mode)
            self._aggregate.set_content_value(ContentKind.TEXT, TextColumns.MODE, mode)

    def set_alert_date(self, date: int, enabled: bool) -> None:
        if date != self._alert_date:
            self._alert_date = date
            if self._listener is not None:
                self._listener.on_alert_changed(date, enabled)
            self._aggregate.set_note_value(NoteColumns.ALERTED_DATE, date)

    def set_background_color(self, color_id: int) -> None:
        if color_id != self._bg_color_id:
            self._bg_color_id = color_id
            if self._listener is not None:
                self._listener.on_background_color_changed()
            self._aggregate.set_note_value(NoteColumns.BG_COLOR_ID, color_id)

    def set_widget_id(self, widget_id: int) -> None:
        if widget_id != self._widget_id:
            self._widget_id = widget_id
            self._aggregate.set_note_value(NoteColumns.WIDGET_ID, widget_id)

    def set_widget_type(self, widget_type: int) -> None:
        if widget_type != self._widget_type:
            self._widget_type = widget_type
            self._aggregate.set_note_value(NoteColumns.WIDGET_TYPE, widget_type)

    def convert_to_call_note(self, phone_number: str, call_date: int) -> None:
        """Turn this note into a call note filed under the call-record folder."""
        if phone_number != self._phone_number:
            self._phone_number = phone_number
            self._aggregate.set_content_value(
                ContentKind.CALL, CallColumns.PHONE_NUMBER, phone_number
            )
        if call_date != self._call_date:
            self._call_date = call_date
            self._aggregate.set_content_value(ContentKind.CALL, CallColumns.CALL_DATE, call_date)
        if self._folder_id != ID_CALL_RECORD_FOLDER:
            self._folder_id = ID_CALL_RECORD_FOLDER
            self._aggregate.set_note_value(NoteColumns.PARENT_ID, ID_CALL_RECORD_FOLDER)

    @property
    def aggregate(self) -> NoteAggregate:
        return self._aggregate

    @property
    def note_id(self) -> int:
        return self._note_id

    @property
    def folder_id(self) -> int:
        return self._folder_id

    @property
    def content(self) -> str:
        return self._content

    @property
    def checklist_mode(self) -> int:
        return self._mode

    @property
    def alert_date(self) -> int:
        return self._alert_date

    @property
    def has_alert(self) -> bool:
        return self._alert_date > 0

    @property
    def modified_date(self) -> int:
        return self._modified_date

    @property
    def bg_color_id(self) -> int:
        return self._bg_color_id

    @property
    def widget_id(self) -> int:
        return self._widget_id

    @property
    def widget_type(self) -> int:
        return self._widget_type

    @property
    def phone_number(self) -> str:
        return self._phone_number

    @property
    def call_date(self) -> int:
        return self._call_date

    @property
    def exists_in_store(self) -> bool:
        return self._note_id > 0

    @property
    def is_deleted(self) -> bool:
        return self._is_deleted

    @property
    def settings_listener(self) -> Optional[NoteSettingsListener]:
        return self._listener

    @settings_listener.setter
    def settings_listener(self, listener: Optional[NoteSettingsListener]) -> None:
        self._listener = listener
