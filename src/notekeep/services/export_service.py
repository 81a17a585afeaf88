"""Read-only export of notes to a human-readable text file."""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import IO, Iterator, Optional, Union

from notekeep.config import config
from notekeep.exceptions import StoreError
from notekeep.models.schema import (
    ID_CALL_RECORD_FOLDER,
    ID_ROOT_FOLDER,
    ID_TRASH_FOLDER,
    CallColumns,
    ContentKind,
    DataColumns,
    ExportContent,
    ExportFolder,
    ExportNote,
    ExportState,
    NoteColumns,
    NoteType,
    Table,
    TextColumns,
    millis_to_datetime,
)
from notekeep.observability import timed_operation
from notekeep.storage.base import RecordStore, eq, ne

logger = logging.getLogger(__name__)

FOLDER_NAME_FORMAT = "-{}"
NOTE_DATE_FORMAT = "--{}"
NOTE_CONTENT_FORMAT = "--{}"

_NOTE_PROJECTION = [
    NoteColumns.ID,
    NoteColumns.MODIFIED_DATE,
    NoteColumns.SNIPPET,
]


class ExportService:
    """Walks folders, notes and content records and writes them as text.

    One instance is created by the caller and passed to whoever needs it.
    Exports on the same instance are serialized.
    """

    def __init__(
        self,
        store: RecordStore,
        export_dir: Optional[Union[str, Path]] = None,
        date_format: Optional[str] = None,
        call_record_folder_name: Optional[str] = None,
    ):
        self.store = store
        self.export_dir = Path(export_dir) if export_dir else config.get_export_dir()
        self.date_format = date_format or config.export_date_format
        self.call_record_folder_name = (
            call_record_folder_name or config.call_record_folder_name
        )
        self.exported_file_name = ""
        self.exported_file_dir = ""
        self._lock = threading.Lock()

    def iter_folders(self) -> Iterator[ExportFolder]:
        """Visible user folders plus the call-record folder, by id."""
        call_folder = self.store.query(
            Table.NOTE, [NoteColumns.ID], [eq(NoteColumns.ID, ID_CALL_RECORD_FOLDER)]
        )
        if call_folder:
            yield ExportFolder(ID_CALL_RECORD_FOLDER, self.call_record_folder_name)

        rows = self.store.query(
            Table.NOTE,
            [NoteColumns.ID, NoteColumns.SNIPPET],
            [
                eq(NoteColumns.TYPE, NoteType.FOLDER.value),
                ne(NoteColumns.PARENT_ID, ID_TRASH_FOLDER),
            ],
            order_by=NoteColumns.ID,
        )
        for row in rows:
            yield ExportFolder(row[NoteColumns.ID], row[NoteColumns.SNIPPET] or "")

    def iter_notes(self, folder_id: int) -> Iterator[ExportNote]:
        """Notes directly inside ``folder_id``, most recently modified first."""
        rows = self.store.query(
            Table.NOTE,
            _NOTE_PROJECTION,
            [
                eq(NoteColumns.PARENT_ID, folder_id),
                eq(NoteColumns.TYPE, NoteType.NOTE.value),
            ],
            order_by=NoteColumns.MODIFIED_DATE,
            descending=True,
        )
        for row in rows:
            yield ExportNote(
                row[NoteColumns.ID],
                row[NoteColumns.MODIFIED_DATE],
                row[NoteColumns.SNIPPET] or "",
            )

    def iter_contents(self, note_id: int) -> Iterator[ExportContent]:
        """TEXT and CALL records of a note; other content is skipped."""
        rows = self.store.query(
            Table.DATA,
            [
                DataColumns.MIME_TYPE,
                DataColumns.CONTENT,
                CallColumns.CALL_DATE,
                CallColumns.PHONE_NUMBER,
            ],
            [eq(DataColumns.NOTE_ID, note_id)],
            order_by=DataColumns.ID,
        )
        for row in rows:
            kind = ContentKind.from_mime_type(row[DataColumns.MIME_TYPE])
            if kind is ContentKind.TEXT:
                yield ExportContent(kind, content=row[TextColumns.CONTENT] or "")
            elif kind is ContentKind.CALL:
                yield ExportContent(
                    kind,
                    content=row[CallColumns.LOCATION] or "",
                    phone_number=row[CallColumns.PHONE_NUMBER] or "",
                    call_date=row[CallColumns.CALL_DATE] or 0,
                )

    def _format_date(self, millis: int) -> str:
        return millis_to_datetime(millis).strftime(self.date_format)

    def _write_note(self, out: IO[str], note: ExportNote) -> None:
        print(NOTE_DATE_FORMAT.format(self._format_date(note.modified_date)), file=out)
        for item in self.iter_contents(note.id):
            if item.kind is ContentKind.CALL:
                if item.phone_number:
                    print(NOTE_CONTENT_FORMAT.format(item.phone_number), file=out)
                print(NOTE_CONTENT_FORMAT.format(self._format_date(item.call_date)), file=out)
                if item.content:
                    print(NOTE_CONTENT_FORMAT.format(item.content), file=out)
            elif item.content:
                print(NOTE_CONTENT_FORMAT.format(item.content), file=out)
        print(file=out)

    def _write_all(self, out: IO[str]) -> None:
        for folder in self.iter_folders():
            if folder.name:
                print(FOLDER_NAME_FORMAT.format(folder.name), file=out)
            for note in self.iter_notes(folder.id):
                self._write_note(out, note)

        for note in self.iter_notes(ID_ROOT_FOLDER):
            self._write_note(out, note)

    def export_to_text(self) -> ExportState:
        """Write every visible note to ``notes_YYYYMMDD.txt`` in the export dir.

        Returns:
            SUCCESS, STORAGE_UNAVAILABLE when the file cannot be written, or
            SYSTEM_ERROR when the store cannot be read.
        """
        with self._lock, timed_operation("export_to_text", export_dir=self.export_dir) as op:
            file_name = f"notes_{datetime.now().strftime('%Y%m%d')}.txt"
            file_path = self.export_dir / file_name
            try:
                self.export_dir.mkdir(parents=True, exist_ok=True)
                with open(file_path, "w", encoding="utf-8") as out:
                    self._write_all(out)
            except OSError as e:
                logger.error(f"Cannot write export file {file_path}: {e}")
                op['success'] = False
                return ExportState.STORAGE_UNAVAILABLE
            except StoreError as e:
                logger.error(f"Export aborted, store read failed: {e}")
                op['success'] = False
                return ExportState.SYSTEM_ERROR

            self.exported_file_name = file_name
            self.exported_file_dir = str(self.export_dir)
            op['file'] = file_path
            logger.info(f"Exported notes to {file_path}")
            return ExportState.SUCCESS
