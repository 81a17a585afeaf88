"""Data models for the notekeep persistence core."""

import datetime
import time
from dataclasses import dataclass
from datetime import timezone
from enum import Enum, IntEnum
from typing import Optional

# Reserved folder identifiers. These rows are seeded by the store and must
# never be deleted by bulk operations.
ID_ROOT_FOLDER = 0
ID_TEMPORARY_FOLDER = -1
ID_CALL_RECORD_FOLDER = -2
ID_TRASH_FOLDER = -3

SYSTEM_FOLDER_IDS = frozenset(
    {ID_ROOT_FOLDER, ID_TEMPORARY_FOLDER, ID_CALL_RECORD_FOLDER, ID_TRASH_FOLDER}
)

INVALID_WIDGET_ID = 0


class Table(str, Enum):
    """Tables exposed by the record store."""

    NOTE = "note"
    DATA = "data"


class NoteType(IntEnum):
    """Kinds of rows in the note table."""

    NOTE = 0
    FOLDER = 1
    SYSTEM = 2


class WidgetType(IntEnum):
    """Home-screen widget sizes a note can be bound to."""

    INVALID = -1
    SMALL = 0  # 2x2
    LARGE = 1  # 4x4


class ChecklistMode(IntEnum):
    """Display mode of a text note."""

    NORMAL = 0
    CHECKLIST = 1


class NoteColumns:
    """Column names of the note table."""

    ID = "id"
    PARENT_ID = "parent_id"
    CREATED_DATE = "created_date"
    MODIFIED_DATE = "modified_date"
    ALERTED_DATE = "alerted_date"
    SNIPPET = "snippet"
    WIDGET_ID = "widget_id"
    WIDGET_TYPE = "widget_type"
    BG_COLOR_ID = "bg_color_id"
    NOTES_COUNT = "notes_count"
    TYPE = "type"
    ORIGIN_PARENT_ID = "origin_parent_id"
    LOCAL_MODIFIED = "local_modified"


class DataColumns:
    """Column names of the data (content record) table."""

    ID = "id"
    NOTE_ID = "note_id"
    MIME_TYPE = "mime_type"
    CONTENT = "content"
    DATA1 = "data1"
    DATA2 = "data2"
    DATA3 = "data3"
    DATA4 = "data4"
    DATA5 = "data5"
    CREATED_DATE = "created_date"
    MODIFIED_DATE = "modified_date"


class TextColumns:
    """Variant-specific columns of a text content record."""

    CONTENT = DataColumns.CONTENT
    MODE = DataColumns.DATA1


class CallColumns:
    """Variant-specific columns of a call content record."""

    CALL_DATE = DataColumns.DATA1
    PHONE_NUMBER = DataColumns.DATA3
    # Location of the recorded call attachment, if any
    LOCATION = DataColumns.CONTENT


class ContentKind(Enum):
    """Closed set of content record variants.

    The enum value is the mime type string stored in the data table.
    """

    TEXT = "vnd.android.cursor.item/text_note"
    CALL = "vnd.android.cursor.item/call_note"

    @property
    def mime_type(self) -> str:
        return self.value

    @classmethod
    def from_mime_type(cls, mime_type: Optional[str]) -> Optional["ContentKind"]:
        """Return the variant for a stored mime type, or None if unknown."""
        for kind in cls:
            if kind.value == mime_type:
                return kind
        return None


def current_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def millis_to_datetime(value: int) -> datetime.datetime:
    """Convert epoch milliseconds to a timezone-aware local datetime."""
    return datetime.datetime.fromtimestamp(value / 1000, tz=timezone.utc).astimezone()


@dataclass(frozen=True)
class WidgetAttribute:
    """A widget binding of a note: the widget id and its type."""

    widget_id: int
    widget_type: int


@dataclass(frozen=True)
class ExportFolder:
    """A folder as seen by the text exporter."""

    id: int
    name: str


@dataclass(frozen=True)
class ExportNote:
    """A note as seen by the text exporter."""

    id: int
    modified_date: int
    snippet: str


@dataclass(frozen=True)
class ExportContent:
    """One content record of a note, flattened for export.

    Attributes:
        kind: TEXT or CALL.
        content: Body text (TEXT) or attachment location (CALL).
        phone_number: Phone number of a CALL record, else empty.
        call_date: Call timestamp of a CALL record in epoch ms, else 0.
    """

    kind: ContentKind
    content: str = ""
    phone_number: str = ""
    call_date: int = 0


class ExportState(IntEnum):
    """Outcome of a text export."""

    STORAGE_UNAVAILABLE = 0
    SYSTEM_ERROR = 3
    SUCCESS = 4
