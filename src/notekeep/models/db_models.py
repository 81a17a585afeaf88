"""SQLAlchemy database models for the notekeep record store."""
from typing import Optional

from sqlalchemy import Column, ForeignKey, Integer, String, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from notekeep.config import config
from notekeep.exceptions import ConfigurationError
from notekeep.models.schema import (
    ID_CALL_RECORD_FOLDER,
    ID_ROOT_FOLDER,
    ID_TEMPORARY_FOLDER,
    ID_TRASH_FOLDER,
    ContentKind,
    NoteType,
    WidgetType,
    current_millis,
)
from notekeep.utils import phone_numbers_equal

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBNote(Base):
    """Database model for a note or folder row."""
    __tablename__ = "note"
    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_id = Column(Integer, default=ID_ROOT_FOLDER, nullable=False, index=True)
    alerted_date = Column(Integer, default=0, nullable=False)
    bg_color_id = Column(Integer, default=0, nullable=False)
    created_date = Column(Integer, default=current_millis, nullable=False)
    modified_date = Column(Integer, default=current_millis, nullable=False, index=True)
    notes_count = Column(Integer, default=0, nullable=False)
    snippet = Column(Text, default="", nullable=False)
    type = Column(Integer, default=NoteType.NOTE.value, nullable=False, index=True)
    widget_id = Column(Integer, default=0, nullable=False)
    widget_type = Column(Integer, default=WidgetType.INVALID.value, nullable=False)
    origin_parent_id = Column(Integer, default=0, nullable=False)
    local_modified = Column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id={self.id}, type={self.type}, parent_id={self.parent_id})>"


class DBData(Base):
    """Database model for a content record (text body or call metadata)."""
    __tablename__ = "data"
    id = Column(Integer, primary_key=True, autoincrement=True)
    mime_type = Column(String(128), nullable=False, index=True)
    note_id = Column(Integer, ForeignKey("note.id"), default=0, nullable=False, index=True)
    created_date = Column(Integer, default=current_millis, nullable=False)
    modified_date = Column(Integer, default=current_millis, nullable=False)
    content = Column(Text, default="", nullable=False)
    data1 = Column(Integer, nullable=True)
    data2 = Column(Integer, nullable=True)
    data3 = Column(Text, default="", nullable=True)
    data4 = Column(Text, default="", nullable=True)
    data5 = Column(Text, default="", nullable=True)

    def __repr__(self) -> str:
        """Return string representation of content record."""
        return (
            f"<Data(id={self.id}, note_id={self.note_id}, "
            f"mime_type='{self.mime_type}')>"
        )


def init_db(db_url: Optional[str] = None) -> Engine:
    """Initialize the database with hardened configuration.

    Applies SQLite best practices for crash resilience:
    - WAL (Write-Ahead Logging) mode for atomic writes
    - NORMAL synchronous mode (good balance of safety vs speed)
    - QueuePool for file databases, StaticPool for in-memory ones
    - Foreign keys off: content rows are cleaned up by triggers

    Also registers the ``phone_numbers_equal`` SQL function on every
    connection, seeds the system folders and installs the triggers.
    """
    url = db_url or config.get_db_url()
    if not url.startswith("sqlite"):
        raise ConfigurationError(
            "Only SQLite databases are supported", config_key="database_path"
        )
    in_memory = url in ("sqlite://", "sqlite:///:memory:")

    if in_memory:
        # One shared connection so every thread sees the same database
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        # SQLite is single-writer, so a small pool is ideal
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=3600,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False},
        )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA cache_size=-16000")  # 16MB cache
        cursor.close()
        dbapi_connection.create_function(
            "phone_numbers_equal", 2, phone_numbers_equal, deterministic=True
        )

    Base.metadata.create_all(engine)

    # Seed before the triggers exist so folder counts start at zero
    _seed_system_folders(engine)
    init_triggers(engine)

    return engine


def _seed_system_folders(engine: Engine) -> None:
    """Insert the reserved folders. Idempotent."""
    now = current_millis()
    with engine.connect() as conn:
        for folder_id in (
            ID_ROOT_FOLDER,
            ID_TEMPORARY_FOLDER,
            ID_CALL_RECORD_FOLDER,
            ID_TRASH_FOLDER,
        ):
            conn.execute(
                text(
                    "INSERT OR IGNORE INTO note "
                    "(id, parent_id, alerted_date, bg_color_id, created_date, "
                    "modified_date, notes_count, snippet, type, widget_id, "
                    "widget_type, origin_parent_id, local_modified) "
                    "VALUES (:id, 0, 0, 0, :now, :now, 0, '', :type, 0, :wtype, 0, 0)"
                ),
                {
                    "id": folder_id,
                    "now": now,
                    "type": NoteType.SYSTEM.value,
                    "wtype": WidgetType.INVALID.value,
                },
            )
        conn.commit()


def init_triggers(engine: Engine) -> None:
    """Install the triggers that keep derived note columns in sync.

    - folder ``notes_count`` follows inserts, moves and deletes of its notes
    - a note's ``snippet`` mirrors the content of its text record
    - deleting a note deletes its content records
    - deleting a folder deletes the notes it contains
    - moving a folder to the trash moves its notes there as well
    """
    text_mime = ContentKind.TEXT.mime_type
    statements = [
        """
        CREATE TRIGGER IF NOT EXISTS increase_folder_count_on_insert
        AFTER INSERT ON note BEGIN
            UPDATE note SET notes_count = notes_count + 1
            WHERE id = NEW.parent_id;
        END
        """,
        """
        CREATE TRIGGER IF NOT EXISTS increase_folder_count_on_update
        AFTER UPDATE OF parent_id ON note BEGIN
            UPDATE note SET notes_count = notes_count + 1
            WHERE id = NEW.parent_id;
        END
        """,
        """
        CREATE TRIGGER IF NOT EXISTS decrease_folder_count_on_update
        AFTER UPDATE OF parent_id ON note BEGIN
            UPDATE note SET notes_count = notes_count - 1
            WHERE id = OLD.parent_id AND notes_count > 0;
        END
        """,
        """
        CREATE TRIGGER IF NOT EXISTS decrease_folder_count_on_delete
        AFTER DELETE ON note BEGIN
            UPDATE note SET notes_count = notes_count - 1
            WHERE id = OLD.parent_id AND notes_count > 0;
        END
        """,
        f"""
        CREATE TRIGGER IF NOT EXISTS update_note_content_on_insert
        AFTER INSERT ON data WHEN NEW.mime_type = '{text_mime}' BEGIN
            UPDATE note SET snippet = NEW.content WHERE id = NEW.note_id;
        END
        """,
        f"""
        CREATE TRIGGER IF NOT EXISTS update_note_content_on_update
        AFTER UPDATE ON data WHEN OLD.mime_type = '{text_mime}' BEGIN
            UPDATE note SET snippet = NEW.content WHERE id = NEW.note_id;
        END
        """,
        f"""
        CREATE TRIGGER IF NOT EXISTS update_note_content_on_delete
        AFTER DELETE ON data WHEN OLD.mime_type = '{text_mime}' BEGIN
            UPDATE note SET snippet = '' WHERE id = OLD.note_id;
        END
        """,
        """
        CREATE TRIGGER IF NOT EXISTS delete_data_on_delete
        AFTER DELETE ON note BEGIN
            DELETE FROM data WHERE note_id = OLD.id;
        END
        """,
        """
        CREATE TRIGGER IF NOT EXISTS folder_delete_notes_on_delete
        AFTER DELETE ON note BEGIN
            DELETE FROM note WHERE parent_id = OLD.id;
        END
        """,
        f"""
        CREATE TRIGGER IF NOT EXISTS folder_move_notes_on_trash
        AFTER UPDATE ON note WHEN NEW.parent_id = {ID_TRASH_FOLDER} BEGIN
            UPDATE note SET parent_id = {ID_TRASH_FOLDER} WHERE parent_id = OLD.id;
        END
        """,
    ]
    with engine.connect() as conn:
        for statement in statements:
            conn.execute(text(statement))
        conn.commit()


def get_session_factory(engine: Optional[Engine] = None):
    """Get a session factory for the database."""
    if engine is None:
        engine = init_db()
    return sessionmaker(bind=engine)
