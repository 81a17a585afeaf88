#!/usr/bin/env python
"""Command line entry point for the notekeep store."""
import argparse
import atexit
import logging
import os
import sys
from pathlib import Path

from notekeep import __version__
from notekeep.config import config
from notekeep.exceptions import NotekeepError
from notekeep.models.schema import ID_TRASH_FOLDER, ExportState, NoteColumns, NoteType, Table
from notekeep.observability import configure_logging, metrics
from notekeep.services.export_service import ExportService
from notekeep.storage.base import eq
from notekeep.storage.sql_store import SqlRecordStore

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="notekeep note store")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=os.environ.get("NOTEKEEP_DATABASE_PATH")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NOTEKEEP_LOG_LEVEL", "INFO")
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for log files (default: ~/.notekeep/logs)",
        type=str,
        default=os.environ.get("NOTEKEEP_LOG_DIR")
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init", help="Create the schema and the system folders")
    subparsers.add_parser("folders", help="List visible folders with their note counts")
    export_parser = subparsers.add_parser("export", help="Export all notes to a text file")
    export_parser.add_argument(
        "--export-dir",
        help="Directory for the exported file",
        type=str,
        default=None
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.database_path:
        config.database_path = Path(args.database_path)
    if getattr(args, "export_dir", None):
        config.export_dir = Path(args.export_dir)


def _save_metrics_on_exit():
    """Save metrics to disk on shutdown."""
    for name, stats in metrics.snapshot().items():
        if stats.failures:
            logging.getLogger(__name__).warning(
                f"{name}: {stats.failures} of {stats.calls} calls failed "
                f"(last error: {stats.last_error})"
            )
    try:
        if metrics.save_metrics():
            logging.getLogger(__name__).info("Metrics saved to disk on shutdown")
    except Exception as e:
        logging.getLogger(__name__).warning(f"Failed to save metrics on shutdown: {e}")


def cmd_init(store: SqlRecordStore) -> int:
    print(f"Database ready: {store.engine.url}")
    return 0


def cmd_folders(store: SqlRecordStore) -> int:
    rows = store.query(
        Table.NOTE,
        [NoteColumns.ID, NoteColumns.SNIPPET, NoteColumns.NOTES_COUNT, NoteColumns.PARENT_ID],
        [eq(NoteColumns.TYPE, NoteType.FOLDER.value)],
        order_by=NoteColumns.ID,
    )
    for row in rows:
        marker = " (trash)" if row[NoteColumns.PARENT_ID] == ID_TRASH_FOLDER else ""
        print(
            f"{row[NoteColumns.ID]:>6}  {row[NoteColumns.NOTES_COUNT]:>5}  "
            f"{row[NoteColumns.SNIPPET]}{marker}"
        )
    return 0


def cmd_export(store: SqlRecordStore) -> int:
    service = ExportService(store)
    state = service.export_to_text()
    if state != ExportState.SUCCESS:
        print(f"Export failed: {state.name}", file=sys.stderr)
        return 1
    print(Path(service.exported_file_dir) / service.exported_file_name)
    return 0


COMMANDS = {
    "init": cmd_init,
    "folders": cmd_folders,
    "export": cmd_export,
}


def main(argv=None):
    """Run the notekeep command line tool."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(log_dir=args.log_dir, level=log_level, console=True)
    except Exception as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logger.warning(f"Failed to configure file logging: {e}")
        log_dir = None

    if log_dir:
        logger.debug(f"Persistent logging enabled: {log_dir}")

    metrics.load_metrics()
    atexit.register(_save_metrics_on_exit)

    try:
        logger.info(f"Using SQLite database: {config.get_db_url()}")
        store = SqlRecordStore()
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        return 1

    try:
        return COMMANDS[args.command](store)
    except NotekeepError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
