"""Tests for the notekeep command line entry point."""

import logging
from pathlib import Path

import pytest

from notekeep import main as cli
from notekeep.models.schema import ContentKind, DataColumns, Table
from notekeep.storage.sql_store import SqlRecordStore
from tests.fakes import make_folder, make_note


@pytest.fixture
def run_cli(test_config, tmp_path, monkeypatch):
    """Run the CLI against the temporary database without touching ~/.notekeep."""
    monkeypatch.setattr(cli.atexit, "register", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli.metrics, "load_metrics", lambda: False)
    root = logging.getLogger("notekeep")
    saved = list(root.handlers)
    level = root.level

    db_path = tmp_path / "cli.db"

    def run(*args):
        return cli.main(
            ["--database-path", str(db_path), "--log-dir", str(tmp_path / "logs"), *args]
        )

    yield run, db_path

    root.setLevel(level)
    for handler in list(root.handlers):
        if handler not in saved:
            root.removeHandler(handler)
            handler.close()


class TestCommands:
    """Tests for the init, folders and export subcommands."""

    def test_init_creates_database(self, run_cli, capsys):
        run, db_path = run_cli
        assert run("init") == 0
        assert db_path.exists()
        assert "Database ready" in capsys.readouterr().out

    def test_folders_lists_counts(self, run_cli, capsys):
        run, db_path = run_cli
        run("init")
        store = SqlRecordStore(db_url=f"sqlite:///{db_path}")
        folder = make_folder(store, "Projects")
        make_note(store, folder)
        store.close()
        capsys.readouterr()

        assert run("folders") == 0
        out = capsys.readouterr().out
        line = next(l for l in out.splitlines() if "Projects" in l)
        assert line.split()[:2] == [str(folder), "1"]

    def test_export_prints_path(self, run_cli, capsys, tmp_path):
        run, db_path = run_cli
        run("init")
        store = SqlRecordStore(db_url=f"sqlite:///{db_path}")
        note = make_note(store)
        store.insert(
            Table.DATA,
            {
                DataColumns.NOTE_ID: note,
                DataColumns.MIME_TYPE: ContentKind.TEXT.mime_type,
                DataColumns.CONTENT: "exported body",
            },
        )
        store.close()
        capsys.readouterr()

        export_dir = tmp_path / "out"
        assert run("export", "--export-dir", str(export_dir)) == 0

        printed = Path(capsys.readouterr().out.strip().splitlines()[-1])
        assert printed.parent == export_dir
        assert "--exported body" in printed.read_text(encoding="utf-8")

    def test_command_required(self, run_cli):
        run, _ = run_cli
        with pytest.raises(SystemExit):
            run()
