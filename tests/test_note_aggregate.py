"""Tests for the note aggregate commit protocol and id allocation."""

import pytest

from notekeep.exceptions import ErrorCode, InvalidArgumentError, StoreError
from notekeep.models.schema import (
    CallColumns,
    ContentKind,
    DataColumns,
    NoteColumns,
    NoteType,
    Table,
    TextColumns,
)
from notekeep.services.note_aggregate import NoteAggregate, allocate_note_id
from notekeep.storage.base import OperationKind
from tests.fakes import make_note


@pytest.fixture
def note_id(fake_store):
    """An existing note row in the fake store."""
    note_id = make_note(fake_store)
    fake_store.reset_calls()
    return note_id


@pytest.fixture
def aggregate(fake_store):
    return NoteAggregate(fake_store, retain_on_failure=False)


def assert_all_clean(aggregate):
    assert not aggregate.is_dirty
    assert aggregate.pending_note_values() == {}
    for kind in ContentKind:
        assert aggregate.pending_content_values(kind) == {}


class TestStaging:
    """Tests for staging changes into the aggregate."""

    def test_new_aggregate_is_clean(self, aggregate):
        assert_all_clean(aggregate)

    def test_note_value_stamps_modification(self, aggregate):
        aggregate.set_note_value(NoteColumns.BG_COLOR_ID, 3)
        pending = aggregate.pending_note_values()
        assert pending[NoteColumns.BG_COLOR_ID] == 3
        assert pending[NoteColumns.LOCAL_MODIFIED] == 1
        assert pending[NoteColumns.MODIFIED_DATE] > 0

    def test_content_value_stamps_note_row(self, aggregate):
        """A content edit also marks the note row as locally modified."""
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "hi")
        assert aggregate.pending_content_values(ContentKind.TEXT) == {
            TextColumns.CONTENT: "hi"
        }
        pending = aggregate.pending_note_values()
        assert pending[NoteColumns.LOCAL_MODIFIED] == 1
        assert NoteColumns.MODIFIED_DATE in pending
        assert aggregate.is_dirty

    def test_bind_content_id(self, aggregate):
        aggregate.bind_content_id(ContentKind.CALL, 9)
        assert aggregate.content_id(ContentKind.CALL) == 9
        assert aggregate.content_id(ContentKind.TEXT) == 0

    @pytest.mark.parametrize("bad_id", [0, -5])
    def test_bind_content_id_rejects_non_positive(self, aggregate, bad_id):
        aggregate.bind_content_id(ContentKind.TEXT, 4)
        with pytest.raises(InvalidArgumentError):
            aggregate.bind_content_id(ContentKind.TEXT, bad_id)
        assert aggregate.content_id(ContentKind.TEXT) == 4

    def test_retain_on_failure_defaults_from_config(self, fake_store, test_config, monkeypatch):
        monkeypatch.setattr(test_config, "strict_commit", True)
        assert NoteAggregate(fake_store).retain_on_failure is True


class TestCommit:
    """Tests for commit on the happy path."""

    def test_clean_commit_issues_no_calls(self, aggregate, fake_store, note_id):
        assert aggregate.commit(note_id) is True
        assert fake_store.calls == []

    @pytest.mark.parametrize("bad_id", [0, -1])
    def test_commit_rejects_non_positive_note_id(self, aggregate, bad_id):
        aggregate.set_note_value(NoteColumns.BG_COLOR_ID, 1)
        with pytest.raises(InvalidArgumentError) as exc_info:
            aggregate.commit(bad_id)
        assert exc_info.value.code == ErrorCode.INVALID_NOTE_ID

    def test_note_only_commit(self, aggregate, fake_store, note_id):
        aggregate.set_note_value(NoteColumns.BG_COLOR_ID, 2)
        assert aggregate.commit(note_id) is True

        assert [name for name, _ in fake_store.write_calls] == ["update"]
        assert fake_store.row(Table.NOTE, note_id)[NoteColumns.BG_COLOR_ID] == 2
        assert_all_clean(aggregate)

    def test_new_text_record_is_inserted_and_bound(self, aggregate, fake_store, note_id):
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "hello")
        assert aggregate.commit(note_id) is True

        inserts = fake_store.calls_to("insert")
        assert len(inserts) == 1
        table, values = inserts[0]
        assert table == Table.DATA
        assert values[DataColumns.MIME_TYPE] == ContentKind.TEXT.mime_type
        assert values[DataColumns.NOTE_ID] == note_id
        assert values[TextColumns.CONTENT] == "hello"

        # Insert-only commits issue no batch
        assert fake_store.calls_to("apply_batch") == []
        assert aggregate.content_id(ContentKind.TEXT) > 0
        assert_all_clean(aggregate)

    def test_bound_record_is_updated_in_batch(self, aggregate, fake_store, note_id):
        data_id = fake_store.add_row(
            Table.DATA,
            {DataColumns.NOTE_ID: note_id, DataColumns.MIME_TYPE: ContentKind.TEXT.mime_type},
        )
        aggregate.bind_content_id(ContentKind.TEXT, data_id)
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.MODE, 1)

        assert aggregate.commit(note_id) is True

        assert fake_store.calls_to("insert") == []
        batches = fake_store.calls_to("apply_batch")
        assert len(batches) == 1
        (operations,) = batches[0]
        assert len(operations) == 1
        op = operations[0]
        assert op.kind == OperationKind.UPDATE
        assert op.table == Table.DATA
        assert op.row_id == data_id
        assert op.values[TextColumns.MODE] == 1
        assert op.values[DataColumns.NOTE_ID] == note_id
        assert fake_store.row(Table.DATA, data_id)[TextColumns.MODE] == 1

    def test_mixed_insert_and_update(self, aggregate, fake_store, note_id):
        """An unbound TEXT record is inserted, a bound CALL record is batched."""
        call_id = fake_store.add_row(
            Table.DATA,
            {DataColumns.NOTE_ID: note_id, DataColumns.MIME_TYPE: ContentKind.CALL.mime_type},
        )
        aggregate.bind_content_id(ContentKind.CALL, call_id)
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "body")
        aggregate.set_content_value(ContentKind.CALL, CallColumns.PHONE_NUMBER, "5551234567")

        assert aggregate.commit(note_id) is True

        names = [name for name, _ in fake_store.write_calls]
        assert names == ["update", "insert", "apply_batch"]
        (operations,) = fake_store.calls_to("apply_batch")[0]
        assert [op.row_id for op in operations] == [call_id]
        assert_all_clean(aggregate)

    def test_second_commit_updates_inserted_record(self, aggregate, fake_store, note_id):
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "v1")
        aggregate.commit(note_id)
        text_id = aggregate.content_id(ContentKind.TEXT)
        fake_store.reset_calls()

        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "v2")
        assert aggregate.commit(note_id) is True

        assert fake_store.calls_to("insert") == []
        assert fake_store.row(Table.DATA, text_id)[TextColumns.CONTENT] == "v2"


class TestCommitFailures:
    """Tests for commit failure handling and buffer clearing."""

    def test_note_update_failure_still_writes_content(self, aggregate, fake_store, note_id):
        fake_store.fail_methods.add("update")
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "x")

        assert aggregate.commit(note_id) is False
        assert len(fake_store.calls_to("insert")) == 1
        assert aggregate.content_id(ContentKind.TEXT) > 0

    def test_note_only_update_failure_fails_commit(self, aggregate, fake_store, note_id):
        aggregate.set_note_value(NoteColumns.BG_COLOR_ID, 3)
        fake_store.fail_methods.add("update")

        assert aggregate.commit(note_id) is False
        assert fake_store.row(Table.NOTE, note_id).get(NoteColumns.BG_COLOR_ID) != 3

    def test_note_update_matching_no_row_does_not_abort(self, aggregate, fake_store):
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "x")
        assert aggregate.commit(999) is True
        assert len(fake_store.calls_to("insert")) == 1

    def test_insert_failure_fails_commit(self, aggregate, fake_store, note_id):
        fake_store.fail_methods.add("insert")
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "x")

        assert aggregate.commit(note_id) is False
        assert aggregate.content_id(ContentKind.TEXT) == 0
        assert_all_clean(aggregate)

    def test_insert_returning_bad_id_fails_commit(self, aggregate, fake_store, note_id):
        fake_store.insert_id_override = 0
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "x")

        assert aggregate.commit(note_id) is False
        assert aggregate.content_id(ContentKind.TEXT) == 0
        assert_all_clean(aggregate)

    def test_batch_failure_fails_commit(self, aggregate, fake_store, note_id):
        aggregate.bind_content_id(ContentKind.TEXT, 50)
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "x")
        fake_store.fail_methods.add("apply_batch")

        assert aggregate.commit(note_id) is False
        assert_all_clean(aggregate)

    def test_empty_batch_result_fails_commit(self, aggregate, fake_store, note_id):
        aggregate.bind_content_id(ContentKind.CALL, 50)
        aggregate.set_content_value(ContentKind.CALL, CallColumns.CALL_DATE, 123)
        fake_store.empty_batch_result = True

        assert aggregate.commit(note_id) is False
        assert_all_clean(aggregate)

    def test_strict_mode_retains_content_on_failure(self, fake_store, note_id):
        """With retain_on_failure a retry resends the content changes."""
        aggregate = NoteAggregate(fake_store, retain_on_failure=True)
        aggregate.set_content_value(ContentKind.TEXT, TextColumns.CONTENT, "keep me")
        fake_store.fail_methods.add("insert")

        assert aggregate.commit(note_id) is False
        assert aggregate.pending_content_values(ContentKind.TEXT)[TextColumns.CONTENT] == "keep me"
        # The note row buffer is always cleared
        assert aggregate.pending_note_values() == {}

        fake_store.fail_methods.clear()
        assert aggregate.commit(note_id) is True
        text_id = aggregate.content_id(ContentKind.TEXT)
        assert fake_store.row(Table.DATA, text_id)[TextColumns.CONTENT] == "keep me"
        assert_all_clean(aggregate)


class TestAllocateNoteId:
    """Tests for new identity allocation."""

    def test_allocates_minimal_row(self, fake_store):
        note_id = allocate_note_id(fake_store, 7)

        assert note_id > 0
        row = fake_store.row(Table.NOTE, note_id)
        assert row[NoteColumns.PARENT_ID] == 7
        assert row[NoteColumns.TYPE] == NoteType.NOTE.value
        assert row[NoteColumns.LOCAL_MODIFIED] == 1
        assert row[NoteColumns.CREATED_DATE] == row[NoteColumns.MODIFIED_DATE]

    def test_bad_id_raises(self, fake_store):
        fake_store.insert_id_override = 0
        with pytest.raises(StoreError) as exc_info:
            allocate_note_id(fake_store, 0)
        assert exc_info.value.code == ErrorCode.STORE_ID_ALLOCATION_FAILED

    def test_store_failure_propagates(self, fake_store):
        fake_store.fail_methods.add("insert")
        with pytest.raises(StoreError):
            allocate_note_id(fake_store, 0)
