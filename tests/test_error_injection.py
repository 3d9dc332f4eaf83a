"""Tests for error injection and failure handling.

Tests that verify failed operations leave the store untouched and surface
as the right exception class.
"""

from unittest.mock import patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from lychee_notes.exceptions import (
    ConstraintViolationError,
    ErrorCode,
    LycheeError,
    NoteNotFoundError,
    StorageError,
    TagConflictError,
    TagNotFoundError,
)
from lychee_notes.models.db_models import DBTag
from lychee_notes.storage.link_repository import LinkRepository
from lychee_notes.storage.tag_repository import TagRepository


def _disk_error(*args, **kwargs):
    raise OperationalError("INSERT INTO note_tags", {}, Exception("disk I/O error"))


class TestExceptionHierarchy:
    """Tests for the exception class hierarchy and serialization."""

    def test_base_exception_to_dict(self):
        """Test base exception serialization."""
        exc = LycheeError(
            "Test error", code=ErrorCode.VALIDATION_FAILED, details={"key": "value"}
        )
        result = exc.to_dict()

        assert result["error"] == "LycheeError"
        assert result["code"] == ErrorCode.VALIDATION_FAILED.value
        assert result["code_name"] == "VALIDATION_FAILED"
        assert result["message"] == "Test error"
        assert result["details"] == {"key": "value"}

    def test_str_includes_code_and_details(self):
        exc = NoteNotFoundError(12)
        assert str(exc) == "[NOTE_NOT_FOUND] Note with ID 12 not found (note_id=12)"

    def test_not_found_errors(self):
        note_exc = NoteNotFoundError(3)
        tag_exc = TagNotFoundError(4)
        assert note_exc.note_id == 3
        assert note_exc.code == ErrorCode.NOTE_NOT_FOUND
        assert tag_exc.tag_id == 4
        assert tag_exc.code == ErrorCode.TAG_NOT_FOUND

    def test_tag_conflict_is_constraint_violation(self):
        exc = TagConflictError(1, "work", 2)
        assert isinstance(exc, ConstraintViolationError)
        assert exc.code == ErrorCode.TAG_NAME_CONFLICT
        assert exc.details["existing_tag_id"] == 2
        assert exc.operation == "rename_tag"

    def test_storage_error_truncates_original(self):
        exc = StorageError(
            "Write failed",
            operation="create_note",
            code=ErrorCode.STORAGE_WRITE_FAILED,
            original_error=Exception("x" * 500),
        )
        assert exc.details["operation"] == "create_note"
        assert len(exc.details["original_error"]) == 200

    def test_storage_codes(self):
        storage = {code.name for code in ErrorCode if code.name.startswith("STORAGE_")}
        assert storage == {
            "STORAGE_READ_FAILED", "STORAGE_WRITE_FAILED", "STORAGE_DELETE_FAILED",
        }

    def test_failure_kinds_are_distinct(self):
        assert not issubclass(StorageError, ConstraintViolationError)
        assert not issubclass(NoteNotFoundError, StorageError)
        assert not issubclass(ConstraintViolationError, NoteNotFoundError)


class TestRollback:
    """A failure half way through an operation leaves no partial state."""

    def test_create_rolls_back_on_link_failure(self, note_service):
        with patch.object(LinkRepository, "replace_links", side_effect=_disk_error):
            with pytest.raises(StorageError) as exc_info:
                note_service.create_note("doomed", ["fresh-tag"])

        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert note_service.count_notes() == 0
        assert note_service.get_all_tags() == []

    def test_update_rolls_back_on_link_failure(self, note_service):
        note_id = note_service.create_note("original", ["a"])

        with patch.object(LinkRepository, "replace_links", side_effect=_disk_error):
            with pytest.raises(StorageError):
                note_service.update_note(note_id, "changed", ["b"])

        note = note_service.get_note_by_id(note_id)
        assert note.content == "original"
        assert note.tags == ["a"]
        assert [t.name for t in note_service.get_all_tags()] == ["a"]

    def test_delete_rolls_back_on_sweep_failure(self, note_service):
        note_id = note_service.create_note("keep me", ["a"])

        with patch.object(TagRepository, "sweep", side_effect=_disk_error):
            with pytest.raises(StorageError) as exc_info:
                note_service.delete_note(note_id)

        assert exc_info.value.code == ErrorCode.STORAGE_DELETE_FAILED
        assert note_service.get_note_by_id(note_id).tags == ["a"]

    def test_store_usable_after_failure(self, note_service):
        with patch.object(LinkRepository, "replace_links", side_effect=_disk_error):
            with pytest.raises(StorageError):
                note_service.create_note("doomed", ["x"])

        note_id = note_service.create_note("works", ["x"])
        assert note_service.get_tags_for_note(note_id) == ["x"]


class TestErrorMapping:
    """Driver errors come back as the package's exception classes."""

    def test_integrity_error_becomes_constraint_violation(self, tag_repository):
        with tag_repository.write_session("test") as session:
            session.add(DBTag(name="unique"))

        with pytest.raises(ConstraintViolationError) as exc_info:
            with tag_repository.write_session("insert_tag") as session:
                session.add(DBTag(name="unique"))
                session.flush()

        assert exc_info.value.operation == "insert_tag"
        assert len(tag_repository.get_all()) == 1

    def test_read_failure_becomes_storage_error(self, tag_repository):
        with pytest.raises(StorageError) as exc_info:
            with tag_repository.read_session("broken_read") as session:
                session.execute(text("SELECT * FROM no_such_table"))

        assert exc_info.value.code == ErrorCode.STORAGE_READ_FAILED
        assert exc_info.value.operation == "broken_read"

    def test_foreign_keys_are_enforced(self, link_repository):
        with pytest.raises(ConstraintViolationError):
            with link_repository.write_session("link") as session:
                link_repository.replace_links(session, 999, [888])
