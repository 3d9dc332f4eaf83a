"""Tests for concurrent access to one database.

These tests run several threads against the shared engine to verify:
1. Concurrent writers wait for the lock instead of failing
2. A tag name created by many writers at once ends up as one tag
3. Readers never see a half-finished write
"""

import threading
from pathlib import Path
from typing import List

import pytest
from sqlalchemy import func, select

from lychee_notes.config import LycheeConfig
from lychee_notes.models.db_models import DBTag, init_db
from lychee_notes.services.note_service import NoteService


def _run_threads(count, target):
    errors: List[Exception] = []
    lock = threading.Lock()

    def runner(index):
        try:
            target(index)
        except Exception as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=runner, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return errors


class TestConcurrentWrites:
    """Tests for concurrent writers."""

    def test_concurrent_creates_share_new_tag(self, note_service):
        """Every writer introduces the same new tag; exactly one row exists."""
        created: List[int] = []
        lock = threading.Lock()

        def create(index):
            note_id = note_service.create_note(f"note {index}", ["shared", f"own-{index}"])
            with lock:
                created.append(note_id)

        errors = _run_threads(8, create)

        assert errors == []
        assert len(set(created)) == 8
        with note_service.tag_repository.read_session("test") as session:
            shared_rows = session.scalar(
                select(func.count()).select_from(DBTag).where(DBTag.name == "shared")
            )
        assert shared_rows == 1
        assert len(note_service.search_notes_by_tags(["shared"])) == 8

    def test_concurrent_updates_and_deletes(self, note_service):
        note_ids = [note_service.create_note(f"n{i}", ["common"]) for i in range(6)]

        def mutate(index):
            note_id = note_ids[index]
            if index % 2:
                note_service.delete_note(note_id)
            else:
                note_service.update_note(note_id, f"updated {index}", ["common", "even"])

        errors = _run_threads(6, mutate)

        assert errors == []
        remaining = note_service.get_all_notes()
        assert sorted(n.id for n in remaining) == sorted(note_ids[0::2])
        assert all(n.tags == ["common", "even"] for n in remaining)
        assert [t.name for t in note_service.get_all_tags()] == ["common", "even"]


def test_readers_see_whole_writes(note_service):
    """A reader sees either none or all of a note's tags."""
    tags = [f"t{i}" for i in range(10)]
    stop = threading.Event()
    torn: List[List[str]] = []

    def writer(_):
        try:
            for i in range(20):
                note_service.create_note(f"note {i}", tags)
        finally:
            stop.set()

    def reader(_):
        while not stop.is_set():
            for note in note_service.get_all_notes():
                if note.tags != tags:
                    torn.append(note.tags)

    reader_thread = threading.Thread(target=reader, args=(0,))
    reader_thread.start()
    errors = _run_threads(1, writer)
    reader_thread.join(timeout=60)

    assert errors == []
    assert torn == []


class TestInMemoryDatabase:
    """The single-connection in-memory database under concurrent callers."""

    @pytest.fixture
    def memory_service(self):
        engine = init_db(LycheeConfig(database_path=Path(":memory:")))
        yield NoteService(engine, format_tag_names=False)
        engine.dispose()

    def test_concurrent_creates(self, memory_service):
        def create(index):
            for i in range(20):
                memory_service.create_note(f"note {index}-{i}", ["shared", f"t{index}"])

        errors = _run_threads(6, create)

        assert errors == []
        assert memory_service.count_notes() == 120
        assert len(memory_service.search_notes_by_tags(["shared"])) == 120
        assert memory_service.count_tags() == 7

    def test_concurrent_reads_and_writes(self, memory_service):
        note_id = memory_service.create_note("start", ["a"])

        def mutate(index):
            for i in range(10):
                if index % 2:
                    memory_service.update_note(note_id, f"v{index}-{i}", ["a", f"t{index}"])
                else:
                    assert memory_service.get_note_by_id(note_id) is not None

        errors = _run_threads(6, mutate)

        assert errors == []
        assert memory_service.get_tags_for_note(note_id)[0] == "a"
        assert len(memory_service.get_all_tags()) == 2
