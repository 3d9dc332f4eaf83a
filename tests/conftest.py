"""Common test fixtures for Lychee Notes."""

import tempfile
from pathlib import Path

import pytest

from lychee_notes.config import LycheeConfig
from lychee_notes.models.db_models import init_db
from lychee_notes.observability import metrics
from lychee_notes.services.note_service import NoteService
from lychee_notes.storage.link_repository import LinkRepository
from lychee_notes.storage.note_repository import NoteRepository
from lychee_notes.storage.tag_repository import TagRepository


@pytest.fixture
def temp_dir():
    """Create a temporary directory for the database."""
    with tempfile.TemporaryDirectory() as db_dir:
        yield Path(db_dir)


@pytest.fixture
def test_config(temp_dir):
    """Configuration pointing at a fresh database file."""
    return LycheeConfig(
        base_dir=temp_dir,
        database_path=temp_dir / "test_lychee.db",
        db_busy_timeout=30,
        format_tag_names=False,
    )


@pytest.fixture
def engine(test_config):
    """Initialized engine, disposed after the test."""
    engine = init_db(test_config)
    yield engine
    engine.dispose()


@pytest.fixture
def tag_repository(engine):
    return TagRepository(engine)


@pytest.fixture
def link_repository(engine):
    return LinkRepository(engine)


@pytest.fixture
def note_repository(engine, tag_repository, link_repository):
    return NoteRepository(
        engine, tag_repository=tag_repository, link_repository=link_repository
    )


@pytest.fixture
def note_service(engine):
    """Create a test NoteService with tag formatting off."""
    return NoteService(engine, format_tag_names=False)


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()
