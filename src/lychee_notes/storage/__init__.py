"""Storage layer for Lychee Notes."""

from lychee_notes.storage.base import Repository
from lychee_notes.storage.link_repository import LinkRepository
from lychee_notes.storage.note_repository import NoteRepository
from lychee_notes.storage.tag_repository import TagRepository

__all__ = [
    "Repository",
    "NoteRepository",
    "LinkRepository",
    "TagRepository",
]
