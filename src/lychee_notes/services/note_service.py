"""Service layer for note and tag operations."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.engine import Engine

from lychee_notes.config import config
from lychee_notes.exceptions import (
    ErrorCode,
    NoteValidationError,
    ValidationError,
)
from lychee_notes.models.schema import NoteWithTags, Tag
from lychee_notes.observability import traced
from lychee_notes.services.search_service import SearchService
from lychee_notes.storage.link_repository import LinkRepository
from lychee_notes.storage.note_repository import NoteRepository
from lychee_notes.storage.tag_repository import TagRepository
from lychee_notes.utils import normalize_tag_names

logger = logging.getLogger(__name__)

# Matches the width of tags.name
MAX_TAG_NAME_LENGTH = 255


class NoteService:
    """The note and tag operations offered to callers.

    Wraps the repositories with input validation, tag-name normalization
    and operation tracing. All repositories share the one engine passed in.
    """

    def __init__(
        self,
        engine: Engine,
        format_tag_names: Optional[bool] = None,
    ):
        """Initialize the service.

        Args:
            engine: The process-wide SQLAlchemy engine (see ``init_db``).
            format_tag_names: Rewrite tag names with ``format_tag_name``.
                Defaults to ``config.format_tag_names``.
        """
        self.engine = engine
        self.format_tag_names = (
            config.format_tag_names if format_tag_names is None else format_tag_names
        )
        self.tag_repository = TagRepository(engine)
        self.link_repository = LinkRepository(engine)
        self.note_repository = NoteRepository(
            engine,
            tag_repository=self.tag_repository,
            link_repository=self.link_repository,
        )
        self.search_service = SearchService(self.note_repository)

    def shutdown(self) -> None:
        """Release every pooled database connection."""
        self.engine.dispose()
        logger.info("Database connections released")

    def _clean_tags(self, tags: Optional[Sequence[str]]) -> List[str]:
        if tags is None:
            return []
        if isinstance(tags, str):
            raise ValidationError("Tags must be a list of names, not a string", field="tags")
        names = normalize_tag_names(tags, format_names=self.format_tag_names)
        for name in names:
            if len(name) > MAX_TAG_NAME_LENGTH:
                raise ValidationError(
                    f"Tag name exceeds {MAX_TAG_NAME_LENGTH} characters",
                    field="tags",
                    value=name,
                    code=ErrorCode.TAG_INVALID,
                )
        return names

    @staticmethod
    def _check_content(content: Optional[str]) -> str:
        if content is None:
            raise NoteValidationError(
                "Content is required",
                field="content",
                code=ErrorCode.NOTE_CONTENT_REQUIRED,
            )
        if not isinstance(content, str):
            raise NoteValidationError("Content must be text", field="content", value=content)
        return content

    # ========== Notes ==========

    @traced("create_note")
    def create_note(self, content: str, tags: Optional[Sequence[str]] = None) -> int:
        """Create a new note.

        Args:
            content: Note content (required, may be empty).
            tags: Tag names; new names create tags.

        Returns:
            The new note's ID.
        """
        content = self._check_content(content)
        return self.note_repository.create(content, self._clean_tags(tags))

    @traced("get_all_notes")
    def get_all_notes(self) -> List[NoteWithTags]:
        """All notes with their tags, newest first."""
        return self.note_repository.get_all()

    @traced("get_note_by_id")
    def get_note_by_id(self, note_id: int) -> Optional[NoteWithTags]:
        """Retrieve a note by ID, or None when it does not exist."""
        return self.note_repository.get(note_id)

    @traced("update_note")
    def update_note(self, note_id: int, content: str, tags: Sequence[str]) -> None:
        """Replace a note's content and its whole tag set.

        ``tags`` is the complete new set: names left out are unlinked (this
        is not a merge), so an empty list clears the note's tags. Tags no
        other note uses are garbage-collected.

        Raises:
            NoteNotFoundError: If the note does not exist.
            ValidationError: If ``tags`` is None.
        """
        content = self._check_content(content)
        if tags is None:
            raise ValidationError(
                "Tags are required; pass an empty list to clear them", field="tags"
            )
        self.note_repository.update(note_id, content, self._clean_tags(tags))

    @traced("delete_note")
    def delete_note(self, note_id: int) -> bool:
        """Delete a note; a missing note is a no-op.

        Returns:
            True if a note was deleted.
        """
        return self.note_repository.delete(note_id)

    @traced("get_tags_for_note")
    def get_tags_for_note(self, note_id: int) -> List[str]:
        """Tag names of a note, alphabetical."""
        return self.note_repository.get_tag_names(note_id)

    @traced("search_notes_by_tags")
    def search_notes_by_tags(self, tags: Sequence[str]) -> List[NoteWithTags]:
        """Notes carrying every tag in ``tags``; an empty list returns all notes."""
        return self.search_service.search_by_tags(self._clean_tags(tags))

    def count_notes(self) -> int:
        """Get total count of notes."""
        return self.note_repository.count()

    # ========== Tags ==========

    @traced("get_all_tags")
    def get_all_tags(self) -> List[Tag]:
        """All tags, alphabetical."""
        return self.tag_repository.get_all()

    @traced("rename_tag")
    def rename_tag(self, tag_id: int, new_name: str, merge: bool = False) -> str:
        """Rename a tag.

        Args:
            tag_id: The tag to rename.
            new_name: The new name (stripped, and formatted when enabled).
            merge: Fold this tag into an existing tag that already has
                ``new_name`` instead of rejecting the rename.

        Returns:
            The name as stored, after stripping and formatting.

        Raises:
            TagNotFoundError: If the tag does not exist.
            TagConflictError: If another tag has ``new_name`` and merge is False.
            ValidationError: If ``new_name`` is empty after cleaning.
        """
        names = self._clean_tags([new_name or ""])
        if not names:
            raise ValidationError(
                "New tag name cannot be empty",
                field="new_name",
                code=ErrorCode.TAG_INVALID,
            )
        self.tag_repository.rename(tag_id, names[0], merge=merge)
        return names[0]

    @traced("delete_tag")
    def delete_tag(self, tag_id: int) -> None:
        """Delete a tag and unlink it from all notes; a missing tag is a no-op."""
        self.tag_repository.delete(tag_id)

    @traced("cleanup_tags")
    def cleanup_tags(self) -> int:
        """Delete tags that are not associated with any notes.

        Returns:
            Number of tags deleted.
        """
        return self.tag_repository.delete_unused()

    def count_tags(self) -> int:
        """Get total count of tags."""
        return self.tag_repository.count()
