"""Repository for note storage and retrieval."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from lychee_notes.exceptions import ErrorCode, NoteNotFoundError
from lychee_notes.models.db_models import DBNote
from lychee_notes.models.schema import NoteWithTags, ensure_timezone_aware, utc_now
from lychee_notes.storage.base import Repository
from lychee_notes.storage.link_repository import LinkRepository
from lychee_notes.storage.tag_repository import TagRepository

logger = logging.getLogger(__name__)


def newest_first(query):
    """Order a note query newest first; equal timestamps fall back to ID."""
    return query.order_by(DBNote.created_at.desc(), DBNote.id.desc())


class NoteRepository(Repository):
    """CRUD over notes and their tag sets.

    Each mutating call is one transaction covering the note row, tag
    resolution, the link replacement and the garbage-collection sweep, so
    the three tables never disagree after a failure.
    """

    def __init__(
        self,
        engine: Engine,
        tag_repository: Optional[TagRepository] = None,
        link_repository: Optional[LinkRepository] = None,
    ):
        super().__init__(engine)
        self.tags = tag_repository or TagRepository(engine)
        self.links = link_repository or LinkRepository(engine)

    def create(self, content: str, tag_names: Sequence[str] = ()) -> int:
        """Create a note and link it to its tags.

        Args:
            content: The note text.
            tag_names: Tag names, created on first use. May be empty.

        Returns:
            The new note's ID.
        """
        with self.write_session("create_note") as session:
            now = utc_now()
            db_note = DBNote(content=content, created_at=now, updated_at=now)
            session.add(db_note)
            session.flush()

            tag_ids = [self.tags.resolve(session, name) for name in tag_names]
            self.links.replace_links(session, db_note.id, tag_ids)
            note_id = db_note.id

        logger.debug(f"Created note {note_id} with {len(tag_ids)} tag(s)")
        return note_id

    def get(self, note_id: int) -> Optional[NoteWithTags]:
        """Get a note by ID.

        Returns:
            The note with its tags, or None when it does not exist.
        """
        with self.read_session("get_note_by_id") as session:
            db_note = session.get(DBNote, note_id)
            if db_note is None:
                return None
            return self._to_model(db_note, self.links.get_tag_names(session, note_id))

    def get_all(self) -> List[NoteWithTags]:
        """Get all notes, newest first."""
        with self.read_session("get_all_notes") as session:
            db_notes = session.scalars(newest_first(select(DBNote))).all()
            return self.load_with_tags(session, db_notes)

    def get_tag_names(self, note_id: int) -> List[str]:
        """Tag names of a note, alphabetical; empty when the note is missing."""
        with self.read_session("get_tags_for_note") as session:
            return self.links.get_tag_names(session, note_id)

    def count(self) -> int:
        """Number of notes currently stored."""
        with self.read_session("count_notes") as session:
            return session.scalar(select(func.count()).select_from(DBNote))

    def update(self, note_id: int, content: str, tag_names: Sequence[str]) -> None:
        """Replace a note's content and its entire tag set.

        Tags linked before but absent from ``tag_names`` are unlinked, and
        any tag left without notes is garbage-collected in the same
        transaction.

        Raises:
            NoteNotFoundError: No note has ``note_id``. Nothing is changed.
        """
        with self.write_session("update_note") as session:
            db_note = session.get(DBNote, note_id)
            if db_note is None:
                raise NoteNotFoundError(note_id)

            db_note.content = content
            db_note.updated_at = utc_now()
            session.flush()

            tag_ids = [self.tags.resolve(session, name) for name in tag_names]
            self.links.replace_links(session, note_id, tag_ids)
            self.tags.sweep(session)

        logger.debug(f"Updated note {note_id}")

    def delete(self, note_id: int) -> bool:
        """Delete a note, its links, and any tag only it was using.

        Deleting a note that does not exist is a no-op.

        Returns:
            True if a note was deleted.
        """
        with self.write_session("delete_note", ErrorCode.STORAGE_DELETE_FAILED) as session:
            self.links.unlink_note(session, note_id)
            result = session.execute(
                delete(DBNote)
                .where(DBNote.id == note_id)
                .execution_options(synchronize_session=False)
            )
            deleted = bool(result.rowcount)
            self.tags.sweep(session)

        if deleted:
            logger.debug(f"Deleted note {note_id}")
        return deleted

    def load_with_tags(self, session: Session, db_notes: Sequence[DBNote]) -> List[NoteWithTags]:
        """Attach tag names to already-ordered note rows, keeping their order."""
        names = self.links.get_tag_names_for_notes(session, [n.id for n in db_notes])
        return [self._to_model(db_note, names[db_note.id]) for db_note in db_notes]

    @staticmethod
    def _to_model(db_note: DBNote, tag_names: List[str]) -> NoteWithTags:
        return NoteWithTags(
            id=db_note.id,
            content=db_note.content,
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
            tags=tag_names,
        )
