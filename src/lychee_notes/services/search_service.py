"""Service for finding notes by their tags."""

import logging
from typing import List, Sequence

from sqlalchemy import distinct, func, select

from lychee_notes.models.db_models import DBNote, DBTag, note_tags
from lychee_notes.models.schema import NoteWithTags
from lychee_notes.storage.note_repository import NoteRepository, newest_first

logger = logging.getLogger(__name__)


class SearchService:
    """Read-only tag search over the note store."""

    def __init__(self, note_repository: NoteRepository):
        """Initialize the search service.

        Args:
            note_repository: Repository whose engine and tag loading are reused.
        """
        self.notes = note_repository

    def search_by_tags(self, tag_names: Sequence[str]) -> List[NoteWithTags]:
        """Find notes carrying every one of the given tags.

        Matching is strict AND: a note qualifies when the number of distinct
        requested names linked to it equals the number of distinct names
        requested. Extra tags on the note do not matter. A name that matches
        no tag can never be counted, so it empties the result.

        An empty request is no filter at all and returns every note.

        Args:
            tag_names: Exact, case-sensitive tag names.

        Returns:
            Matching notes with their tags, newest first.
        """
        wanted = list(dict.fromkeys(tag_names))
        if not wanted:
            return self.notes.get_all()

        matching_ids = (
            select(note_tags.c.note_id)
            .join(DBTag, DBTag.id == note_tags.c.tag_id)
            .where(DBTag.name.in_(wanted))
            .group_by(note_tags.c.note_id)
            .having(func.count(distinct(DBTag.name)) == len(wanted))
        )

        with self.notes.read_session("search_notes_by_tags") as session:
            db_notes = session.scalars(
                newest_first(select(DBNote).where(DBNote.id.in_(matching_ids)))
            ).all()
            results = self.notes.load_with_tags(session, db_notes)

        logger.debug(f"Tag search {wanted} matched {len(results)} note(s)")
        return results
