"""Repository for the links between notes and tags."""
import logging
from typing import Dict, Iterable, List

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from lychee_notes.models.db_models import DBTag, note_tags
from lychee_notes.storage.base import Repository

logger = logging.getLogger(__name__)

_ID_CHUNK = 500


class LinkRepository(Repository):
    """Maintains the many-to-many association between notes and tags.

    All methods run inside the caller's transaction, so a failure half way
    through a replacement rolls back together with the rest of the
    enclosing operation.
    """

    def replace_links(self, session: Session, note_id: int, tag_ids: Iterable[int]) -> None:
        """Replace the full tag-link set of a note.

        Every existing link of the note is removed, then one link is inserted
        per distinct tag ID. Tags that were linked before but are missing from
        ``tag_ids`` end up unlinked.

        Args:
            session: Active session (caller commits).
            note_id: The note whose links are replaced.
            tag_ids: The new tag IDs; duplicates collapse to one link.
        """
        unique_ids = list(dict.fromkeys(tag_ids))
        session.execute(delete(note_tags).where(note_tags.c.note_id == note_id))
        if unique_ids:
            session.execute(
                insert(note_tags),
                [{"note_id": note_id, "tag_id": tag_id} for tag_id in unique_ids],
            )
        logger.debug(f"Note {note_id} now linked to tags {unique_ids}")

    def unlink_note(self, session: Session, note_id: int) -> int:
        """Remove every link of a note.

        Returns:
            Number of links removed.
        """
        result = session.execute(delete(note_tags).where(note_tags.c.note_id == note_id))
        return result.rowcount or 0

    def get_tag_names(self, session: Session, note_id: int) -> List[str]:
        """Names of the tags linked to a note, ordered by name."""
        return list(
            session.scalars(
                select(DBTag.name)
                .join(note_tags, DBTag.id == note_tags.c.tag_id)
                .where(note_tags.c.note_id == note_id)
                .order_by(DBTag.name)
            ).all()
        )

    def get_tag_names_for_notes(
        self, session: Session, note_ids: List[int]
    ) -> Dict[int, List[str]]:
        """Tag names for several notes, batched by ID.

        Returns:
            Mapping of note ID to its tag names, ordered by name. Notes
            without tags map to an empty list.
        """
        names: Dict[int, List[str]] = {note_id: [] for note_id in note_ids}
        if not note_ids:
            return names
        # Stay well under SQLite's bound-parameter limit
        for start in range(0, len(note_ids), _ID_CHUNK):
            chunk = note_ids[start:start + _ID_CHUNK]
            rows = session.execute(
                select(note_tags.c.note_id, DBTag.name)
                .join(DBTag, DBTag.id == note_tags.c.tag_id)
                .where(note_tags.c.note_id.in_(chunk))
                .order_by(note_tags.c.note_id, DBTag.name)
            ).all()
            for note_id, name in rows:
                names[note_id].append(name)
        return names
