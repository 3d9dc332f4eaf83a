"""Repository for tag storage and retrieval."""
import logging
from typing import List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lychee_notes.exceptions import (
    ErrorCode,
    TagConflictError,
    TagNotFoundError,
)
from lychee_notes.models.db_models import DBNote, DBTag, note_tags
from lychee_notes.models.schema import Tag, utc_now
from lychee_notes.storage.base import Repository

logger = logging.getLogger(__name__)


class TagRepository(Repository):
    """Repository for managing tags.

    Tags are created lazily by ``resolve`` the first time a note uses a
    name, and removed by ``sweep`` once no note links to them. ``rename``
    and ``delete`` are the explicit administration operations.

    Methods taking a ``session`` run inside the caller's transaction; the
    others open their own.
    """

    def resolve(self, session: Session, tag_name: str) -> int:
        """Get the ID of a tag, creating the tag if it does not exist.

        The insert runs inside a SAVEPOINT. If another transaction created
        the same name first, the unique constraint rejects our insert, the
        savepoint is rolled back and the winner's row is looked up instead.

        Args:
            session: Active session (caller commits).
            tag_name: The exact, case-sensitive tag name.

        Returns:
            The tag ID.
        """
        tag_id = session.scalar(select(DBTag.id).where(DBTag.name == tag_name))
        if tag_id is not None:
            return tag_id

        try:
            with session.begin_nested():
                db_tag = DBTag(name=tag_name)
                session.add(db_tag)
                session.flush()
                tag_id = db_tag.id
        except IntegrityError:
            tag_id = session.scalar(select(DBTag.id).where(DBTag.name == tag_name))
            if tag_id is None:
                raise
            logger.debug(f"Tag '{tag_name}' was created concurrently, reusing {tag_id}")
            return tag_id

        logger.debug(f"Created tag '{tag_name}' with ID {tag_id}")
        return tag_id

    def sweep(self, session: Session) -> int:
        """Delete every tag that no note links to.

        Args:
            session: Active session (caller commits).

        Returns:
            Number of tags deleted.
        """
        result = session.execute(
            delete(DBTag)
            .where(DBTag.id.not_in(select(note_tags.c.tag_id)))
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            logger.info(f"Garbage-collected {count} unused tag(s)")
        return count

    def delete_unused(self) -> int:
        """Run ``sweep`` in a transaction of its own.

        Returns:
            Number of tags deleted.
        """
        with self.write_session("cleanup_tags", ErrorCode.STORAGE_DELETE_FAILED) as session:
            return self.sweep(session)

    def get(self, tag_id: int) -> Optional[Tag]:
        """Get a tag by ID.

        Returns:
            The Tag if found, None otherwise.
        """
        with self.read_session("get_tag") as session:
            db_tag = session.get(DBTag, tag_id)
            if db_tag is None:
                return None
            return Tag(id=db_tag.id, name=db_tag.name)

    def get_by_name(self, tag_name: str) -> Optional[Tag]:
        """Get a tag by its exact name."""
        with self.read_session("get_tag") as session:
            db_tag = session.scalar(select(DBTag).where(DBTag.name == tag_name))
            if db_tag is None:
                return None
            return Tag(id=db_tag.id, name=db_tag.name)

    def get_all(self) -> List[Tag]:
        """Get all tags, ordered by name."""
        with self.read_session("get_all_tags") as session:
            db_tags = session.scalars(select(DBTag).order_by(DBTag.name)).all()
            return [Tag(id=tag.id, name=tag.name) for tag in db_tags]

    def count(self) -> int:
        """Number of tags currently stored."""
        with self.read_session("count_tags") as session:
            return session.scalar(select(func.count()).select_from(DBTag))

    def rename(self, tag_id: int, new_name: str, merge: bool = False) -> None:
        """Rename a tag in place.

        Notes keep their links; only the displayed name changes.

        Args:
            tag_id: The tag to rename.
            new_name: The new, case-sensitive name.
            merge: When another tag already has ``new_name``, move this
                tag's links onto it and delete this tag instead of failing.

        Raises:
            TagNotFoundError: No tag has ``tag_id``.
            TagConflictError: ``new_name`` belongs to a different tag and
                ``merge`` is False.
        """
        with self.write_session("rename_tag") as session:
            db_tag = session.get(DBTag, tag_id)
            if db_tag is None:
                raise TagNotFoundError(tag_id)
            if db_tag.name == new_name:
                return

            existing_id = session.scalar(
                select(DBTag.id).where(DBTag.name == new_name)
            )
            if existing_id is None:
                old_name = db_tag.name
                db_tag.name = new_name
                logger.info(f"Renamed tag {tag_id} from '{old_name}' to '{new_name}'")
                return

            if not merge:
                raise TagConflictError(tag_id, new_name, existing_id)
            self._merge_into(session, tag_id, existing_id)
            logger.info(f"Merged tag {tag_id} into existing tag '{new_name}' ({existing_id})")

    def _merge_into(self, session: Session, source_id: int, target_id: int) -> None:
        """Relink every note of ``source_id`` to ``target_id``, then drop the source."""
        note_ids = set(
            session.scalars(
                select(note_tags.c.note_id).where(note_tags.c.tag_id == source_id)
            ).all()
        )
        already_linked = set(
            session.scalars(
                select(note_tags.c.note_id).where(note_tags.c.tag_id == target_id)
            ).all()
        )
        gained = note_ids - already_linked

        session.execute(delete(note_tags).where(note_tags.c.tag_id == source_id))
        if gained:
            session.execute(
                insert(note_tags),
                [{"note_id": note_id, "tag_id": target_id} for note_id in sorted(gained)],
            )
        session.execute(
            delete(DBTag)
            .where(DBTag.id == source_id)
            .execution_options(synchronize_session=False)
        )
        # Every note of the source tag now shows a different tag set
        self._touch_notes(session, note_ids)

    def delete(self, tag_id: int) -> None:
        """Delete a tag, unlinking it from every note first.

        Deleting a tag that does not exist is a no-op.
        """
        with self.write_session("delete_tag", ErrorCode.STORAGE_DELETE_FAILED) as session:
            note_ids = session.scalars(
                select(note_tags.c.note_id).where(note_tags.c.tag_id == tag_id)
            ).all()
            session.execute(delete(note_tags).where(note_tags.c.tag_id == tag_id))
            result = session.execute(
                delete(DBTag)
                .where(DBTag.id == tag_id)
                .execution_options(synchronize_session=False)
            )
            self._touch_notes(session, note_ids)
            if result.rowcount:
                logger.info(f"Deleted tag {tag_id} (unlinked from {len(note_ids)} note(s))")

    @staticmethod
    def _touch_notes(session: Session, note_ids) -> None:
        """Refresh ``updated_at`` on notes whose tag set just changed."""
        if not note_ids:
            return
        session.execute(
            update(DBNote)
            .where(DBNote.id.in_(list(note_ids)))
            .values(updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
