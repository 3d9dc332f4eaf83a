# tests/test_link_repository.py
"""Tests for the note-tag association table."""
from lychee_notes.models.db_models import DBNote
from lychee_notes.models.schema import utc_now


def _new_note(session, content="note"):
    now = utc_now()
    db_note = DBNote(content=content, created_at=now, updated_at=now)
    session.add(db_note)
    session.flush()
    return db_note.id


def test_replace_links(link_repository, tag_repository):
    with link_repository.write_session("test") as session:
        note_id = _new_note(session)
        a = tag_repository.resolve(session, "a")
        b = tag_repository.resolve(session, "b")
        c = tag_repository.resolve(session, "c")

        link_repository.replace_links(session, note_id, [a, b])
        assert link_repository.get_tag_names(session, note_id) == ["a", "b"]

        link_repository.replace_links(session, note_id, [c, b, c])
        assert link_repository.get_tag_names(session, note_id) == ["b", "c"]

        link_repository.replace_links(session, note_id, [])
        assert link_repository.get_tag_names(session, note_id) == []


def test_unlink_note(link_repository, tag_repository):
    with link_repository.write_session("test") as session:
        note_id = _new_note(session)
        ids = [tag_repository.resolve(session, name) for name in ("x", "y")]
        link_repository.replace_links(session, note_id, ids)

        assert link_repository.unlink_note(session, note_id) == 2
        assert link_repository.unlink_note(session, note_id) == 0


def test_tag_names_for_notes(link_repository, tag_repository):
    with link_repository.write_session("test") as session:
        first = _new_note(session, "first")
        second = _new_note(session, "second")
        untagged = _new_note(session, "untagged")
        link_repository.replace_links(
            session, first, [tag_repository.resolve(session, n) for n in ("z", "m")]
        )
        link_repository.replace_links(
            session, second, [tag_repository.resolve(session, "m")]
        )

        names = link_repository.get_tag_names_for_notes(session, [first, second, untagged])

    assert names == {first: ["m", "z"], second: ["m"], untagged: []}


def test_tag_names_for_no_notes(link_repository):
    with link_repository.read_session("test") as session:
        assert link_repository.get_tag_names_for_notes(session, []) == {}


def test_tag_names_for_many_notes(link_repository, tag_repository):
    """Lookups larger than one query batch still cover every note."""
    with link_repository.write_session("test") as session:
        tag_id = tag_repository.resolve(session, "bulk")
        note_ids = [_new_note(session, f"n{i}") for i in range(1200)]
        for note_id in note_ids:
            link_repository.replace_links(session, note_id, [tag_id])

        names = link_repository.get_tag_names_for_notes(session, note_ids)

    assert len(names) == 1200
    assert all(tags == ["bulk"] for tags in names.values())
