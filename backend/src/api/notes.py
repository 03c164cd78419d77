"""
Note store. Every query filters on owner_id, so a note belonging to another
user is indistinguishable from a missing one.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy import Text, exists, func
from sqlalchemy.orm import Session

from src.api.errors import NotFoundError
from src.api.models import Note, NoteTag, utcnow

logger = logging.getLogger(__name__)

# Only these fields may change through a note update; updated_at is server-owned.
NOTE_UPDATABLE_FIELDS = ("title", "body", "tags")

LIKE_ESCAPE = "\\"


def _like_pattern(text: str) -> str:
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _text_contains(db: Session, column, text: str):
    """Case-insensitive literal substring test on column."""
    if db.get_bind().dialect.name == "sqlite":
        # casefold() is registered on every SQLite connection by build_engine
        return func.casefold(column, type_=Text).contains(text.casefold(), autoescape=True)
    return column.ilike(_like_pattern(text), escape=LIKE_ESCAPE)


def _next_timestamp(previous: Optional[datetime]) -> datetime:
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def _owned(db: Session, owner_id: str, note_id: str):
    return db.query(Note).filter(Note.id == note_id, Note.owner_id == owner_id)


# PUBLIC_INTERFACE
def create_note(
    db: Session,
    owner_id: str,
    title: str,
    body: str = "",
    tags: Optional[Iterable[str]] = None,
) -> Note:
    """Create a note owned by owner_id."""
    now = utcnow()
    note = Note(owner_id=owner_id, title=title, body=body or "", created_at=now, updated_at=now)
    note.tags = list(tags or [])
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


# PUBLIC_INTERFACE
def list_notes(
    db: Session,
    owner_id: str,
    q: Optional[str] = None,
    tag: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Note]:
    """
    List the owner's notes, most recently updated first.

    Args:
        q: case-insensitive literal substring matched against title or body
        tag: exact tag that must appear in the note's tag sequence
        limit: optional page size; None returns every match
        offset: number of matches to skip
    """
    query = db.query(Note).filter(Note.owner_id == owner_id)
    if q:
        query = query.filter(_text_contains(db, Note.title, q) | _text_contains(db, Note.body, q))
    if tag:
        query = query.filter(
            exists().where(NoteTag.note_id == Note.id, NoteTag.tag == tag)
        )
    query = query.order_by(Note.updated_at.desc(), Note.created_at.desc())
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


# PUBLIC_INTERFACE
def get_note(db: Session, owner_id: str, note_id: str) -> Note:
    """
    Raises:
        NotFoundError if the note is missing or owned by someone else.
    """
    note = _owned(db, owner_id, note_id).first()
    if note is None:
        raise NotFoundError("Not found")
    return note


# PUBLIC_INTERFACE
def update_note(db: Session, owner_id: str, note_id: str, fields: Mapping[str, Any]) -> Note:
    """
    Apply a partial update. Keys outside NOTE_UPDATABLE_FIELDS and None values
    are dropped; updated_at always moves strictly forward.

    Raises:
        NotFoundError if the note is missing or owned by someone else.
    """
    note = get_note(db, owner_id, note_id)
    changes = {
        key: value
        for key, value in fields.items()
        if key in NOTE_UPDATABLE_FIELDS and value is not None
    }
    if "title" in changes:
        note.title = changes["title"]
    if "body" in changes:
        note.body = changes["body"]
    if "tags" in changes:
        note.tags = list(changes["tags"])
    note.updated_at = _next_timestamp(note.updated_at)
    db.commit()
    db.refresh(note)
    return note


# PUBLIC_INTERFACE
def delete_note(db: Session, owner_id: str, note_id: str) -> None:
    """
    Raises:
        NotFoundError if the note is missing or owned by someone else.
    """
    note = get_note(db, owner_id, note_id)
    db.delete(note)
    db.commit()
    logger.info("Deleted note %s of user %s", note_id, owner_id)
