import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """
    User entity with unique (lowercased) email and hashed password.
    """
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    notes = relationship("Note", back_populates="owner", cascade="all, delete-orphan")


class Note(Base):
    """
    Note entity owned by exactly one user, with an ordered tag sequence.
    """
    __tablename__ = "notes"

    id = Column(String(32), primary_key=True, default=new_id)
    owner_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, default="", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    owner = relationship("User", back_populates="notes")
    tag_rows = relationship(
        "NoteTag",
        order_by="NoteTag.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_notes_owner_updated", "owner_id", "updated_at"),
    )

    @property
    def tags(self) -> list:
        return [row.tag for row in self.tag_rows]

    @tags.setter
    def tags(self, values) -> None:
        self.tag_rows = [NoteTag(position=i, tag=tag) for i, tag in enumerate(values)]


class NoteTag(Base):
    """
    One element of a note's tag sequence. Duplicates are allowed; position keeps order.
    """
    __tablename__ = "note_tags"

    id = Column(Integer, primary_key=True)
    note_id = Column(String(32), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    tag = Column(String(255), nullable=False)

    __table_args__ = (
        Index("ix_note_tags_tag_note", "tag", "note_id"),
    )
