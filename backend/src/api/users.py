"""
Credential store: persistence of user accounts.

Emails are stored and compared in their canonical form (trimmed, lowercased),
so two spellings of one address can never produce two accounts.
"""
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.errors import ConflictError, NotFoundError
from src.api.models import User

logger = logging.getLogger(__name__)

# Only these fields may change through a profile update.
USER_UPDATABLE_FIELDS = ("name", "email")


def canonical_email(email: str) -> str:
    return email.strip().lower()


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == canonical_email(email)).first()


def find_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def _commit_or_conflict(db: Session, message: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent write of the same email
        db.rollback()
        raise ConflictError(message)


# PUBLIC_INTERFACE
def create_user(db: Session, name: str, email: str, password_hash: str) -> User:
    """
    Insert a new user.

    Raises:
        ConflictError if the email is already registered, including when a
        concurrent registration wins the insert.
    """
    email = canonical_email(email)
    if find_by_email(db, email) is not None:
        raise ConflictError("User already exists")
    user = User(name=name.strip(), email=email, password_hash=password_hash)
    db.add(user)
    _commit_or_conflict(db, "User already exists")
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


# PUBLIC_INTERFACE
def update_user(db: Session, user_id: str, fields: Mapping[str, Any]) -> User:
    """
    Apply a partial profile update. Keys outside USER_UPDATABLE_FIELDS and
    None values are dropped.

    Raises:
        NotFoundError if the user does not exist.
        ConflictError if the new email belongs to another user.
    """
    user = find_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    changes = {
        key: value
        for key, value in fields.items()
        if key in USER_UPDATABLE_FIELDS and value is not None
    }
    if "name" in changes:
        user.name = changes["name"].strip()
    if "email" in changes:
        email = canonical_email(changes["email"])
        if email != user.email:
            holder = find_by_email(db, email)
            if holder is not None and holder.id != user.id:
                raise ConflictError("Email already in use")
            user.email = email
    _commit_or_conflict(db, "Email already in use")
    db.refresh(user)
    return user
