import uuid
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from auth import hash_secret
from errors import (
    ConflictError,
    NotFoundError,
    StorageError,
    UserDirectoryError,
    ValidationError,
)
from logger import logger
from models import User
from schemas import UserRead, UserUpdated

REQUIRED_FIELDS = ("name", "email", "secret", "phone")
UPDATABLE_FIELDS = ("name", "email", "phone")

MISSING_FIELDS_MESSAGE = "Fields name, email, secret and phone are required."
EMAIL_REGISTERED_MESSAGE = "This email is already registered."
EMAIL_IN_USE_MESSAGE = "Email is already in use."

# Columns returned by every read path. secret_hash is never selected.
PUBLIC_COLUMNS = (
    User.id,
    User.name,
    User.email,
    User.phone,
    User.created_at,
    User.updated_at,
)


def _is_present(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def parse_user_id(user_id: Any) -> uuid.UUID:
    """
    Turn a path identifier into a UUID. Anything that is not a UUID cannot
    name a stored user, so it is reported as not found.
    """
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        raise NotFoundError()


class UserDirectory:
    """
    Create, read, update and delete users against the database.

    The session is handed in by the caller (one per request) and every
    database failure leaves this class as one of the errors in ``errors``.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _store_call(self, action: str) -> Iterator[None]:
        try:
            yield
        except UserDirectoryError:
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Database failure while %s", action)
            raise StorageError() from exc

    def _email_taken(self, email: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
        stmt = select(User.id).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return self.db.execute(stmt.limit(1)).first() is not None

    def _commit(self, email: Optional[str], exclude_id: Optional[uuid.UUID], conflict_message: str) -> None:
        """
        Commit the pending write. The unique constraint on ``email`` is the
        authoritative check, so an integrity violation is re-examined to
        tell a lost email race apart from any other constraint failure.
        """
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if email is not None and self._email_taken(email, exclude_id):
                logger.info("Email uniqueness violated on commit")
                raise ConflictError(conflict_message) from exc
            logger.exception("Integrity violation not caused by the email constraint")
            raise StorageError() from exc

    def create(self, name: Any, email: Any, secret: Any, phone: Any) -> UserRead:
        values = {"name": name, "email": email, "secret": secret, "phone": phone}
        if not all(_is_present(values[field]) for field in REQUIRED_FIELDS):
            raise ValidationError(MISSING_FIELDS_MESSAGE)

        with self._store_call("creating user"):
            if self._email_taken(email):
                raise ConflictError(EMAIL_REGISTERED_MESSAGE)

            user = User(
                name=name,
                email=email,
                secret_hash=hash_secret(secret),
                phone=phone,
            )
            self.db.add(user)
            self._commit(email, None, EMAIL_REGISTERED_MESSAGE)
            self.db.refresh(user)

        logger.info("Created user %s", user.id)
        return UserRead.model_validate(user)

    def list_users(self) -> List[UserRead]:
        with self._store_call("listing users"):
            rows = self.db.execute(select(*PUBLIC_COLUMNS)).all()
        return [UserRead.model_validate(row) for row in rows]

    def get(self, user_id: Any) -> UserRead:
        key = parse_user_id(user_id)
        with self._store_call("loading user"):
            row = self.db.execute(select(*PUBLIC_COLUMNS).where(User.id == key)).first()
        if row is None:
            raise NotFoundError()
        return UserRead.model_validate(row)

    def update(self, user_id: Any, changes: Mapping[str, Any]) -> UserUpdated:
        """
        Apply a partial update. Only the keys present in ``changes`` are
        written; every other field keeps its stored value. ``updated_at`` is
        refreshed on success.
        """
        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}.")
        for field, value in changes.items():
            if not _is_present(value):
                raise ValidationError(f"Field {field} must be a non-empty string.")

        key = parse_user_id(user_id)
        new_email = changes.get("email")

        with self._store_call("updating user"):
            user = self.db.get(User, key)
            if user is None:
                raise NotFoundError()

            if new_email is not None and new_email != user.email:
                if self._email_taken(new_email, exclude_id=key):
                    raise ConflictError(EMAIL_IN_USE_MESSAGE)

            for field, value in changes.items():
                setattr(user, field, value)
            user.updated_at = func.now()
            self._commit(new_email, key, EMAIL_IN_USE_MESSAGE)
            self.db.refresh(user)

        logger.info("Updated user %s (%s)", key, ", ".join(sorted(changes)) or "no fields")
        return UserUpdated.model_validate(user)

    def delete(self, user_id: Any) -> None:
        key = parse_user_id(user_id)
        with self._store_call("deleting user"):
            result = self.db.execute(delete(User).where(User.id == key))
            self.db.commit()
        if result.rowcount == 0:
            raise NotFoundError()
        logger.info("Deleted user %s", key)
