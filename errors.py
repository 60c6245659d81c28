from typing import Optional


class UserDirectoryError(Exception):
    """Base class for failures the user directory reports to its callers."""

    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(UserDirectoryError):
    """Required input missing or malformed."""

    default_message = "Invalid input."


class ConflictError(UserDirectoryError):
    """The email already belongs to another user."""

    default_message = "Email is already in use."


class NotFoundError(UserDirectoryError):
    default_message = "User not found"


class StorageError(UserDirectoryError):
    """
    Unexpected failure from the database. The message is deliberately
    generic; the underlying error is logged where it is classified.
    """

    default_message = "Server error"
