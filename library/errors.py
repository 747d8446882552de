"""
Domain errors for the lending service.

Every failure the core raises is a ``LibraryError`` tagged with one
``ErrorKind``. The API boundary maps kinds to status codes in one table.
"""

from enum import Enum
from typing import Union
from uuid import UUID


class ErrorKind(str, Enum):
    """Stable machine-readable error codes."""
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"
    BOOK_NOT_FOUND = "BOOK_NOT_FOUND"
    BOOK_ALREADY_BORROWED = "BOOK_ALREADY_BORROWED"
    BOOK_NOT_BORROWED = "BOOK_NOT_BORROWED"
    INVALID_SCORE = "INVALID_SCORE"


class LibraryError(Exception):
    """Domain error carrying a kind and a human-readable message."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def code(self) -> str:
        return self.kind.value

    def __repr__(self) -> str:
        return f"LibraryError({self.kind.value}, {self.message!r})"

    @classmethod
    def user_not_found(cls, user_id: Union[UUID, str]) -> "LibraryError":
        return cls(ErrorKind.USER_NOT_FOUND, f"User with id {user_id} not found")

    @classmethod
    def user_already_exists(cls, email: str) -> "LibraryError":
        return cls(ErrorKind.USER_ALREADY_EXISTS, f"User with email {email} already exists")

    @classmethod
    def book_not_found(cls, book_id: Union[int, str]) -> "LibraryError":
        return cls(ErrorKind.BOOK_NOT_FOUND, f"Book not found with id: {book_id}")

    @classmethod
    def book_already_borrowed(cls, book_id: Union[int, str]) -> "LibraryError":
        return cls(ErrorKind.BOOK_ALREADY_BORROWED, f"Book with id {book_id} is already borrowed")

    @classmethod
    def book_not_borrowed(cls) -> "LibraryError":
        return cls(ErrorKind.BOOK_NOT_BORROWED, "Book is not borrowed by this user")

    @classmethod
    def invalid_score(cls) -> "LibraryError":
        return cls(ErrorKind.INVALID_SCORE, "Score must be between 0 and 5")
