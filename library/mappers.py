"""
Mapping functions between storage rows and domain records.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from library.models import Book, LoanRecord, User
from library.tables import BookRow, LoanRow, UserRow, utc_now


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands timestamps back naive; they are always stored in UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def user_from_row(row: UserRow) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def user_to_row(user: User) -> UserRow:
    return UserRow(
        id=user.id,
        name=user.name,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def new_user(name: str, email: str, now: Optional[datetime] = None) -> User:
    """Build a fresh User with a generated id and matching timestamps."""
    now = now or utc_now()
    return User(id=uuid4(), name=name, email=email, created_at=now, updated_at=now)


def book_from_row(row: BookRow) -> Book:
    return Book(
        id=row.id,
        name=row.name,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def loan_from_row(row: LoanRow) -> LoanRecord:
    return LoanRecord(
        id=row.id,
        user_id=row.user_id,
        book_id=row.book_id,
        user_score=row.user_score,
        return_date=as_utc(row.return_date),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
