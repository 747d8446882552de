"""
SQLAlchemy table definitions for users, books and the loan ledger.

Rows are storage-only; ``library.mappers`` turns them into domain records.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import (
    CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Uuid, text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


OPEN_LOAN_PREDICATE = "return_date IS NULL"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class UserRow(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<UserRow(id={self.id}, email={self.email})>"


class BookRow(TimestampMixin, Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<BookRow(id={self.id}, name={self.name!r})>"


class LoanRow(TimestampMixin, Base):
    """
    Loan ledger entry.

    The partial unique index allows at most one open entry per book; the
    check constraints keep score and return date in lockstep and in range.
    """

    __tablename__ = "user_book_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    book_id: Mapped[int] = mapped_column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    user_score: Mapped[Optional[Decimal]] = mapped_column(Numeric(2, 1), nullable=True, default=None)
    return_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    __table_args__ = (
        Index(
            "uq_user_book_history_open_book",
            "book_id",
            unique=True,
            sqlite_where=text(OPEN_LOAN_PREDICATE),
            postgresql_where=text(OPEN_LOAN_PREDICATE),
        ),
        CheckConstraint(
            "user_score IS NULL OR (user_score >= 0 AND user_score <= 5)",
            name="ck_user_book_history_score_range",
        ),
        CheckConstraint(
            "(user_score IS NULL AND return_date IS NULL) OR "
            "(user_score IS NOT NULL AND return_date IS NOT NULL)",
            name="ck_user_book_history_score_on_return",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<LoanRow(id={self.id}, user_id={self.user_id}, book_id={self.book_id}, "
            f"return_date={self.return_date})>"
        )
