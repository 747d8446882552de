"""
Loan ledger: the borrow/return history of every book.

All methods run inside the caller's transaction. The ledger guarantees
that a book has at most one open loan: the borrow path checks for one
before inserting, and the partial unique index on open loans turns a lost
race into ``BOOK_ALREADY_BORROWED`` instead of a second open loan.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from utilities.logger import LedgerLogger

from .errors import ErrorKind, LibraryError
from .mappers import loan_from_row
from .models import LoanRecord
from .tables import BookRow, LoanRow, utc_now


SCORE_STEP = Decimal("0.1")


def quantize_score(score) -> Decimal:
    """Round a validated score to the one decimal place the ledger stores."""
    return Decimal(str(score)).quantize(SCORE_STEP, rounding=ROUND_HALF_UP)


def _is_open_loan_conflict(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "unique" in message or "uq_user_book_history_open_book" in message


class LoanLedger:
    """Persists and queries loan records."""

    def __init__(self, events: Optional[LedgerLogger] = None):
        self.events = events or LedgerLogger()

    async def open_loan(self, session: AsyncSession, book_id: int) -> Optional[LoanRecord]:
        """Return the unreturned record for a book, if any."""
        row = await session.scalar(
            select(LoanRow).where(LoanRow.book_id == book_id, LoanRow.return_date.is_(None))
        )
        return loan_from_row(row) if row is not None else None

    async def record_borrow(self, session: AsyncSession, user_id: UUID, book_id: int) -> LoanRecord:
        """
        Open a loan of ``book_id`` for ``user_id``.

        Raises:
            LibraryError: BOOK_NOT_FOUND if the book does not exist,
                BOOK_ALREADY_BORROWED if it has an open loan
        """
        # Row lock serializes borrowers of the same book where the backend supports it
        found = await session.scalar(select(BookRow.id).where(BookRow.id == book_id).with_for_update())
        if found is None:
            self.events.log_borrow_rejected(user_id, book_id, ErrorKind.BOOK_NOT_FOUND.value)
            raise LibraryError.book_not_found(book_id)

        if await self.open_loan(session, book_id) is not None:
            self.events.log_borrow_rejected(user_id, book_id, ErrorKind.BOOK_ALREADY_BORROWED.value)
            raise LibraryError.book_already_borrowed(book_id)

        row = LoanRow(user_id=user_id, book_id=book_id, user_score=None, return_date=None)
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as e:
            if not _is_open_loan_conflict(e):
                raise
            self.events.log_borrow_rejected(user_id, book_id, "open_loan_conflict")
            raise LibraryError.book_already_borrowed(book_id) from None

        self.events.log_borrow(user_id, book_id)
        return loan_from_row(row)

    async def record_return(self, session: AsyncSession, user_id: UUID, book_id: int, score) -> None:
        """
        Close the open loan of ``book_id`` held by ``user_id``.

        The score must already be validated to lie in [0, 5].

        Raises:
            LibraryError: BOOK_NOT_BORROWED if this user holds no open loan
                for the book
        """
        user_score = quantize_score(score)
        now = utc_now()
        result = await session.execute(
            update(LoanRow)
            .where(
                LoanRow.user_id == user_id,
                LoanRow.book_id == book_id,
                LoanRow.return_date.is_(None),
            )
            .values(return_date=now, user_score=user_score, updated_at=now)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            self.events.log_return_rejected(user_id, book_id, ErrorKind.BOOK_NOT_BORROWED.value)
            raise LibraryError.book_not_borrowed()

        self.events.log_return(user_id, book_id, user_score)

    async def average_score(self, session: AsyncSession, book_id: int) -> Optional[Decimal]:
        """Mean of all recorded scores for a book, or None if it has none."""
        average = await session.scalar(
            select(func.avg(LoanRow.user_score)).where(LoanRow.book_id == book_id)
        )
        if average is None:
            return None
        return Decimal(str(average))

    async def loans_for_book(self, session: AsyncSession, book_id: int) -> List[LoanRecord]:
        """All ledger entries of a book, oldest first."""
        rows = await session.scalars(
            select(LoanRow).where(LoanRow.book_id == book_id).order_by(LoanRow.id)
        )
        return [loan_from_row(row) for row in rows]

    async def history_for_user(
        self, session: AsyncSession, user_id: UUID
    ) -> List[Tuple[LoanRecord, str]]:
        """All ledger entries of a user paired with the book name, oldest first."""
        result = await session.execute(
            select(LoanRow, BookRow.name)
            .join(BookRow, BookRow.id == LoanRow.book_id)
            .where(LoanRow.user_id == user_id)
            .order_by(LoanRow.id)
        )
        return [(loan_from_row(row), name) for row, name in result.all()]
