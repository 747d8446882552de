"""
Book and user stores.

Stores own their tables and take the caller's session, so a service
operation composes several store calls into one transaction. Loan
operations go through the ``LoanLedger``.
"""

from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import LibraryError
from .ledger import LoanLedger
from .mappers import book_from_row, user_from_row, user_to_row
from .models import Book, LoanRecord, User
from .tables import BookRow, UserRow

logger = structlog.get_logger(__name__)


class BookStore:
    """CRUD and aggregate scoring over books."""

    def __init__(self, ledger: LoanLedger):
        self.ledger = ledger

    async def create(self, session: AsyncSession, name: str) -> Book:
        row = BookRow(name=name)
        session.add(row)
        await session.flush()
        logger.debug("Book created", book_id=row.id, name=name)
        return book_from_row(row)

    async def find_all(self, session: AsyncSession) -> List[Book]:
        rows = await session.scalars(select(BookRow).order_by(BookRow.id))
        return [book_from_row(row) for row in rows]

    async def find_by_id(self, session: AsyncSession, book_id: int) -> Optional[Book]:
        row = await session.get(BookRow, book_id)
        return book_from_row(row) if row is not None else None

    async def get_average_score(self, session: AsyncSession, book_id: int) -> Optional[Decimal]:
        return await self.ledger.average_score(session, book_id)


class UserStore:
    """
    CRUD over users.

    Borrow and return live here because the user is the actor of a loan;
    both delegate straight to the ledger.
    """

    def __init__(self, ledger: LoanLedger):
        self.ledger = ledger

    async def create(self, session: AsyncSession, user: User) -> User:
        """
        Insert a user.

        The service checks for a duplicate email first; the unique index is
        the backstop for concurrent registrations.
        """
        row = user_to_row(user)
        session.add(row)
        try:
            await session.flush()
        except IntegrityError:
            logger.warning("Duplicate email rejected by storage", email=user.email)
            raise LibraryError.user_already_exists(user.email) from None

        logger.debug("User created", user_id=str(user.id))
        return user_from_row(row)

    async def find_by_email(self, session: AsyncSession, email: str) -> Optional[User]:
        row = await session.scalar(select(UserRow).where(UserRow.email == email))
        return user_from_row(row) if row is not None else None

    async def find_by_id(self, session: AsyncSession, user_id: UUID) -> Optional[User]:
        row = await session.get(UserRow, user_id)
        return user_from_row(row) if row is not None else None

    async def find_all(self, session: AsyncSession) -> List[User]:
        rows = await session.scalars(select(UserRow).order_by(UserRow.created_at, UserRow.id))
        return [user_from_row(row) for row in rows]

    async def borrow_book(self, session: AsyncSession, user_id: UUID, book_id: int) -> LoanRecord:
        return await self.ledger.record_borrow(session, user_id, book_id)

    async def return_book(self, session: AsyncSession, user_id: UUID, book_id: int, score) -> None:
        await self.ledger.record_return(session, user_id, book_id, score)

    async def loan_history(self, session: AsyncSession, user_id: UUID) -> List[Tuple[LoanRecord, str]]:
        return await self.ledger.history_for_user(session, user_id)
