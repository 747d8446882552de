"""
Library service: orchestrates user and book checks around ledger
mutations.

Per (user, book) pair the lifecycle is

    NoLoan --borrow--> Borrowed --return(score)--> Returned --borrow--> Borrowed

where every borrow opens a new ledger record and a returned record is
never touched again. Each public method is one unit of work.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Union
from uuid import UUID

import structlog

from .database import DatabaseManager
from .errors import LibraryError
from .ledger import LoanLedger
from .mappers import new_user
from .models import (
    MAX_SCORE, MIN_SCORE, Book, BookDetail, BookSummary, PastBook, PresentBook,
    User, UserBooks, UserSummary, UserView
)
from .repositories import BookStore, UserStore

logger = structlog.get_logger(__name__)

SCORE_DISPLAY_STEP = Decimal("0.01")

# Largest value an INTEGER primary key can hold
MAX_BOOK_ID = 2 ** 63 - 1


def validate_score(score) -> Decimal:
    """
    Check that a score is a finite number in [0, 5].

    Only real numbers qualify; booleans and numeric strings do not.

    Raises:
        LibraryError: INVALID_SCORE otherwise
    """
    if isinstance(score, bool) or not isinstance(score, (int, float, Decimal)):
        raise LibraryError.invalid_score()
    try:
        value = Decimal(str(score))
    except (InvalidOperation, ValueError, TypeError):
        raise LibraryError.invalid_score() from None

    if not value.is_finite() or value < MIN_SCORE or value > MAX_SCORE:
        raise LibraryError.invalid_score()
    return value


def format_score(average: Decimal) -> str:
    """Render an average score with two decimals, e.g. ``4.50``."""
    return str(average.quantize(SCORE_DISPLAY_STEP, rounding=ROUND_HALF_UP))


def _is_storable_book_id(book_id: int) -> bool:
    return 0 < book_id <= MAX_BOOK_ID


def _parse_user_id(user_id: Union[UUID, str]) -> UUID:
    if isinstance(user_id, UUID):
        return user_id
    try:
        return UUID(str(user_id))
    except ValueError:
        raise LibraryError.user_not_found(user_id) from None


class LibraryService:
    """Entry point for every lending operation."""

    def __init__(self, database: DatabaseManager, users: UserStore, books: BookStore):
        self.database = database
        self.users = users
        self.books = books

    # Users

    async def create_user(self, name: str, email: str) -> User:
        async with self.database.transaction() as session:
            if await self.users.find_by_email(session, email) is not None:
                logger.info("Registration rejected, email in use", email=email)
                raise LibraryError.user_already_exists(email)

            user = await self.users.create(session, new_user(name, email))

        logger.info("User registered", user_id=str(user.id))
        return user

    async def get_user_by_id(self, user_id: Union[UUID, str]) -> UserView:
        """
        Get a user with the books they returned (past) and still hold
        (present).
        """
        uid = _parse_user_id(user_id)
        async with self.database.transaction() as session:
            user = await self.users.find_by_id(session, uid)
            if user is None:
                raise LibraryError.user_not_found(user_id)
            history = await self.users.loan_history(session, uid)

        books = UserBooks()
        for loan, book_name in history:
            if loan.return_date is None:
                books.present.append(PresentBook(name=book_name))
            else:
                books.past.append(PastBook(name=book_name, user_score=loan.user_score))

        return UserView(id=user.id, name=user.name, books=books)

    async def get_users(self) -> List[UserSummary]:
        async with self.database.transaction() as session:
            users = await self.users.find_all(session)
        return [UserSummary(id=user.id, name=user.name) for user in users]

    async def borrow_book(self, user_id: Union[UUID, str], book_id: int) -> None:
        uid = _parse_user_id(user_id)
        async with self.database.transaction() as session:
            if await self.users.find_by_id(session, uid) is None:
                raise LibraryError.user_not_found(user_id)
            if not _is_storable_book_id(book_id):
                raise LibraryError.book_not_found(book_id)
            await self.users.borrow_book(session, uid, book_id)

    async def return_book(self, user_id: Union[UUID, str], book_id: int, score) -> None:
        value = validate_score(score)
        uid = _parse_user_id(user_id)
        async with self.database.transaction() as session:
            if await self.users.find_by_id(session, uid) is None:
                raise LibraryError.user_not_found(user_id)
            if not _is_storable_book_id(book_id):
                raise LibraryError.book_not_borrowed()
            await self.users.return_book(session, uid, book_id, value)

    # Books

    async def create_book(self, name: str) -> Book:
        async with self.database.transaction() as session:
            book = await self.books.create(session, name)
        logger.info("Book created", book_id=book.id)
        return book

    async def get_books(self) -> List[BookSummary]:
        async with self.database.transaction() as session:
            books = await self.books.find_all(session)
        return [BookSummary(id=book.id, name=book.name) for book in books]

    async def get_book_by_id(self, book_id: int) -> BookDetail:
        if not _is_storable_book_id(book_id):
            raise LibraryError.book_not_found(book_id)
        async with self.database.transaction() as session:
            book = await self.books.find_by_id(session, book_id)
            if book is None:
                raise LibraryError.book_not_found(book_id)
            average = await self.books.get_average_score(session, book_id)

        return BookDetail(
            id=book.id,
            name=book.name,
            score=format_score(average) if average is not None else None,
        )


def build_library_service(database: DatabaseManager) -> LibraryService:
    """Wire the ledger, stores and service over one database."""
    ledger = LoanLedger()
    return LibraryService(database, UserStore(ledger), BookStore(ledger))
