"""
Unit tests for the library service.
Tests the borrow/return lifecycle, precondition ordering and views.
"""

import asyncio
import math
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from library.errors import ErrorKind, LibraryError
from library.models import BookDetail
from library.service import format_score, validate_score


class TestValidateScore:
    """Test cases for score validation."""

    @pytest.mark.parametrize("score", [0, 5, 2.5, Decimal("4.9")])
    def test_valid_scores(self, score):
        """Test that finite scores in range are accepted."""
        assert validate_score(score) == Decimal(str(score))

    @pytest.mark.parametrize("score", [-0.1, 5.01, math.inf, -math.inf, math.nan, "abc", "3", None, True, False])
    def test_invalid_scores(self, score):
        """Test that out-of-range, non-finite and non-numeric scores are rejected."""
        with pytest.raises(LibraryError) as exc_info:
            validate_score(score)
        assert exc_info.value.kind is ErrorKind.INVALID_SCORE

    @pytest.mark.parametrize("average, rendered", [
        (Decimal("4.5"), "4.50"),
        (Decimal("4.333333"), "4.33"),
        (Decimal("2.665"), "2.67"),
        (Decimal("0"), "0.00"),
    ])
    def test_format_score(self, average, rendered):
        """Test two-decimal rendering."""
        assert format_score(average) == rendered


class TestUsers:
    """Test cases for user operations."""

    @pytest.mark.asyncio
    async def test_create_user(self, service):
        """Test registering a user."""
        user = await service.create_user("Alice", "alice@example.com")

        assert user.name == "Alice"
        assert user.email == "alice@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_email_performs_no_write(self, service, alice):
        """Test that a taken email is rejected before any insert."""
        with patch.object(service.users, "create", AsyncMock()) as create:
            with pytest.raises(LibraryError) as exc_info:
                await service.create_user("Alice Again", "alice@example.com")

        assert exc_info.value.kind is ErrorKind.USER_ALREADY_EXISTS
        create.assert_not_awaited()
        assert len(await service.get_users()) == 1

    @pytest.mark.asyncio
    async def test_get_users(self, service, alice, bob):
        """Test listing users as id/name pairs."""
        users = await service.get_users()

        assert {(u.id, u.name) for u in users} == {(alice.id, "Alice"), (bob.id, "Bob")}

    @pytest.mark.asyncio
    async def test_get_user_without_history(self, service, alice):
        """Test that a new user has empty past and present lists."""
        view = await service.get_user_by_id(str(alice.id))

        assert view.id == alice.id
        assert view.name == "Alice"
        assert view.books.past == []
        assert view.books.present == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", ["not-a-uuid", str(uuid4())])
    async def test_get_unknown_user(self, service, user_id):
        """Test that unknown and malformed ids are not found."""
        with pytest.raises(LibraryError) as exc_info:
            await service.get_user_by_id(user_id)
        assert exc_info.value.kind is ErrorKind.USER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_get_user_with_history(self, service, alice, robot_book, dune_book):
        """Test that returned and held books are listed."""
        await service.borrow_book(alice.id, robot_book.id)
        await service.return_book(alice.id, robot_book.id, 4)
        await service.borrow_book(alice.id, dune_book.id)

        view = await service.get_user_by_id(alice.id)

        assert [(b.name, b.user_score) for b in view.books.past] == [("I, Robot", Decimal("4.0"))]
        assert [b.name for b in view.books.present] == ["Dune"]


class TestBorrow:
    """Test cases for borrowing."""

    @pytest.mark.asyncio
    async def test_borrow(self, service, ledger, database, alice, robot_book):
        """Test that a borrow opens a loan for the user."""
        await service.borrow_book(str(alice.id), robot_book.id)

        async with database.transaction() as session:
            loan = await ledger.open_loan(session, robot_book.id)
        assert loan.user_id == alice.id

    @pytest.mark.asyncio
    async def test_borrow_unknown_user_checked_first(self, service):
        """Test that the user check precedes the book check."""
        with pytest.raises(LibraryError) as exc_info:
            await service.borrow_book(uuid4(), 999)
        assert exc_info.value.kind is ErrorKind.USER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_borrow_unknown_book(self, service, alice):
        """Test that a missing book is reported."""
        with pytest.raises(LibraryError) as exc_info:
            await service.borrow_book(alice.id, 999)
        assert exc_info.value.kind is ErrorKind.BOOK_NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize("book_id", [0, -1, 2 ** 63, 2 ** 70])
    async def test_unstorable_book_ids(self, service, alice, book_id):
        """Test that ids outside the key range are treated as missing books."""
        with pytest.raises(LibraryError) as exc_info:
            await service.borrow_book(alice.id, book_id)
        assert exc_info.value.kind is ErrorKind.BOOK_NOT_FOUND

        with pytest.raises(LibraryError) as exc_info:
            await service.get_book_by_id(book_id)
        assert exc_info.value.kind is ErrorKind.BOOK_NOT_FOUND

        with pytest.raises(LibraryError) as exc_info:
            await service.return_book(alice.id, book_id, 3)
        assert exc_info.value.kind is ErrorKind.BOOK_NOT_BORROWED

    @pytest.mark.asyncio
    async def test_borrow_held_book(self, service, ledger, database, alice, bob, robot_book):
        """Test that a held book cannot be borrowed and the ledger is unchanged."""
        await service.borrow_book(alice.id, robot_book.id)

        with pytest.raises(LibraryError) as exc_info:
            await service.borrow_book(bob.id, robot_book.id)

        assert exc_info.value.kind is ErrorKind.BOOK_ALREADY_BORROWED
        async with database.transaction() as session:
            loans = await ledger.loans_for_book(session, robot_book.id)
        assert len(loans) == 1
        assert loans[0].user_id == alice.id

    @pytest.mark.asyncio
    async def test_concurrent_borrows_open_one_loan(self, service, ledger, database, alice, bob, robot_book):
        """Test that simultaneous borrows of one book leave a single open loan."""
        results = await asyncio.gather(
            service.borrow_book(alice.id, robot_book.id),
            service.borrow_book(bob.id, robot_book.id),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], LibraryError)
        assert failures[0].kind is ErrorKind.BOOK_ALREADY_BORROWED

        async with database.transaction() as session:
            loans = await ledger.loans_for_book(session, robot_book.id)
        assert len([loan for loan in loans if loan.return_date is None]) == 1


class TestReturn:
    """Test cases for returning."""

    @pytest.mark.asyncio
    async def test_return(self, service, alice, robot_book):
        """Test the borrow -> return cycle."""
        await service.borrow_book(alice.id, robot_book.id)
        await service.return_book(alice.id, robot_book.id, 5)

        detail = await service.get_book_by_id(robot_book.id)
        assert detail.score == "5.00"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [-1, 6, math.nan, math.inf])
    async def test_invalid_score_rejected_before_ledger(self, service, alice, robot_book, score):
        """Test that a bad score never reaches the ledger."""
        await service.borrow_book(alice.id, robot_book.id)

        with patch.object(service.users, "return_book", AsyncMock()) as return_book:
            with pytest.raises(LibraryError) as exc_info:
                await service.return_book(alice.id, robot_book.id, score)

        assert exc_info.value.kind is ErrorKind.INVALID_SCORE
        return_book.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_return_unknown_user(self, service, robot_book):
        """Test that an unknown user cannot return."""
        with pytest.raises(LibraryError) as exc_info:
            await service.return_book(uuid4(), robot_book.id, 3)
        assert exc_info.value.kind is ErrorKind.USER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_return_not_borrowed(self, service, alice, bob, robot_book):
        """Test that only the holder of an open loan can return."""
        with pytest.raises(LibraryError) as exc_info:
            await service.return_book(alice.id, robot_book.id, 3)
        assert exc_info.value.kind is ErrorKind.BOOK_NOT_BORROWED

        await service.borrow_book(alice.id, robot_book.id)
        with pytest.raises(LibraryError) as exc_info:
            await service.return_book(bob.id, robot_book.id, 3)
        assert exc_info.value.kind is ErrorKind.BOOK_NOT_BORROWED

    @pytest.mark.asyncio
    async def test_reborrow_after_return(self, service, ledger, database, alice, robot_book):
        """Test borrow -> return -> borrow on the same book."""
        await service.borrow_book(alice.id, robot_book.id)
        await service.return_book(alice.id, robot_book.id, 3)
        await service.borrow_book(alice.id, robot_book.id)

        async with database.transaction() as session:
            loans = await ledger.loans_for_book(session, robot_book.id)

        assert len(loans) == 2
        assert loans[0].user_score == Decimal("3.0")
        assert loans[0].return_date is not None
        assert loans[1].return_date is None


class TestBooks:
    """Test cases for book operations."""

    @pytest.mark.asyncio
    async def test_new_book_has_null_score(self, service):
        """Test that a book with no loans has no score."""
        book = await service.create_book("I, Robot")

        detail = await service.get_book_by_id(book.id)

        assert detail == BookDetail(id=book.id, name="I, Robot", score=None)

    @pytest.mark.asyncio
    async def test_get_books(self, service, robot_book, dune_book):
        """Test listing books."""
        books = await service.get_books()

        assert [(b.id, b.name) for b in books] == [(robot_book.id, "I, Robot"), (dune_book.id, "Dune")]

    @pytest.mark.asyncio
    async def test_get_unknown_book(self, service):
        """Test that a missing book is reported."""
        with pytest.raises(LibraryError) as exc_info:
            await service.get_book_by_id(42)
        assert exc_info.value.kind is ErrorKind.BOOK_NOT_FOUND

    @pytest.mark.asyncio
    async def test_average_score(self, service, alice, bob, robot_book):
        """Test that scores [5, 4] render as 4.50."""
        await service.borrow_book(alice.id, robot_book.id)
        await service.return_book(alice.id, robot_book.id, 5)
        await service.borrow_book(bob.id, robot_book.id)
        await service.return_book(bob.id, robot_book.id, 4)

        detail = await service.get_book_by_id(robot_book.id)

        assert detail.score == "4.50"

    @pytest.mark.asyncio
    async def test_zero_average_is_rendered(self, service, alice, robot_book):
        """Test that an average of zero is a score, not a missing one."""
        await service.borrow_book(alice.id, robot_book.id)
        await service.return_book(alice.id, robot_book.id, 0)

        detail = await service.get_book_by_id(robot_book.id)

        assert detail.score == "0.00"
