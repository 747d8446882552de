"""
Pytest configuration and shared fixtures.
"""

import pytest
import pytest_asyncio
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from library.database import DatabaseManager
from library.ledger import LoanLedger
from library.repositories import BookStore, UserStore
from library.service import LibraryService


@pytest.fixture
def database_url(tmp_path):
    """SQLite file URL unique to each test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'library.db'}"


@pytest_asyncio.fixture
async def database(database_url):
    """Connected database manager with an empty schema."""
    manager = DatabaseManager(database_url)
    await manager.connect()
    yield manager
    await manager.disconnect()


@pytest.fixture
def ledger():
    return LoanLedger()


@pytest.fixture
def user_store(ledger):
    return UserStore(ledger)


@pytest.fixture
def book_store(ledger):
    return BookStore(ledger)


@pytest.fixture
def service(database, user_store, book_store):
    """Library service over the test database."""
    return LibraryService(database, user_store, book_store)


@pytest_asyncio.fixture
async def alice(service):
    return await service.create_user("Alice", "alice@example.com")


@pytest_asyncio.fixture
async def bob(service):
    return await service.create_user("Bob", "bob@example.com")


@pytest_asyncio.fixture
async def robot_book(service):
    return await service.create_book("I, Robot")


@pytest_asyncio.fixture
async def dune_book(service):
    return await service.create_book("Dune")


@pytest.fixture
def sample_loan_data():
    """Field values for a returned loan record."""
    now = datetime.now(timezone.utc)
    return {
        "id": 1,
        "user_id": uuid4(),
        "book_id": 4,
        "user_score": Decimal("4.5"),
        "return_date": now,
        "created_at": now,
        "updated_at": now,
    }
