"""
Pydantic models for the lending domain.
Implements the User, Book and loan record value types plus the read views
assembled by the service layer.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


MIN_SCORE = Decimal("0")
MAX_SCORE = Decimal("5")


class User(BaseModel):
    """Registered library user. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(..., description="Unique user identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Unique email address")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class Book(BaseModel):
    """Catalogue entry. Exactly one physical copy exists per book id."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Auto-assigned book identifier")
    name: str = Field(..., description="Book title")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class LoanRecord(BaseModel):
    """
    One borrow/return entry of the loan ledger.

    A record is open while ``return_date`` is None. ``user_score`` and
    ``return_date`` are always assigned together on return.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Ledger entry identifier")
    user_id: UUID = Field(..., description="Borrowing user")
    book_id: int = Field(..., description="Borrowed book")
    user_score: Optional[Decimal] = Field(None, ge=MIN_SCORE, le=MAX_SCORE, description="Score given on return")
    return_date: Optional[datetime] = Field(None, description="When the book came back")
    created_at: datetime = Field(..., description="When the book was borrowed")
    updated_at: datetime = Field(..., description="Last update timestamp")


class PastBook(BaseModel):
    """A book the user has returned."""
    name: str
    user_score: Decimal


class PresentBook(BaseModel):
    """A book the user currently holds."""
    name: str


class UserBooks(BaseModel):
    past: List[PastBook] = Field(default_factory=list)
    present: List[PresentBook] = Field(default_factory=list)


class UserView(BaseModel):
    """User detail with borrowing history."""
    id: UUID
    name: str
    books: UserBooks = Field(default_factory=UserBooks)


class UserSummary(BaseModel):
    id: UUID
    name: str


class BookSummary(BaseModel):
    id: int
    name: str


class BookDetail(BaseModel):
    """Book with its average score rendered to two decimals."""
    id: int
    name: str
    score: Optional[str] = Field(None, description="Average score, e.g. '4.50'")
