"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from library.models import BookDetail, BookSummary, UserSummary, UserView


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

BookName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
UserName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class CreateUserRequest(BaseModel):
    """Registration payload."""
    name: UserName = Field(..., description="Display name")
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN, description="Unique email address")

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, v):
        """Emails are compared trimmed and lower-cased."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class CreateBookRequest(BaseModel):
    """Book creation payload."""
    name: BookName = Field(..., description="Book title (2-100 characters)")


class ReturnBookRequest(BaseModel):
    """Return payload. The score is checked by the service so every bad value reports INVALID_SCORE."""
    score: Any = Field(None, description="Rating between 0 and 5")


class UserListItem(BaseModel):
    id: str = Field(..., description="User identifier")
    name: str = Field(..., description="Display name")

    @classmethod
    def from_summary(cls, summary: UserSummary) -> "UserListItem":
        return cls(id=str(summary.id), name=summary.name)


class PastBookResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Book title")
    user_score: float = Field(..., serialization_alias="userScore", description="Score given on return")


class PresentBookResponse(BaseModel):
    name: str = Field(..., description="Book title")


class UserBooksResponse(BaseModel):
    past: List[PastBookResponse] = Field(default_factory=list, description="Returned books")
    present: List[PresentBookResponse] = Field(default_factory=list, description="Books currently held")


class UserResponse(BaseModel):
    """User detail response model for API."""
    id: str = Field(..., description="User identifier")
    name: str = Field(..., description="Display name")
    books: UserBooksResponse = Field(..., description="Borrowing history")

    @classmethod
    def from_view(cls, view: UserView) -> "UserResponse":
        return cls(
            id=str(view.id),
            name=view.name,
            books=UserBooksResponse(
                past=[PastBookResponse(name=b.name, user_score=float(b.user_score)) for b in view.books.past],
                present=[PresentBookResponse(name=b.name) for b in view.books.present],
            ),
        )


class BookListItem(BaseModel):
    id: int = Field(..., description="Book identifier")
    name: str = Field(..., description="Book title")

    @classmethod
    def from_summary(cls, summary: BookSummary) -> "BookListItem":
        return cls(id=summary.id, name=summary.name)


class BookResponse(BaseModel):
    """Book detail response model for API."""
    id: int = Field(..., description="Book identifier")
    name: str = Field(..., description="Book title")
    score: Optional[str] = Field(None, description="Average score with two decimals")

    @classmethod
    def from_detail(cls, detail: BookDetail) -> "BookResponse":
        return cls(id=detail.id, name=detail.name, score=detail.score)


class ErrorDetail(BaseModel):
    field: str = Field(..., description="Offending field")
    message: str = Field(..., description="What is wrong with it")


class ErrorBody(BaseModel):
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Error message")
    details: Optional[List[ErrorDetail]] = Field(None, description="Per-field validation errors")
    detail: Optional[str] = Field(None, description="Additional error details (debug only)")


class ErrorResponse(BaseModel):
    """Error response model."""
    success: bool = Field(False, description="Always false for errors")
    error: ErrorBody


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
