"""
FastAPI main application for the Library Management API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import config as api_config
from api.middleware import request_context_middleware
from api.models import (
    BookListItem, BookResponse, CreateBookRequest, CreateUserRequest,
    ErrorBody, ErrorDetail, ErrorResponse, HealthResponse, ReturnBookRequest,
    UserListItem, UserResponse
)
from library.database import DatabaseManager
from library.errors import ErrorKind, LibraryError
from library.service import LibraryService, build_library_service
from utilities.config import config

# Setup logging
logger = structlog.get_logger(__name__)

# Must cover every ErrorKind
STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.USER_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.BOOK_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.BOOK_ALREADY_BORROWED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.BOOK_NOT_BORROWED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_SCORE: status.HTTP_400_BAD_REQUEST,
}

router = APIRouter()


def get_library_service(request: Request) -> LibraryService:
    """Resolve the service built at startup."""
    return request.app.state.library_service


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[List[ErrorDetail]] = None,
    detail: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(code=code, message=message, details=details, detail=detail))
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def _field_name(loc: Sequence) -> str:
    parts = [str(part) for part in loc[1:]] if len(loc) > 1 else [str(part) for part in loc]
    return ".".join(parts)


# Users endpoints
@router.post("/users", status_code=status.HTTP_201_CREATED, tags=["Users"])
async def create_user(
    payload: CreateUserRequest,
    service: LibraryService = Depends(get_library_service)
):
    """Register a user. Fails with 409 when the email is taken."""
    await service.create_user(payload.name, payload.email)
    return Response(status_code=status.HTTP_201_CREATED)


@router.get("/users", response_model=List[UserListItem], tags=["Users"])
async def get_users(service: LibraryService = Depends(get_library_service)):
    """List all users."""
    users = await service.get_users()
    return [UserListItem.from_summary(user) for user in users]


@router.get("/users/{user_id}", response_model=UserResponse, tags=["Users"])
async def get_user(
    user_id: str,
    service: LibraryService = Depends(get_library_service)
):
    """
    Get a single user with borrowing history.

    - **books.past**: returned books and the score given
    - **books.present**: books currently held
    """
    view = await service.get_user_by_id(user_id)
    return UserResponse.from_view(view)


@router.post("/users/{user_id}/borrow/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Users"])
async def borrow_book(
    user_id: str,
    book_id: int,
    service: LibraryService = Depends(get_library_service)
):
    """Borrow a book. Fails with 400 when someone already holds it."""
    await service.borrow_book(user_id, book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/users/{user_id}/return/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Users"])
async def return_book(
    user_id: str,
    book_id: int,
    payload: ReturnBookRequest,
    service: LibraryService = Depends(get_library_service)
):
    """
    Return a borrowed book with a score.

    - **score**: number between 0 and 5
    """
    await service.return_book(user_id, book_id, payload.score)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Books endpoints
@router.get("/books", response_model=List[BookListItem], tags=["Books"])
async def get_books(service: LibraryService = Depends(get_library_service)):
    """List all books."""
    books = await service.get_books()
    return [BookListItem.from_summary(book) for book in books]


@router.get("/books/{book_id}", response_model=BookResponse, tags=["Books"])
async def get_book(
    book_id: int,
    service: LibraryService = Depends(get_library_service)
):
    """Get a single book with its average score, or null when unrated."""
    detail = await service.get_book_by_id(book_id)
    return BookResponse.from_detail(detail)


@router.post("/books", status_code=status.HTTP_201_CREATED, tags=["Books"])
async def create_book(
    payload: CreateBookRequest,
    service: LibraryService = Depends(get_library_service)
):
    """Create a book. The name is trimmed and must be 2-100 characters."""
    await service.create_book(payload.name)
    return Response(status_code=status.HTTP_201_CREATED)


# Health check endpoint
@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint."""
    database: Optional[DatabaseManager] = getattr(request.app.state, "database", None)
    db_status = "unknown"
    if database:
        health_info = await database.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        database_status=db_status
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain, validation and unexpected errors to the error body."""

    @app.exception_handler(LibraryError)
    async def library_exception_handler(request: Request, exc: LibraryError):
        status_code = STATUS_BY_KIND[exc.kind]
        logger.warning(
            "Request rejected",
            code=exc.code,
            message=exc.message,
            path=request.url.path,
            status_code=status_code,
        )
        return error_response(status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if any(error.get("type") == "json_invalid" for error in errors):
            return error_response(status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST", "Invalid JSON payload")

        details = [ErrorDetail(field=_field_name(error["loc"]), message=error["msg"]) for error in errors]
        logger.warning(
            "Validation failed",
            path=request.url.path,
            errors=[d.model_dump() for d in details],
        )
        return error_response(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Validation failed", details=details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return error_response(
            exc.status_code,
            f"HTTP_{exc.status_code}",
            str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions without leaking internals."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=exc)
        # Responses built here bypass the request middleware
        request_id = getattr(request.state, "request_id", None)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "Internal server error",
            detail=str(exc) if api_config.debug else None,
            headers={api_config.request_id_header: request_id} if request_id else None,
        )


def create_app(database_url: Optional[str] = None, echo: Optional[bool] = None) -> FastAPI:
    """
    Build the application.

    The database manager and library service are constructed once in the
    lifespan and stored on ``app.state``.

    Args:
        database_url: Overrides the configured database URL
        echo: Overrides the configured SQL echo flag
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        logger.info("Starting Library API")

        database = DatabaseManager(
            database_url or config.database_url,
            echo=config.database_echo if echo is None else echo,
        )
        try:
            await database.connect()
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

        app.state.database = database
        app.state.library_service = build_library_service(database)

        yield

        # Shutdown
        logger.info("Shutting down Library API")
        await database.disconnect()

    app = FastAPI(
        title=api_config.api_title,
        description=api_config.api_description,
        version=api_config.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.cors_origins,
        allow_credentials=api_config.cors_allow_credentials,
        allow_methods=api_config.cors_allow_methods,
        allow_headers=api_config.cors_allow_headers,
    )
    app.middleware("http")(request_context_middleware)

    register_exception_handlers(app)
    app.include_router(router)
    return app


# Create FastAPI application
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
