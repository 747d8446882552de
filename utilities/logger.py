"""
Comprehensive logging system using structlog.
Provides structured logging with different output formats and levels.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union
from uuid import UUID
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Enable debug mode for more verbose logging
    """

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Configure structlog processors; merge_contextvars picks up the request id
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            )
        )

    # Add format-specific processors
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Set up file logging if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))

        # Add handler to root logger
        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class LedgerLogger:
    """
    Specialized logger for loan lifecycle events.
    """

    def __init__(self, name: str = "library.ledger"):
        self.logger = structlog.get_logger(name)

    def log_borrow(self, user_id: UUID, book_id: int) -> None:
        """Log a newly opened loan."""
        self.logger.info(
            "Loan opened",
            user_id=str(user_id),
            book_id=book_id
        )

    def log_borrow_rejected(self, user_id: UUID, book_id: int, reason: str) -> None:
        """Log a borrow attempt that did not open a loan."""
        self.logger.warning(
            "Borrow rejected",
            user_id=str(user_id),
            book_id=book_id,
            reason=reason
        )

    def log_return(self, user_id: UUID, book_id: int, score) -> None:
        """Log a closed loan."""
        self.logger.info(
            "Loan closed",
            user_id=str(user_id),
            book_id=book_id,
            score=str(score)
        )

    def log_return_rejected(self, user_id: UUID, book_id: int, reason: str) -> None:
        """Log a return attempt that did not close a loan."""
        self.logger.warning(
            "Return rejected",
            user_id=str(user_id),
            book_id=book_id,
            reason=reason
        )
