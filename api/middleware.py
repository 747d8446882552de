"""
Request tracing middleware.

Every request gets an id, taken from the incoming header or generated,
which is bound into the structlog context for the duration of the request
and echoed back on the response.
"""

import time
import uuid

import structlog
from fastapi import Request

from api.config import config as api_config

logger = structlog.get_logger(__name__)


async def request_context_middleware(request: Request, call_next):
    """Bind a request id and log one line per request."""
    request_id = request.headers.get(api_config.request_id_header) or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.bind_contextvars(request_id=request_id)
    start_time = time.perf_counter()

    logger.info("Incoming request", method=request.method, path=request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        logger.error(
            "Request failed",
            method=request.method,
            path=request.url.path,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        raise
    finally:
        structlog.contextvars.unbind_contextvars("request_id")

    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    if response.status_code >= 500:
        log = logger.error
    elif response.status_code >= 400:
        log = logger.warning
    else:
        log = logger.info
    log(
        "Outgoing response",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
    )

    response.headers[api_config.request_id_header] = request_id
    return response
