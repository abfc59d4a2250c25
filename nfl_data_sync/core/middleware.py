"""
Request middleware: correlation IDs and access logging.

Every request gets an ``X-Correlation-ID`` (taken from the caller when it
looks sane, generated otherwise). The id is placed in the logging context so
request logs and anything they trigger can be grouped, and it is echoed in
the response headers.
"""
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from nfl_data_sync.core.logging import clear_correlation_id, get_logger, set_correlation_id

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
_VALID_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _correlation_id_from(request: Request) -> str:
    incoming = request.headers.get(CORRELATION_HEADER, "")
    if _VALID_CORRELATION_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation ID and log its outcome.

    Access in endpoints:
        correlation_id = request.state.correlation_id
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:
        correlation_id = _correlation_id_from(request)
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
            return response
        finally:
            clear_correlation_id(token)
