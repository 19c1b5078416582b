from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("taskapi.access")

REQUEST_ID_HEADER = "X-Request-ID"
# Longer client-supplied ids are replaced rather than echoed into every log line
MAX_REQUEST_ID_LENGTH = 128


def _request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if supplied and len(supplied) <= MAX_REQUEST_ID_LENGTH:
        return supplied
    return uuid.uuid4().hex


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


# PUBLIC_INTERFACE
class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    One structured record per request phase (request.start, request.end,
    request.error), all carrying the same request id. The id is taken from
    the X-Request-ID header when the client sends one and echoed back on the
    response. Server errors (5xx) are logged at WARNING.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id
        start = time.perf_counter()
        fields: Dict[str, Any] = {
            "category": "http",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }

        logger.info(
            "request.start",
            extra={
                **fields,
                "event": "request.start",
                "query": request.url.query or None,
                "client": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request.error",
                extra={**fields, "event": "request.error", "duration_ms": _elapsed_ms(start)},
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "request.end",
            extra={
                **fields,
                "event": "request.end",
                "status_code": response.status_code,
                "duration_ms": _elapsed_ms(start),
            },
        )
        return response
