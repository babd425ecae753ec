"""Request logging middleware."""

import logging
import time
from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its duration and tags the response with an ID.

    An incoming ``X-Request-ID`` header is reused so that IDs can be traced
    across services.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"[{request_id}] {request.method} {request.url.path} failed "
                f"after {self._elapsed_ms(start_time)}ms: {e}"
            )
            raise

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"[{request_id}] {request.method} {request.url.path} "
            f"-> {response.status_code} ({self._elapsed_ms(start_time)}ms)"
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 2)
