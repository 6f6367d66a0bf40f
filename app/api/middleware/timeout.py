import asyncio
import logging
from typing import Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.core.config import settings

logger = logging.getLogger(__name__)


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Bound the time spent on a request, webhook round trips included."""

    def __init__(self, app, timeout: Optional[float] = None):
        super().__init__(app)
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"Request timeout after {self.timeout}s: {request.method} {request.url.path}",
                extra={"request_id": getattr(request.state, "request_id", None)},
            )
            return JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content={
                    "error": {
                        "code": "REQUEST_TIMEOUT",
                        "message": f"Request processing timed out after {self.timeout} seconds.",
                        "details": None,
                    }
                },
            )
