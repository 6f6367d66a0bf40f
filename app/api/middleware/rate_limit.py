import time
import logging
from typing import Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.exception_handlers import domain_error_response
from app.core.config import settings
from app.domain.errors import RateLimitError

logger = logging.getLogger(__name__)

# Engine callbacks are never throttled: a dropped callback strands a source in processing
EXEMPT_PATHS = {"/health", "/readiness", "/docs", "/redoc", f"{settings.API_V1_STR}/openapi.json"}
EXEMPT_PREFIXES = (f"{settings.API_V1_STR}/webhooks/", f"{settings.API_V1_STR}/health")

PERIODS = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}

# Fixed window counter: first hit opens the window, later hits increment it
RATE_LIMIT_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local period = tonumber(ARGV[2])
local current_time = tonumber(ARGV[3])

local current = redis.call('get', key)
if not current then
    redis.call('setex', key, period, 1)
    return {1, limit - 1, current_time + period}
end

if tonumber(current) >= limit then
    local ttl = redis.call('ttl', key)
    return {0, 0, current_time + ttl}
end

local new_val = redis.call('incr', key)
local ttl = redis.call('ttl', key)
return {1, limit - new_val, current_time + ttl}
"""


def parse_rate_limit(limit_str: str) -> Tuple[int, int]:
    """Parse a limit like '300/hour' into (count, period seconds)."""
    try:
        count, period_name = limit_str.split("/")
        return int(count), PERIODS.get(period_name.strip().lower(), 3600)
    except ValueError:
        logger.error(f"Failed to parse rate limit string: {limit_str}. Using default 100/hour.")
        return 100, 3600


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Redis-backed fixed-window rate limiting per client address and path.

    Only installed when REDIS_URL is configured. If Redis is unreachable the
    request is let through and the failure logged.
    """

    def __init__(self, app, redis_url: Optional[str] = None, limit: Optional[str] = None):
        super().__init__(app)
        self.client = redis.from_url(redis_url or settings.REDIS_URL, decode_responses=True)
        self.limit, self.period = parse_rate_limit(limit or settings.RATE_LIMIT_DEFAULT)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in EXEMPT_PATHS or path.startswith(EXEMPT_PREFIXES):
            return await call_next(request)

        key = f"rate_limit:{self._get_identifier(request)}:{path}"
        is_allowed, remaining, reset_time = await self._check_rate_limit(key)
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(remaining, 0)),
            "X-RateLimit-Reset": str(int(reset_time)),
        }

        if not is_allowed:
            error = RateLimitError(
                "Too many requests. Please try again later.",
                retry_after=max(int(reset_time - time.time()), 0),
            )
            error.log(logger)
            return domain_error_response(error, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response

    @staticmethod
    def _get_identifier(request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    async def _check_rate_limit(self, key: str) -> Tuple[bool, int, float]:
        """Returns (is_allowed, remaining, reset_time)."""
        current_time = time.time()
        try:
            result = await self.client.eval(RATE_LIMIT_SCRIPT, 1, key, self.limit, self.period, current_time)
        except RedisError as e:
            logger.error(f"Rate limit check failed: {e}")
            return True, self.limit, current_time + self.period
        return bool(result[0]), int(result[1]), float(result[2])
