"""Small helpers shared by services and repositories."""

import logging
import uuid
from typing import Any, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def normalize_uuid(value: Any) -> Optional[str]:
    """
    Canonical string form of a UUID, or None when ``value`` is not one.

    Ids reach the service from URLs and engine payloads; anything that is
    not a UUID cannot name a row, and binding it to a UUID column fails.
    """
    if value is None:
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None


def is_valid_uuid(value: Any) -> bool:
    return normalize_uuid(value) is not None


def is_http_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
