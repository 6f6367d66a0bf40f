"""In-memory storage provider for tests and local development."""

from typing import Dict, Optional
from app.domain.interfaces import IStorageProvider


class MockStorageProvider(IStorageProvider):
    """In-memory object store."""

    def __init__(self, fail_on_store: Optional[Exception] = None):
        self._storage: Dict[str, bytes] = {}
        self._metadata: Dict[str, Dict[str, str]] = {}
        # Raised from store() when set, to exercise upload failure paths
        self.fail_on_store = fail_on_store

    async def store(self, key: str, content: bytes, metadata: Optional[Dict[str, str]] = None) -> str:
        if self.fail_on_store is not None:
            raise self.fail_on_store
        self._storage[key] = content
        if metadata:
            self._metadata[key] = metadata
        return key

    async def retrieve(self, key: str) -> bytes:
        if key not in self._storage:
            raise FileNotFoundError(f"File not found: {key}")
        return self._storage[key]

    async def delete(self, key: str) -> bool:
        if key in self._storage:
            del self._storage[key]
            self._metadata.pop(key, None)
            return True
        return False

    async def exists(self, key: str) -> bool:
        return key in self._storage

    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Return a fake presigned URL naming the key."""
        if key not in self._storage:
            raise FileNotFoundError(f"File not found: {key}")
        return f"mock://storage/{key}?expires={expires_in}"
