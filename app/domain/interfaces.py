"""
Abstract interfaces for infrastructure providers.

Services depend on these contracts only, so the real object store and the
real workflow engine can be swapped for in-memory versions in tests and in
local development.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


# ============================================================================
# INFRASTRUCTURE PROVIDER INTERFACES
# ============================================================================

class IStorageProvider(ABC):
    """Object store holding uploaded source files.

    Keys are bucket-relative and always start with the owning notebook's id,
    e.g. ``{notebook_id}/{source_id}.pdf``.
    """

    @abstractmethod
    async def store(self, key: str, content: bytes, metadata: Optional[Dict[str, str]] = None) -> str:
        """
        Store file content.

        Args:
            key: Object key
            content: File bytes
            metadata: Optional file metadata (``content_type`` is honoured)

        Returns:
            The key the object was stored under
        """
        pass

    @abstractmethod
    async def retrieve(self, key: str) -> bytes:
        """Retrieve file content by key. Raises FileNotFoundError if absent."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete file by key. Returns True if deleted, False if not found."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if file exists."""
        pass

    @abstractmethod
    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """
        Get a pre-signed URL the workflow engine can download the file from.

        Args:
            key: Object key
            expires_in: URL lifetime in seconds

        Returns:
            Pre-signed URL for direct file access
        """
        pass


class IWorkflowClient(ABC):
    """Client for the external workflow engine that extracts source text.

    Implementations raise ExternalServiceError when the engine does not
    accept a job (transport failure, timeout or non-2xx response).
    """

    @abstractmethod
    async def submit_document_job(self, payload: Dict[str, Any]) -> None:
        """Hand a single file-backed source to the document processing workflow."""
        pass

    @abstractmethod
    async def submit_additional_sources_job(self, payload: Dict[str, Any]) -> None:
        """Hand a batch of website or copied-text sources to the additional sources workflow."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the client is configured to reach the engine."""
        pass
