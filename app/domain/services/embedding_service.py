"""Embedding service: validated writes and notebook-scoped similarity search."""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from app.core.utils import normalize_uuid
from app.domain.models.embedding import EmbeddingDocument
from app.domain.repositories.notebook_repository import NotebookRepository
from app.domain.repositories.embedding_repository import EmbeddingRepository
from app.domain.errors import NotFoundError, ValidationError, ErrorCode

logger = logging.getLogger(__name__)


def validate_embedding_record(
    metadata: Dict[str, Any],
    notebook_id: str,
    embedding: Sequence[float],
    dimension: int,
) -> None:
    """
    Check an embedding record before it is written.

    The metadata must name the notebook the record is written into, and the
    vector must have the configured dimension with finite components.

    Raises:
        ValidationError: on any violation
    """
    referenced = metadata.get("notebook_id") if isinstance(metadata, dict) else None
    if not referenced:
        raise ValidationError(
            "Embedding metadata must contain notebook_id",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
        )
    referenced_id = normalize_uuid(referenced)
    if referenced_id is None:
        raise ValidationError(f"Embedding metadata notebook_id is not a valid id: {referenced!r}")
    if referenced_id != normalize_uuid(notebook_id):
        raise ValidationError(
            "Embedding metadata notebook_id does not match the target notebook",
            details={"metadata_notebook_id": referenced_id, "notebook_id": notebook_id},
        )

    if len(embedding) != dimension:
        raise ValidationError(
            f"Embedding has {len(embedding)} dimensions, expected {dimension}",
            details={"dimension": len(embedding), "expected": dimension},
        )
    if not all(math.isfinite(value) for value in embedding):
        raise ValidationError("Embedding contains non-finite values")


class EmbeddingService:
    """
    Owner-scoped access to embedding records.

    Every read and write is confined to a notebook the caller owns; a
    record's notebook comes from its ``notebook_id`` column, with the
    metadata copy checked for agreement on write.
    """

    def __init__(
        self,
        notebook_repo: NotebookRepository,
        embedding_repo: EmbeddingRepository,
        dimension: int = 1536,
        max_results: int = 10,
    ):
        self.notebook_repo = notebook_repo
        self.embedding_repo = embedding_repo
        self.dimension = dimension
        self.max_results = max_results

    async def _ensure_owner(self, notebook_id: str, user_id: str) -> None:
        if not await self.notebook_repo.is_owner(notebook_id, user_id):
            raise NotFoundError(
                f"Notebook {notebook_id} not found or user not authorized",
                resource_type="Notebook",
                resource_id=notebook_id,
            )

    async def is_owner_for_document(self, metadata: Dict[str, Any], user_id: str) -> bool:
        """True when the notebook named in ``metadata`` belongs to ``user_id``."""
        notebook_id = metadata.get("notebook_id") if isinstance(metadata, dict) else None
        if not notebook_id:
            return False
        notebook_id = normalize_uuid(notebook_id)
        if notebook_id is None:
            return False
        return await self.notebook_repo.is_owner(notebook_id, user_id)

    async def add_documents(
        self,
        notebook_id: str,
        user_id: str,
        documents: List[Dict[str, Any]],
    ) -> List[EmbeddingDocument]:
        """
        Validate and insert embedding records into a notebook.

        All records are validated before any is written.
        """
        await self._ensure_owner(notebook_id, user_id)

        records = []
        for index, document in enumerate(documents):
            metadata = dict(document.get("metadata") or {})
            metadata.setdefault("notebook_id", notebook_id)
            try:
                validate_embedding_record(metadata, notebook_id, document["embedding"], self.dimension)
            except ValidationError as e:
                e.details["index"] = index
                raise
            records.append({
                "notebook_id": notebook_id,
                "content": document["content"],
                "metadata": metadata,
                "embedding": list(document["embedding"]),
            })

        created = await self.embedding_repo.bulk_create(records)
        logger.info(f"Stored {len(created)} embedding records in notebook {notebook_id}")
        return created

    async def get_document(self, document_id: int, user_id: str) -> EmbeddingDocument:
        document = await self.embedding_repo.get_by_id(document_id)
        if not document or not await self.notebook_repo.is_owner(document.notebook_id, user_id):
            raise NotFoundError(
                f"Embedding record {document_id} not found or user not authorized",
                resource_type="EmbeddingDocument",
                resource_id=document_id,
            )
        return document

    async def delete_document(self, document_id: int, user_id: str) -> bool:
        await self.get_document(document_id, user_id)
        return await self.embedding_repo.delete(document_id)

    async def match_documents(
        self,
        notebook_id: str,
        user_id: str,
        query_embedding: Sequence[float],
        match_count: Optional[int] = None,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Nearest embedding records in one of the caller's notebooks.

        Returns:
            dicts with id, content, metadata and similarity, most similar first
        """
        await self._ensure_owner(notebook_id, user_id)
        if len(query_embedding) != self.dimension:
            raise ValidationError(
                f"Query embedding has {len(query_embedding)} dimensions, expected {self.dimension}"
            )

        limit = min(match_count or self.max_results, self.max_results)
        matches = await self.embedding_repo.match(
            list(query_embedding),
            notebook_id=notebook_id,
            match_count=limit,
            metadata_filter=metadata_filter or None,
        )
        return [
            {
                "id": document.id,
                "content": document.content,
                "metadata": document.metadata_ or {},
                "similarity": similarity,
            }
            for document, similarity in matches
        ]
