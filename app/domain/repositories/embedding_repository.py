"""Embedding repository: chunk records written by the workflow engine and similarity search."""

import time
import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from sqlalchemy import select, delete, and_, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models.embedding import EmbeddingDocument
from app.infrastructure.monitoring.logging_setup import log_performance

logger = logging.getLogger(__name__)


class EmbeddingRepository:
    """Repository for EmbeddingDocument entity operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _uses_pgvector(self) -> bool:
        return self.db.get_bind().dialect.name == "postgresql"

    async def bulk_create(self, records: List[Dict[str, Any]]) -> List[EmbeddingDocument]:
        """
        Create embedding records in a single flush.

        Args:
            records: dicts with ``notebook_id``, ``content``, ``metadata`` and ``embedding``
        """
        documents = []
        for data in records:
            document = EmbeddingDocument(
                notebook_id=data["notebook_id"],
                content=data["content"],
                metadata_=data.get("metadata") or {},
                embedding=data.get("embedding"),
            )
            documents.append(document)
            self.db.add(document)

        await self.db.flush()
        return documents

    async def get_by_id(self, document_id: int) -> Optional[EmbeddingDocument]:
        result = await self.db.execute(select(EmbeddingDocument).where(EmbeddingDocument.id == document_id))
        return result.scalar_one_or_none()

    async def list_by_notebook(self, notebook_id: str) -> List[EmbeddingDocument]:
        result = await self.db.execute(
            select(EmbeddingDocument)
            .where(EmbeddingDocument.notebook_id == notebook_id)
            .order_by(EmbeddingDocument.id)
        )
        return list(result.scalars().all())

    async def delete(self, document_id: int) -> bool:
        result = await self.db.execute(delete(EmbeddingDocument).where(EmbeddingDocument.id == document_id))
        await self.db.flush()
        return result.rowcount > 0

    async def delete_by_source(self, notebook_id: str, source_id: str) -> int:
        """Delete every record the engine wrote for one source."""
        result = await self.db.execute(
            delete(EmbeddingDocument).where(
                and_(
                    EmbeddingDocument.notebook_id == notebook_id,
                    EmbeddingDocument.metadata_["source_id"].as_string() == source_id,
                )
            )
        )
        await self.db.flush()
        return result.rowcount

    async def match(
        self,
        query_embedding: List[float],
        notebook_id: str,
        match_count: int,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[Tuple[EmbeddingDocument, float]]:
        """
        Nearest records by cosine similarity within one notebook.

        ``metadata_filter`` is a containment filter: every key/value pair must
        be present in the record's metadata.

        Returns:
            (record, similarity) pairs, most similar first
        """
        start_time = time.time()
        if self._uses_pgvector():
            matches = await self._match_pgvector(query_embedding, notebook_id, match_count, metadata_filter)
        else:
            matches = await self._match_in_memory(query_embedding, notebook_id, match_count, metadata_filter)

        log_performance(
            logger,
            "vector_search",
            time.time() - start_time,
            resource="vector_db",
            extra_data={"match_count": match_count, "results_found": len(matches)},
        )
        return matches

    async def _match_pgvector(
        self,
        query_embedding: List[float],
        notebook_id: str,
        match_count: int,
        metadata_filter: Optional[Dict[str, Any]],
    ) -> List[Tuple[EmbeddingDocument, float]]:
        distance = EmbeddingDocument.embedding.cosine_distance(query_embedding)
        query = select(EmbeddingDocument, (1 - distance).label("similarity")).where(
            EmbeddingDocument.notebook_id == notebook_id,
            EmbeddingDocument.embedding.isnot(None),
        )
        if metadata_filter:
            query = query.where(type_coerce(EmbeddingDocument.metadata_, JSONB).contains(metadata_filter))

        result = await self.db.execute(query.order_by(distance).limit(match_count))
        return [(row[0], float(row[1])) for row in result.all()]

    async def _match_in_memory(
        self,
        query_embedding: List[float],
        notebook_id: str,
        match_count: int,
        metadata_filter: Optional[Dict[str, Any]],
    ) -> List[Tuple[EmbeddingDocument, float]]:
        """Rank in Python for databases without the vector extension."""
        result = await self.db.execute(
            select(EmbeddingDocument).where(
                EmbeddingDocument.notebook_id == notebook_id,
                EmbeddingDocument.embedding.isnot(None),
            )
        )
        scored = []
        for document in result.scalars().all():
            if metadata_filter and not _contains(document.metadata_ or {}, metadata_filter):
                continue
            scored.append((document, self._calculate_cosine_similarity(query_embedding, document.embedding)))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:match_count]

    def _calculate_cosine_similarity(self, vec1, vec2) -> float:
        """Calculate cosine similarity between two vectors."""
        vec1_array = np.asarray(vec1, dtype=float)
        vec2_array = np.asarray(vec2, dtype=float)

        norm1 = np.linalg.norm(vec1_array)
        norm2 = np.linalg.norm(vec2_array)
        if norm1 == 0 or norm2 == 0:
            return 0.0

        return float(np.dot(vec1_array, vec2_array) / (norm1 * norm2))


def _contains(metadata: Dict[str, Any], metadata_filter: Dict[str, Any]) -> bool:
    """Top-level JSON containment, matching JSONB ``@>`` for flat filters."""
    return all(key in metadata and metadata[key] == value for key, value in metadata_filter.items())
