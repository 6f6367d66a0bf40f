"""Unit tests for EmbeddingService and embedding record validation."""

import math
import uuid
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.domain.services.embedding_service import EmbeddingService, validate_embedding_record
from app.domain.repositories.notebook_repository import NotebookRepository
from app.domain.repositories.embedding_repository import EmbeddingRepository
from app.domain.errors import NotFoundError, ValidationError, ErrorCode
from tests._fixtures import (
    ProfileFactory,
    NotebookFactory,
    EmbeddingFactory,
    async_db,
    user_with_notebook,
    vector,
)

DIMENSION = settings.EMBEDDING_DIMENSION


class TestValidateEmbeddingRecord:
    def test_accepts_matching_record(self):
        notebook_id = str(uuid.uuid4())
        validate_embedding_record({"notebook_id": notebook_id.upper()}, notebook_id, vector(1.0), DIMENSION)

    def test_requires_notebook_id(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_embedding_record({"source_id": "x"}, str(uuid.uuid4()), vector(1.0), DIMENSION)
        assert exc_info.value.code == ErrorCode.MISSING_REQUIRED_FIELD

    def test_rejects_other_notebook(self):
        with pytest.raises(ValidationError):
            validate_embedding_record(
                {"notebook_id": str(uuid.uuid4())}, str(uuid.uuid4()), vector(1.0), DIMENSION
            )

    def test_rejects_wrong_dimension(self):
        notebook_id = str(uuid.uuid4())
        with pytest.raises(ValidationError) as exc_info:
            validate_embedding_record({"notebook_id": notebook_id}, notebook_id, [1.0, 2.0], DIMENSION)
        assert exc_info.value.details == {"dimension": 2, "expected": DIMENSION}

    def test_rejects_non_finite_values(self):
        notebook_id = str(uuid.uuid4())
        with pytest.raises(ValidationError):
            validate_embedding_record({"notebook_id": notebook_id}, notebook_id, vector(math.nan), DIMENSION)


class TestEmbeddingService:
    """Owner-scoped writes and similarity search."""

    @pytest.fixture
    async def embedding_service(self, async_db: AsyncSession):
        return EmbeddingService(
            notebook_repo=NotebookRepository(async_db),
            embedding_repo=EmbeddingRepository(async_db),
            dimension=DIMENSION,
            max_results=5,
        )

    @pytest.mark.asyncio
    async def test_add_documents_fills_notebook_id(self, embedding_service, user_with_notebook):
        user, notebook = user_with_notebook

        created = await embedding_service.add_documents(
            notebook.id,
            user.id,
            [{"content": "chunk one", "metadata": {"source_id": "s1"}, "embedding": vector(1.0)}],
        )

        assert len(created) == 1
        assert created[0].notebook_id == notebook.id
        assert created[0].metadata_ == {"source_id": "s1", "notebook_id": notebook.id}

    @pytest.mark.asyncio
    async def test_add_documents_is_all_or_nothing(self, async_db, embedding_service, user_with_notebook):
        user, notebook = user_with_notebook

        with pytest.raises(ValidationError) as exc_info:
            await embedding_service.add_documents(
                notebook.id,
                user.id,
                [
                    {"content": "good", "metadata": {}, "embedding": vector(1.0)},
                    {"content": "bad", "metadata": {}, "embedding": [1.0]},
                ],
            )

        assert exc_info.value.details["index"] == 1
        assert await EmbeddingRepository(async_db).list_by_notebook(notebook.id) == []

    @pytest.mark.asyncio
    async def test_add_documents_to_foreign_notebook(self, async_db, embedding_service, user_with_notebook):
        _, notebook = user_with_notebook
        intruder = await ProfileFactory.create(async_db)

        with pytest.raises(NotFoundError):
            await embedding_service.add_documents(
                notebook.id, intruder.id, [{"content": "x", "metadata": {}, "embedding": vector(1.0)}]
            )

    @pytest.mark.asyncio
    async def test_is_owner_for_document(self, async_db, embedding_service, user_with_notebook):
        user, notebook = user_with_notebook
        intruder = await ProfileFactory.create(async_db)

        assert await embedding_service.is_owner_for_document({"notebook_id": notebook.id}, user.id)
        assert not await embedding_service.is_owner_for_document({"notebook_id": notebook.id}, intruder.id)
        assert not await embedding_service.is_owner_for_document({}, user.id)
        assert not await embedding_service.is_owner_for_document({"notebook_id": "garbage"}, user.id)

    @pytest.mark.asyncio
    async def test_match_orders_by_similarity_within_notebook(self, async_db, embedding_service, user_with_notebook):
        user, notebook = user_with_notebook
        other_notebook = await NotebookFactory.create(async_db, user_id=user.id)
        close = await EmbeddingFactory.create(async_db, notebook.id, vector(1.0, 0.1), content="close")
        far = await EmbeddingFactory.create(async_db, notebook.id, vector(0.0, 1.0), content="far")
        await EmbeddingFactory.create(async_db, other_notebook.id, vector(1.0), content="elsewhere")

        matches = await embedding_service.match_documents(notebook.id, user.id, vector(1.0))

        assert [match["id"] for match in matches] == [close.id, far.id]
        assert matches[0]["similarity"] > matches[1]["similarity"]
        assert matches[1]["similarity"] == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_match_applies_metadata_filter(self, async_db, embedding_service, user_with_notebook):
        user, notebook = user_with_notebook
        await EmbeddingFactory.create(async_db, notebook.id, vector(1.0), metadata={"source_id": "a"})
        wanted = await EmbeddingFactory.create(async_db, notebook.id, vector(0.5, 0.5), metadata={"source_id": "b"})

        matches = await embedding_service.match_documents(
            notebook.id, user.id, vector(1.0), metadata_filter={"source_id": "b"}
        )

        assert [match["id"] for match in matches] == [wanted.id]

    @pytest.mark.asyncio
    async def test_match_count_is_capped(self, async_db, embedding_service, user_with_notebook):
        user, notebook = user_with_notebook
        for i in range(7):
            await EmbeddingFactory.create(async_db, notebook.id, vector(1.0, float(i)))

        matches = await embedding_service.match_documents(notebook.id, user.id, vector(1.0), match_count=50)

        assert len(matches) == 5

    @pytest.mark.asyncio
    async def test_match_rejects_wrong_dimension(self, embedding_service, user_with_notebook):
        user, notebook = user_with_notebook

        with pytest.raises(ValidationError):
            await embedding_service.match_documents(notebook.id, user.id, [1.0])

    @pytest.mark.asyncio
    async def test_get_and_delete_document_scoped_to_owner(self, async_db, embedding_service, user_with_notebook):
        user, notebook = user_with_notebook
        intruder = await ProfileFactory.create(async_db)
        document = await EmbeddingFactory.create(async_db, notebook.id, vector(1.0))

        with pytest.raises(NotFoundError):
            await embedding_service.get_document(document.id, intruder.id)

        assert (await embedding_service.get_document(document.id, user.id)).id == document.id
        assert await embedding_service.delete_document(document.id, user.id)
        with pytest.raises(NotFoundError):
            await embedding_service.get_document(document.id, user.id)
