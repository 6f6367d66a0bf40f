"""Test fixtures and factories for service and API tests."""

import uuid
import httpx
import pytest
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.domain.models.profile import Profile
from app.domain.models.notebook import Notebook
from app.domain.models.source import Source
from app.domain.models.note import Note
from app.domain.models.embedding import EmbeddingDocument
from app.domain.source_state import SourceStatus, SourceType
from app.infrastructure.storage.mock_storage import MockStorageProvider
from app.infrastructure.mock_workflow_client import MockWorkflowClient
from app.infrastructure.container import ServiceContainer
from app.infrastructure.database.session import get_db_session


# ============================================================================
# PYTEST FIXTURES
# ============================================================================

@pytest.fixture
async def async_db():
    """Create an in-memory SQLite database for testing."""
    # One shared connection so every session sees the same in-memory database
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create all tables
    async with engine.begin() as conn:
        from app.domain.models import Base
        await conn.run_sync(Base.metadata.create_all)

    # Create sessionmaker
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def mock_storage():
    """Create a mock storage provider."""
    return MockStorageProvider()


@pytest.fixture
def mock_workflow():
    """Create a mock workflow client."""
    return MockWorkflowClient()


def vector(*values: float) -> List[float]:
    """An embedding of the configured dimension, zero-padded."""
    padded = list(values) + [0.0] * (settings.EMBEDDING_DIMENSION - len(values))
    return padded[: settings.EMBEDDING_DIMENSION]


# ============================================================================
# DATA FACTORIES
# ============================================================================

class ProfileFactory:
    """Factory for creating test profiles."""

    @staticmethod
    async def create(
        db: AsyncSession,
        email: Optional[str] = None,
        full_name: str = "Test User",
    ) -> Profile:
        """Create a test profile."""
        profile = Profile(
            id=str(uuid.uuid4()),
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            full_name=full_name,
        )
        db.add(profile)
        await db.flush()
        return profile


class NotebookFactory:
    """Factory for creating test notebooks."""

    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: str,
        title: str = "Test Notebook",
    ) -> Notebook:
        """Create a test notebook."""
        notebook = Notebook(
            user_id=user_id,
            title=title,
            example_questions=[],
        )
        db.add(notebook)
        await db.flush()
        return notebook


class SourceFactory:
    """Factory for creating test sources."""

    @staticmethod
    async def create(
        db: AsyncSession,
        notebook_id: str,
        source_type: SourceType = SourceType.PDF,
        status: SourceStatus = SourceStatus.PENDING,
        title: str = "Test Source",
        url: Optional[str] = None,
        content: Optional[str] = None,
        file_path: Optional[str] = None,
        metadata: Optional[dict] = None,
        updated_at: Optional[datetime] = None,
    ) -> Source:
        """Create a test source in any status."""
        source = Source(
            notebook_id=notebook_id,
            type=source_type,
            title=title,
            url=url,
            content=content,
            file_path=file_path,
            processing_status=status,
            metadata_=metadata or {},
        )
        if updated_at is not None:
            source.updated_at = updated_at
        db.add(source)
        await db.flush()
        return source


class NoteFactory:
    """Factory for creating test notes."""

    @staticmethod
    async def create(
        db: AsyncSession,
        notebook_id: str,
        title: str = "Test Note",
        content: str = "Note body",
    ) -> Note:
        note = Note(notebook_id=notebook_id, title=title, content=content, source_type="user")
        db.add(note)
        await db.flush()
        return note


class EmbeddingFactory:
    """Factory for creating embedding records."""

    @staticmethod
    async def create(
        db: AsyncSession,
        notebook_id: str,
        embedding: List[float],
        content: str = "chunk",
        metadata: Optional[dict] = None,
    ) -> EmbeddingDocument:
        full_metadata = {"notebook_id": notebook_id}
        full_metadata.update(metadata or {})
        document = EmbeddingDocument(
            notebook_id=notebook_id,
            content=content,
            metadata_=full_metadata,
            embedding=embedding,
        )
        db.add(document)
        await db.flush()
        return document


# ============================================================================
# COMPOSITE FIXTURES (Multiple entities at once)
# ============================================================================

@pytest.fixture
async def user_with_notebook(async_db: AsyncSession):
    """Create a profile with a notebook."""
    user = await ProfileFactory.create(async_db)
    notebook = await NotebookFactory.create(async_db, user_id=user.id)
    return user, notebook


# ============================================================================
# API CLIENT
# ============================================================================

@pytest.fixture
async def api_client(async_db: AsyncSession, mock_storage, mock_workflow):
    """HTTP client bound to the app, sharing the test session and mocks."""
    from app.main import app
    from app.api.deps import get_service_container

    async def _db_session():
        yield async_db

    app.dependency_overrides[get_db_session] = _db_session
    app.dependency_overrides[get_service_container] = lambda: ServiceContainer(
        db=async_db,
        storage_provider=mock_storage,
        workflow_client=mock_workflow,
    )

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    app.dependency_overrides.clear()


def create_access_token(claims: dict, expires_in: timedelta = timedelta(minutes=60)) -> str:
    """Sign a token the way the auth provider does (HS256 over SECRET_KEY)."""
    to_encode = {**claims, "exp": datetime.now(timezone.utc) + expires_in, "type": "access"}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(profile: Profile) -> dict:
    """Bearer header for a profile, shaped like the auth provider's access tokens."""
    token = create_access_token({"sub": profile.id, "email": profile.email})
    return {"Authorization": f"Bearer {token}"}
