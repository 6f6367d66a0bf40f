"""Unit tests for SourceCallbackService (no FastAPI, no HTTP)."""

import uuid
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.services.source_callback_service import SourceCallbackService
from app.domain.repositories.notebook_repository import NotebookRepository, SourceRepository
from app.domain.models.source import Source
from app.domain.schemas.source import SourceCallbackPayload, AudioOverviewCallbackPayload
from app.domain.source_state import SourceStatus, SourceType
from app.domain.errors import (
    ValidationError,
    NotFoundError,
    InvalidStateTransitionError,
    ErrorCode,
)
from tests._fixtures import SourceFactory, async_db, user_with_notebook


async def _stored_rows(db: AsyncSession):
    result = await db.execute(
        select(
            Source.id,
            Source.processing_status,
            Source.content,
            Source.summary,
            Source.title,
            Source.updated_at,
        ).order_by(Source.id)
    )
    return [tuple(row) for row in result.all()]


class TestSourceCallbackService:
    """Test cases for applying workflow engine results."""

    @pytest.fixture
    async def callback_service(self, async_db: AsyncSession):
        return SourceCallbackService(
            source_repo=SourceRepository(async_db),
            notebook_repo=NotebookRepository(async_db),
        )

    # ========================================================================
    # SUCCESSFUL RESULTS
    # ========================================================================

    @pytest.mark.asyncio
    async def test_completes_processing_source(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)

        updated = await callback_service.apply_result(
            SourceCallbackPayload(source_id=source.id, content="Full text", summary="Short")
        )

        assert updated.processing_status == SourceStatus.COMPLETED
        assert updated.content == "Full text"
        assert updated.summary == "Short"

    @pytest.mark.asyncio
    async def test_title_wins_over_display_name(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)

        updated = await callback_service.apply_result(
            SourceCallbackPayload(source_id=source.id, title="Real title", display_name="Legacy name")
        )

        assert updated.title == "Real title"
        assert updated.display_name == "Legacy name"

    @pytest.mark.asyncio
    async def test_display_name_used_as_title_when_no_title(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)

        updated = await callback_service.apply_result(
            SourceCallbackPayload(source_id=source.id, display_name="Legacy name")
        )

        assert updated.title == "Legacy name"

    @pytest.mark.asyncio
    async def test_error_fails_source_even_with_status(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)

        updated = await callback_service.apply_result(
            SourceCallbackPayload(source_id=source.id, status="completed", error="extraction failed")
        )

        assert updated.processing_status == SourceStatus.FAILED

    @pytest.mark.asyncio
    async def test_empty_fields_are_not_written(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(
            async_db, notebook.id, status=SourceStatus.PROCESSING, content="kept", title="Kept title"
        )

        updated = await callback_service.apply_result(
            SourceCallbackPayload(source_id=source.id, content="", summary="New summary")
        )

        assert updated.content == "kept"
        assert updated.title == "Kept title"
        assert updated.summary == "New summary"

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_idempotent(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)
        payload = SourceCallbackPayload(source_id=source.id, content="Text", summary="Sum", title="T")

        await callback_service.apply_result(payload)
        await async_db.commit()
        after_first = await _stored_rows(async_db)

        await callback_service.apply_result(payload)
        await async_db.commit()

        assert await _stored_rows(async_db) == after_first
        assert after_first[0][1] == SourceStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_duplicate_failure_report_is_idempotent(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)
        payload = SourceCallbackPayload(source_id=source.id, error="engine crashed")

        await callback_service.apply_result(payload)
        await async_db.commit()
        after_first = await _stored_rows(async_db)

        await callback_service.apply_result(payload)
        await async_db.commit()

        assert await _stored_rows(async_db) == after_first
        assert after_first[0][1] == SourceStatus.FAILED

    @pytest.mark.asyncio
    async def test_progress_report_keeps_processing(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)

        updated = await callback_service.apply_result(
            SourceCallbackPayload(source_id=source.id, status="processing", summary="partial")
        )

        assert updated.processing_status == SourceStatus.PROCESSING

    # ========================================================================
    # REJECTED RESULTS
    # ========================================================================

    @pytest.mark.asyncio
    async def test_missing_source_id(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)
        await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PENDING)
        before = await _stored_rows(async_db)

        with pytest.raises(ValidationError) as exc_info:
            await callback_service.apply_result(SourceCallbackPayload(content="orphan"))
        assert exc_info.value.code == ErrorCode.MISSING_REQUIRED_FIELD

        after = await _stored_rows(async_db)
        assert len(after) == 2
        assert after == before
        assert exc_info.value.http_status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_status(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.PROCESSING)

        with pytest.raises(ValidationError):
            await callback_service.apply_result(SourceCallbackPayload(source_id=source.id, status="done"))

        await async_db.refresh(source)
        assert source.processing_status == SourceStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_unknown_source(self, callback_service):
        with pytest.raises(NotFoundError):
            await callback_service.apply_result(SourceCallbackPayload(source_id=str(uuid.uuid4())))

    @pytest.mark.asyncio
    async def test_malformed_source_id_is_not_found(self, callback_service):
        with pytest.raises(NotFoundError):
            await callback_service.apply_result(SourceCallbackPayload(source_id="not-a-uuid"))

    @pytest.mark.asyncio
    async def test_completed_source_cannot_fail(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.COMPLETED, content="done")

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await callback_service.apply_result(SourceCallbackPayload(source_id=source.id, error="late failure"))

        assert exc_info.value.current_status == "completed"
        assert exc_info.value.target_status == "failed"
        await async_db.refresh(source)
        assert source.processing_status == SourceStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_pending_source_cannot_complete(self, async_db, callback_service, user_with_notebook):
        _, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, source_type=SourceType.WEBSITE)

        with pytest.raises(InvalidStateTransitionError):
            await callback_service.apply_result(SourceCallbackPayload(source_id=source.id, content="early"))

    # ========================================================================
    # AUDIO OVERVIEW
    # ========================================================================

    @pytest.mark.asyncio
    async def test_audio_overview_completed(self, callback_service, user_with_notebook):
        _, notebook = user_with_notebook

        updated = await callback_service.apply_audio_overview_result(
            AudioOverviewCallbackPayload(notebook_id=notebook.id, audio_url="https://cdn.example.com/a.mp3")
        )

        assert updated.audio_overview_generation_status == "completed"
        assert updated.audio_overview_url == "https://cdn.example.com/a.mp3"

    @pytest.mark.asyncio
    async def test_audio_overview_error(self, callback_service, user_with_notebook):
        _, notebook = user_with_notebook

        updated = await callback_service.apply_audio_overview_result(
            AudioOverviewCallbackPayload(notebook_id=notebook.id, error="tts failed")
        )

        assert updated.audio_overview_generation_status == "failed"
        assert updated.audio_overview_url is None

    @pytest.mark.asyncio
    async def test_audio_overview_unknown_notebook(self, callback_service):
        with pytest.raises(NotFoundError):
            await callback_service.apply_audio_overview_result(
                AudioOverviewCallbackPayload(notebook_id=str(uuid.uuid4()), status="completed")
            )
