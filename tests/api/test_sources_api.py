"""HTTP tests for source registration, upload and dispatch."""

import uuid
from datetime import timedelta

import pytest

from app.api.v1.endpoints.sources import get_source_dispatch_service
from app.domain.repositories.notebook_repository import NotebookRepository, SourceRepository
from app.domain.services.source_dispatch_service import SourceDispatchService
from app.infrastructure.storage.bucket_policy import BucketPolicy
from app.main import app
from app.domain.source_state import SourceStatus, SourceType
from tests._fixtures import (
    ProfileFactory,
    SourceFactory,
    api_client,
    async_db,
    auth_headers,
    create_access_token,
    mock_storage,
    mock_workflow,
    user_with_notebook,
)


class TestSourcesApi:
    @pytest.mark.asyncio
    async def test_document_pipeline_end_to_end(self, async_db, api_client, mock_workflow, user_with_notebook):
        user, notebook = user_with_notebook
        await async_db.commit()
        headers = auth_headers(user)

        created = await api_client.post(
            f"/api/v1/notebooks/{notebook.id}/sources",
            json={"type": "pdf", "title": "Lecture slides"},
            headers=headers,
        )
        assert created.status_code == 201
        source_id = created.json()["id"]
        assert created.json()["processing_status"] == "pending"

        uploaded = await api_client.post(
            f"/api/v1/sources/{source_id}/upload",
            files={"file": ("slides.pdf", b"%PDF-1.7", "application/pdf")},
            headers=headers,
        )
        assert uploaded.status_code == 200
        assert uploaded.json()["processing_status"] == "uploading"
        file_path = uploaded.json()["file_path"]
        assert file_path == f"{notebook.id}/{source_id}.pdf"

        dispatched = await api_client.post(
            "/api/v1/sources/process-document",
            json={"sourceId": source_id, "filePath": file_path, "sourceType": "pdf"},
            headers=headers,
        )
        assert dispatched.status_code == 200
        assert dispatched.json()["sources"][0]["processing_status"] == "processing"
        assert mock_workflow.jobs[0][1]["callback_url"] == (
            "http://testserver/api/v1/webhooks/process-document-callback"
        )

        callback = await api_client.post(
            "/api/v1/webhooks/process-document-callback",
            json={"source_id": source_id, "content": "Slide text", "summary": "Overview"},
        )
        assert callback.status_code == 200

        fetched = await api_client.get(f"/api/v1/sources/{source_id}", headers=headers)
        assert fetched.json()["processing_status"] == "completed"
        assert fetched.json()["summary"] == "Overview"

    @pytest.mark.asyncio
    async def test_upload_over_limit_reads_no_further(
        self, async_db, api_client, mock_storage, mock_workflow, user_with_notebook
    ):
        user, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id)
        source_id = source.id
        await async_db.commit()
        small = BucketPolicy(name="sources", max_bytes=8, allowed_mime_types=frozenset({"application/pdf"}))
        app.dependency_overrides[get_source_dispatch_service] = lambda: SourceDispatchService(
            db=async_db,
            source_repo=SourceRepository(async_db),
            notebook_repo=NotebookRepository(async_db),
            storage_provider=mock_storage,
            workflow_client=mock_workflow,
            callback_url="http://testserver/api/v1/webhooks/process-document-callback",
            bucket_policy=small,
        )

        response = await api_client.post(
            f"/api/v1/sources/{source_id}/upload",
            files={"file": ("big.pdf", b"%PDF" + b"0" * 1000, "application/pdf")},
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "PAYLOAD_TOO_LARGE"
        assert error["details"] == {"size": 9, "max_bytes": 8}
        fetched = await api_client.get(f"/api/v1/sources/{source_id}", headers=auth_headers(user))
        assert fetched.json()["processing_status"] == "pending"

    @pytest.mark.asyncio
    async def test_engine_failure_answers_502_and_fails_source(
        self, async_db, api_client, mock_storage, mock_workflow, user_with_notebook
    ):
        user, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, status=SourceStatus.UPLOADING)
        file_path = f"{notebook.id}/{source.id}.pdf"
        source_id = source.id
        await mock_storage.store(file_path, b"%PDF")
        await async_db.commit()
        mock_workflow.fail_with = ConnectionError("engine down")

        response = await api_client.post(
            "/api/v1/sources/process-document",
            json={"sourceId": source_id, "filePath": file_path, "sourceType": "pdf"},
            headers=auth_headers(user),
        )

        assert response.status_code == 502
        assert response.json()["error"]["details"]["source_ids"] == [source_id]
        fetched = await api_client.get(f"/api/v1/sources/{source_id}", headers=auth_headers(user))
        assert fetched.json()["processing_status"] == "failed"

    @pytest.mark.asyncio
    async def test_additional_sources_batch(self, async_db, api_client, mock_workflow, user_with_notebook):
        user, notebook = user_with_notebook
        source = await SourceFactory.create(async_db, notebook.id, source_type=SourceType.TEXT)
        source_id = source.id
        await async_db.commit()

        response = await api_client.post(
            "/api/v1/sources/process-additional-sources",
            json={
                "type": "copied-text",
                "notebookId": notebook.id,
                "sourceIds": [source_id],
                "content": "Pasted notes",
            },
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        assert [s["id"] for s in response.json()["sources"]] == [source_id]
        assert mock_workflow.jobs[0][0] == "additional_sources"

    @pytest.mark.asyncio
    async def test_batch_with_duplicate_ids_is_rejected(self, async_db, api_client, user_with_notebook):
        user, notebook = user_with_notebook
        await async_db.commit()
        duplicate = str(uuid.uuid4())

        response = await api_client.post(
            "/api/v1/sources/process-additional-sources",
            json={
                "type": "multiple-websites",
                "notebookId": notebook.id,
                "sourceIds": [duplicate, duplicate],
                "urls": ["https://a.example", "https://b.example"],
            },
            headers=auth_headers(user),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_authentication(self, api_client):
        response = await api_client.get(f"/api/v1/sources/{uuid.uuid4()}")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_invalid_token(self, api_client):
        response = await api_client.get(
            f"/api/v1/sources/{uuid.uuid4()}", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_INVALID"

    @pytest.mark.asyncio
    async def test_expired_token(self, async_db, api_client):
        profile = await ProfileFactory.create(async_db)
        await async_db.commit()
        token = create_access_token({"sub": profile.id}, expires_in=timedelta(minutes=-5))

        response = await api_client.get(
            f"/api/v1/sources/{uuid.uuid4()}", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_EXPIRED"

    @pytest.mark.asyncio
    async def test_other_users_source_is_not_found(self, async_db, api_client, user_with_notebook):
        _, notebook = user_with_notebook
        intruder = await ProfileFactory.create(async_db)
        source = await SourceFactory.create(async_db, notebook.id)
        source_id = source.id
        await async_db.commit()

        response = await api_client.get(f"/api/v1/sources/{source_id}", headers=auth_headers(intruder))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, async_db, api_client, mock_storage, user_with_notebook):
        user, notebook = user_with_notebook
        file_path = f"{notebook.id}/notes.txt"
        await mock_storage.store(file_path, b"notes")
        source = await SourceFactory.create(async_db, notebook.id, file_path=file_path)
        source_id = source.id
        await async_db.commit()
        headers = auth_headers(user)

        renamed = await api_client.patch(f"/api/v1/sources/{source_id}", json={"title": "Renamed"}, headers=headers)
        assert renamed.status_code == 200
        assert renamed.json()["title"] == "Renamed"

        deleted = await api_client.delete(f"/api/v1/sources/{source_id}", headers=headers)
        assert deleted.status_code == 200
        assert not await mock_storage.exists(file_path)

        missing = await api_client.get(f"/api/v1/sources/{source_id}", headers=headers)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_first_request_creates_profile(self, async_db, api_client):
        user_id = str(uuid.uuid4())
        token = create_access_token({
            "sub": user_id,
            "email": "new.user@example.com",
            "user_metadata": {"full_name": "New User"},
        })

        response = await api_client.get("/api/v1/notebooks/", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"notebooks": [], "total": 0}
