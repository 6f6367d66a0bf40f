"""Unit tests for ChatHistoryService."""

import uuid
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.services.chat_history_service import ChatHistoryService, session_id_for_notebook
from app.domain.repositories.notebook_repository import NotebookRepository
from app.domain.repositories.chat_history_repository import ChatHistoryRepository
from app.domain.errors import NotFoundError, ValidationError
from tests._fixtures import ProfileFactory, async_db, user_with_notebook


class TestSessionMapping:
    def test_session_is_the_notebook_id(self):
        notebook_id = str(uuid.uuid4())
        assert session_id_for_notebook(notebook_id) == notebook_id

    def test_ids_are_normalized(self):
        notebook_id = str(uuid.uuid4())
        assert session_id_for_notebook(notebook_id.upper()) == notebook_id

    def test_invalid_notebook_id(self):
        with pytest.raises(ValidationError):
            session_id_for_notebook("notebook-42")


class TestChatHistoryService:
    @pytest.fixture
    async def chat_service(self, async_db: AsyncSession):
        return ChatHistoryService(
            notebook_repo=NotebookRepository(async_db),
            chat_history_repo=ChatHistoryRepository(async_db),
        )

    @pytest.mark.asyncio
    async def test_messages_come_back_in_order(self, chat_service, user_with_notebook):
        user, notebook = user_with_notebook

        await chat_service.append_message(notebook.id, user.id, {"type": "human", "content": "What is ATP?"})
        await chat_service.append_message(notebook.id, user.id, {"type": "ai", "content": "An energy carrier."})
        messages = await chat_service.list_messages(notebook.id, user.id)

        assert [m.message["type"] for m in messages] == ["human", "ai"]
        assert {m.session_id for m in messages} == {notebook.id}

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, chat_service, user_with_notebook):
        user, notebook = user_with_notebook

        with pytest.raises(ValidationError):
            await chat_service.append_message(notebook.id, user.id, {})

    @pytest.mark.asyncio
    async def test_clear_history(self, chat_service, user_with_notebook):
        user, notebook = user_with_notebook
        await chat_service.append_message(notebook.id, user.id, {"type": "human", "content": "hi"})

        assert await chat_service.clear_history(notebook.id, user.id) == 1
        assert await chat_service.list_messages(notebook.id, user.id) == []

    @pytest.mark.asyncio
    async def test_other_user_cannot_read(self, async_db, chat_service, user_with_notebook):
        _, notebook = user_with_notebook
        intruder = await ProfileFactory.create(async_db)

        with pytest.raises(NotFoundError):
            await chat_service.list_messages(notebook.id, intruder.id)

    @pytest.mark.asyncio
    async def test_other_user_cannot_write_or_clear(self, async_db, chat_service, user_with_notebook):
        user, notebook = user_with_notebook
        intruder = await ProfileFactory.create(async_db)
        await chat_service.append_message(notebook.id, user.id, {"type": "human", "content": "mine"})

        with pytest.raises(NotFoundError):
            await chat_service.append_message(notebook.id, intruder.id, {"type": "human", "content": "theirs"})
        with pytest.raises(NotFoundError):
            await chat_service.clear_history(notebook.id, intruder.id)

        messages = await chat_service.list_messages(notebook.id, user.id)
        assert [m.message["content"] for m in messages] == ["mine"]
