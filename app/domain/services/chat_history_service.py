"""Chat history service: per-notebook message log shared with the workflow engine."""

import logging
from typing import List

from app.domain.models.chat_history import ChatHistoryEntry
from app.domain.repositories.notebook_repository import NotebookRepository
from app.domain.repositories.chat_history_repository import ChatHistoryRepository
from app.domain.errors import NotFoundError, ValidationError
from app.core.utils import normalize_uuid

logger = logging.getLogger(__name__)


def session_id_for_notebook(notebook_id: str) -> str:
    """Chat session id of a notebook.

    Sessions are one-to-one with notebooks and reuse the notebook id, which
    is what the workflow engine writes into ``session_id``.
    """
    session_id = normalize_uuid(notebook_id)
    if session_id is None:
        raise ValidationError(f"Invalid notebook id: {notebook_id!r}")
    return session_id


class ChatHistoryService:
    """Owner-scoped access to a notebook's chat session."""

    def __init__(
        self,
        notebook_repo: NotebookRepository,
        chat_history_repo: ChatHistoryRepository,
        max_messages: int = 200,
    ):
        self.notebook_repo = notebook_repo
        self.chat_history_repo = chat_history_repo
        self.max_messages = max_messages

    async def _ensure_owner(self, notebook_id: str, user_id: str) -> None:
        if not await self.notebook_repo.is_owner(notebook_id, user_id):
            raise NotFoundError(
                f"Notebook {notebook_id} not found or user not authorized",
                resource_type="Notebook",
                resource_id=notebook_id,
            )

    async def list_messages(self, notebook_id: str, user_id: str) -> List[ChatHistoryEntry]:
        await self._ensure_owner(notebook_id, user_id)
        return await self.chat_history_repo.list_by_session(
            session_id_for_notebook(notebook_id), limit=self.max_messages
        )

    async def append_message(self, notebook_id: str, user_id: str, message: dict) -> ChatHistoryEntry:
        await self._ensure_owner(notebook_id, user_id)
        if not message:
            raise ValidationError("Chat message must not be empty")
        return await self.chat_history_repo.append(session_id_for_notebook(notebook_id), message)

    async def clear_history(self, notebook_id: str, user_id: str) -> int:
        await self._ensure_owner(notebook_id, user_id)
        removed = await self.chat_history_repo.delete_by_session(session_id_for_notebook(notebook_id))
        logger.info(f"Chat history cleared for notebook {notebook_id}", extra={"messages": removed})
        return removed
