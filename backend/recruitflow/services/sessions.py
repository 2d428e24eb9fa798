# recruitflow/services/sessions.py
"""In-process registry of open project workspaces (session + batch queue + chat)."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from recruitflow.core.context import SessionContext
from recruitflow.services.batch.queue import BatchQueue
from recruitflow.services.chat.assistant import ChatAssistant
from recruitflow.services.common.llm_client import build_backend
from recruitflow.services.generation.client import GenerationClient
from recruitflow.services.persistence.adapter import PersistenceAdapter
from recruitflow.services.phases.service import PipelineSession
from recruitflow.services.store.document_store import DocumentStore
from recruitflow.services.usage.accounting import UsageAccounting
from recruitflow.services.usage.dispatcher import UsageDispatcher

logger = logging.getLogger("pipeline.sessions")


@dataclass
class ProjectWorkspace:
    session: PipelineSession
    queue: BatchQueue
    chat: ChatAssistant


class SessionRegistry:
    def __init__(
        self,
        store: DocumentStore,
        client_factory: Optional[Callable[[UsageDispatcher], GenerationClient]] = None,
    ):
        self.store = store
        self.persistence = PersistenceAdapter(store)
        self.dispatcher = UsageDispatcher(UsageAccounting(store))
        self._client_factory = client_factory or (lambda d: GenerationClient(build_backend(), d))
        self._client: Optional[GenerationClient] = None
        self._workspaces: Dict[str, ProjectWorkspace] = {}
        self._lock = asyncio.Lock()

    @property
    def client(self) -> GenerationClient:
        if self._client is None:
            self._client = self._client_factory(self.dispatcher)
        return self._client

    def get(self, project_id: str) -> Optional[ProjectWorkspace]:
        return self._workspaces.get(project_id)

    async def open(self, project_id: str, user_id: str, company_name: Optional[str] = None) -> ProjectWorkspace:
        async with self._lock:
            ws = self._workspaces.get(project_id)
            if ws is not None:
                return ws
            context = SessionContext(user_id=user_id, project_id=project_id, company_name=company_name).open()
            session = PipelineSession(context, self.client, self.persistence)
            await session.load()
            ws = ProjectWorkspace(session=session, queue=BatchQueue(session), chat=ChatAssistant(session))
            self._workspaces[project_id] = ws
            logger.info("Opened workspace for project %s", project_id)
            return ws

    async def close(self, project_id: str) -> None:
        ws = self._workspaces.pop(project_id, None)
        if ws is not None:
            ws.queue.cancel()
            await ws.session.close()
            logger.info("Closed workspace for project %s", project_id)

    async def close_all(self) -> None:
        for project_id in list(self._workspaces):
            await self.close(project_id)
        await self.dispatcher.drain()
