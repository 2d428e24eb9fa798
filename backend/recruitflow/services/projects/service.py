# recruitflow/services/projects/service.py
"""Project documents: creation, listing per owner, lifecycle status and funnel counters.

Status and funnel counters are set by the user; nothing here derives them from the
pipeline. All updates are merge writes, so the pipeline state stored on the same
document is left untouched.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from recruitflow.schemas.phases import AlignmentResult
from recruitflow.schemas.project import Project, ProjectStatus
from recruitflow.services.persistence.adapter import strip_undefined
from recruitflow.services.store.document_store import Document, DocumentStore

logger = logging.getLogger("pipeline.projects")

PROJECTS_COLLECTION = "projects"


def _now_ms() -> int:
    return int(time.time() * 1000)


def to_project(doc: Document) -> Project:
    data = doc.data
    return Project.model_validate(
        {
            **data,
            "id": doc.id,
            "candidatesCount": len(data.get("candidates") or []),
            "shortlistCount": len(data.get("shortlist") or []),
        }
    )


class ProjectService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_project(
        self,
        owner: str,
        company_name: str,
        role_name: str,
        phase1_data: Optional[AlignmentResult] = None,
        mapped: int = 0,
        approached: int = 0,
    ) -> Project:
        now = _now_ms()
        data = strip_undefined(
            {
                "userId": owner,
                "companyName": company_name,
                "roleName": role_name,
                "status": ProjectStatus.ACTIVE,
                "phase1Data": phase1_data,
                "funnelMappedCount": max(0, mapped),
                "funnelApproachedCount": max(0, approached),
                "createdAt": now,
                "updatedAt": now,
            }
        )
        project_id = await self.store.add(PROJECTS_COLLECTION, data)
        logger.info("Project %s created for %s (%s / %s)", project_id, owner, company_name, role_name)
        return to_project(Document(id=project_id, data=data))

    async def get_project(self, project_id: str) -> Optional[Project]:
        data = await self.store.get(PROJECTS_COLLECTION, project_id)
        return to_project(Document(id=project_id, data=data)) if data is not None else None

    async def list_projects(self, owner: str) -> List[Project]:
        docs = await self.store.query(
            PROJECTS_COLLECTION, [("userId", "==", owner)], order_by="updatedAt", descending=True
        )
        return [to_project(d) for d in docs]

    def subscribe_projects(self, owner: str, listener: Callable[[List[Project]], object]) -> Callable[[], None]:
        """Realtime list of the owner's projects, newest first. Returns an unsubscribe callable."""
        return self.store.subscribe(
            PROJECTS_COLLECTION,
            lambda docs: listener([to_project(d) for d in docs]),
            [("userId", "==", owner)],
            order_by="updatedAt",
            descending=True,
        )

    async def _update(self, project_id: str, patch: dict) -> Optional[Project]:
        if await self.store.get(PROJECTS_COLLECTION, project_id) is None:
            return None
        await self.store.set(PROJECTS_COLLECTION, project_id, {**patch, "updatedAt": _now_ms()}, merge=True)
        return await self.get_project(project_id)

    async def update_status(self, project_id: str, status: ProjectStatus) -> Optional[Project]:
        status = ProjectStatus(status)
        logger.info("Project %s status -> %s", project_id, status.value)
        return await self._update(project_id, {"status": status.value})

    async def update_funnel(
        self, project_id: str, mapped: Optional[int] = None, approached: Optional[int] = None
    ) -> Optional[Project]:
        patch = {}
        if mapped is not None:
            if mapped < 0:
                raise ValueError("mapped must be >= 0")
            patch["funnelMappedCount"] = mapped
        if approached is not None:
            if approached < 0:
                raise ValueError("approached must be >= 0")
            patch["funnelApproachedCount"] = approached
        return await self._update(project_id, patch)

    async def update_details(
        self, project_id: str, company_name: Optional[str] = None, role_name: Optional[str] = None
    ) -> Optional[Project]:
        patch = strip_undefined({"companyName": company_name, "roleName": role_name})
        return await self._update(project_id, patch)

    async def delete_project(self, project_id: str) -> bool:
        deleted = await self.store.delete(PROJECTS_COLLECTION, project_id)
        if deleted:
            logger.info("Project %s deleted", project_id)
        return deleted
