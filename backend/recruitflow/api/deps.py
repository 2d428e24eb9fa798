# recruitflow/api/deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from recruitflow.services.projects.service import ProjectService
from recruitflow.services.sessions import ProjectWorkspace, SessionRegistry
from recruitflow.services.store.document_store import DocumentStore


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_project_service(store: DocumentStore = Depends(get_store)) -> ProjectService:
    return ProjectService(store)


async def get_workspace(
    project_id: str,
    registry: SessionRegistry = Depends(get_registry),
    projects: ProjectService = Depends(get_project_service),
) -> ProjectWorkspace:
    """Open (or reuse) the workspace of an existing project."""
    ws = registry.get(project_id)
    if ws is not None:
        return ws
    project = await projects.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return await registry.open(project_id, project.user_id, project.company_name)
