# Purpose: Project routes - CRUD, user-driven status and funnel counters, pipeline state load/save.
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from recruitflow.api.deps import get_project_service, get_registry, get_workspace
from recruitflow.schemas.api import FunnelUpdate, ProjectCreate, ProjectDetailsUpdate, StatusUpdate
from recruitflow.schemas.project import Project, ProjectState
from recruitflow.services.projects.service import ProjectService
from recruitflow.services.sessions import ProjectWorkspace, SessionRegistry

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=Project, status_code=201)
async def create_project(payload: ProjectCreate, projects: ProjectService = Depends(get_project_service)):
    return await projects.create_project(
        payload.owner,
        payload.company_name,
        payload.role_name,
        phase1_data=payload.phase1_data,
        mapped=payload.mapped,
        approached=payload.approached,
    )


@router.get("", response_model=List[Project])
async def list_projects(owner: str = Query(..., min_length=1), projects: ProjectService = Depends(get_project_service)):
    return await projects.list_projects(owner)


@router.get("/{project_id}", response_model=Project)
async def get_project(project_id: str, projects: ProjectService = Depends(get_project_service)):
    project = await projects.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.patch("/{project_id}", response_model=Project)
async def update_details(
    project_id: str, payload: ProjectDetailsUpdate, projects: ProjectService = Depends(get_project_service)
):
    project = await projects.update_details(project_id, payload.company_name, payload.role_name)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.put("/{project_id}/status", response_model=Project)
async def update_status(project_id: str, payload: StatusUpdate, projects: ProjectService = Depends(get_project_service)):
    project = await projects.update_status(project_id, payload.status)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.put("/{project_id}/funnel", response_model=Project)
async def update_funnel(project_id: str, payload: FunnelUpdate, projects: ProjectService = Depends(get_project_service)):
    project = await projects.update_funnel(project_id, payload.mapped, payload.approached)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    projects: ProjectService = Depends(get_project_service),
    registry: SessionRegistry = Depends(get_registry),
):
    await registry.close(project_id)
    if not await projects.delete_project(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return None


@router.get("/{project_id}/state", response_model=ProjectState)
async def get_state(ws: ProjectWorkspace = Depends(get_workspace)):
    """Canonical pipeline state of the project (drafts are not included)."""
    return ws.session.machine.snapshot()


@router.post("/{project_id}/state/save")
async def save_state(ws: ProjectWorkspace = Depends(get_workspace)):
    session = ws.session
    ok = await session.persistence.save_now(session.scope, session.machine.snapshot())
    return {"saved": ok}


@router.post("/{project_id}/close", status_code=204)
async def close_session(project_id: str, registry: SessionRegistry = Depends(get_registry)):
    await registry.close(project_id)
    return None
