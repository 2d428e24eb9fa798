# Purpose: Project chat assistant route.
from __future__ import annotations

from fastapi import APIRouter, Depends

from recruitflow.api.deps import get_workspace
from recruitflow.schemas.api import ChatOut, ChatRequest
from recruitflow.services.sessions import ProjectWorkspace

router = APIRouter(prefix="/projects/{project_id}/chat", tags=["chat"])


@router.post("", response_model=ChatOut)
async def ask(payload: ChatRequest, ws: ProjectWorkspace = Depends(get_workspace)):
    return ChatOut(reply=await ws.chat.ask(payload.message))
