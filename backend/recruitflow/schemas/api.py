# recruitflow/schemas/api.py
"""Request/response bodies of the HTTP layer."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from recruitflow.schemas.batch import QueueItemOut
from recruitflow.schemas.common import CamelModel
from recruitflow.schemas.phases import AlignmentResult, PhaseState
from recruitflow.schemas.project import ProjectStatus


class ProjectCreate(CamelModel):
    owner: str
    company_name: str
    role_name: str
    phase1_data: Optional[AlignmentResult] = None
    mapped: int = Field(default=0, ge=0)
    approached: int = Field(default=0, ge=0)


class ProjectDetailsUpdate(CamelModel):
    company_name: Optional[str] = None
    role_name: Optional[str] = None


class StatusUpdate(BaseModel):
    status: ProjectStatus


class FunnelUpdate(BaseModel):
    mapped: Optional[int] = Field(default=None, ge=0)
    approached: Optional[int] = Field(default=None, ge=0)


class OpenSession(CamelModel):
    user_id: str


class AlignmentRequest(CamelModel):
    transcript: str
    company_name: Optional[str] = None


class InterviewRequest(CamelModel):
    candidate_name: str
    cv_text: str
    transcript: str = ""
    notes: str = ""


class ShortlistRequest(CamelModel):
    selected_names: Optional[List[str]] = None


class DecisionRequest(CamelModel):
    # candidate -> {lensMini|competency|leadership: text}
    candidate_documents: Optional[Dict[str, Dict[str, str]]] = None


class ReferencesRequest(CamelModel):
    candidate_name: str
    raw_notes: str


class PhaseView(BaseModel):
    phase: str
    label: str
    state: PhaseState
    canonical: Optional[Dict[str, Any]] = None
    draft: Optional[Dict[str, Any]] = None
    working: Optional[Dict[str, Any]] = None


class GenerateOut(BaseModel):
    accepted: bool
    view: PhaseView


class QueueOut(BaseModel):
    items: List[QueueItemOut]
    done: int
    total: int
    draining: bool


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class ChatOut(BaseModel):
    reply: str
