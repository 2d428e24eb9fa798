# recruitflow/schemas/project.py
from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import Field

from recruitflow.schemas.common import CamelModel
from recruitflow.schemas.phases import (
    AlignmentResult,
    DecisionResult,
    InterviewResult,
    ReferencesResult,
    ShortlistEntry,
)


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Candidate(CamelModel):
    """A candidate is keyed by name inside a project; two spellings are two candidates."""
    name: str
    cv_text: str = ""
    interview_report: str = ""
    phase2_data: InterviewResult


class ChatMessage(CamelModel):
    role: Literal["user", "model"]
    text: str


class ProjectInfo(CamelModel):
    company_name: str
    role_name: str


class FunnelData(CamelModel):
    mapped: int = Field(default=0, ge=0)
    approached: int = Field(default=0, ge=0)


class ProjectState(CamelModel):
    """Persisted pipeline state tree of one project (or one legacy user)."""
    phase1_data: Optional[AlignmentResult] = None
    candidates: List[Candidate] = Field(default_factory=list)
    shortlist: List[ShortlistEntry] = Field(default_factory=list)
    phase4_result: Optional[DecisionResult] = None
    phase5_result: Optional[ReferencesResult] = None
    chat_history: List[ChatMessage] = Field(default_factory=list)
    # Legacy single-tenant documents also carry project info and funnel counters.
    project_info: Optional[ProjectInfo] = None
    funnel_data: Optional[FunnelData] = None
    updated_at: Optional[int] = None


class Project(CamelModel):
    id: str
    user_id: str
    company_name: str
    role_name: str
    status: ProjectStatus = ProjectStatus.ACTIVE
    funnel_mapped_count: int = Field(default=0, ge=0)
    funnel_approached_count: int = Field(default=0, ge=0)
    phase1_data: Optional[AlignmentResult] = None
    phase4_result: Optional[DecisionResult] = None
    phase5_result: Optional[ReferencesResult] = None
    candidates_count: int = 0
    shortlist_count: int = 0
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
