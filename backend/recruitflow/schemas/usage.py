# recruitflow/schemas/usage.py
from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from recruitflow.schemas.common import CamelModel


class TokenUsage(BaseModel):
    prompt_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class UsageContext(CamelModel):
    phase: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    company_name: Optional[str] = None
    candidate_name: Optional[str] = None
    user_email: Optional[str] = None
    user_id: Optional[str] = None


class UsageRecord(CamelModel):
    """Append-only log entry of one generation call."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    timestamp: int  # epoch milliseconds
    model_id: str
    prompt_token_count: int
    candidates_token_count: int
    total_token_count: int
    estimated_cost: float
    context: UsageContext


class UsageBucket(BaseModel):
    calls: int = 0
    prompt_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0


class UsageSummary(BaseModel):
    total: UsageBucket = Field(default_factory=UsageBucket)
    by_model: Dict[str, UsageBucket] = Field(default_factory=dict)
    by_phase: Dict[str, UsageBucket] = Field(default_factory=dict)
