# Purpose: Usage routes - token usage log and cost summary for the finance view.
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from recruitflow.api.deps import get_store
from recruitflow.schemas.usage import UsageRecord, UsageSummary
from recruitflow.services.store.document_store import DocumentStore
from recruitflow.services.usage.accounting import UsageAccounting, summarize

router = APIRouter(prefix="/usage", tags=["usage"])


class UsageOut(BaseModel):
    records: List[UsageRecord]
    summary: UsageSummary


@router.get("", response_model=UsageOut)
async def list_usage(
    project_id: Optional[str] = Query(None, alias="projectId"),
    store: DocumentStore = Depends(get_store),
):
    records = await UsageAccounting(store).list_records(project_id)
    return UsageOut(records=records, summary=summarize(records))
