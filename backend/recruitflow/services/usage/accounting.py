# recruitflow/services/usage/accounting.py
"""
Usage Accounting - turns raw token counts into cost estimates and keeps an
append-only log of usage records in the document store.

Recording is best-effort: nothing in here may fail the generation that produced
the usage, so every store error is logged and swallowed.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from recruitflow.core.config import settings
from recruitflow.schemas.usage import TokenUsage, UsageBucket, UsageContext, UsageRecord, UsageSummary
from recruitflow.services.store.document_store import DocumentStore

logger = logging.getLogger("pipeline.usage")

USAGE_COLLECTION = "token_usage"

# USD per 1M tokens: (input, output)
PRICING: Dict[str, tuple[float, float]] = {
    "gemini-2.0-flash": (0.10, 0.40),
    "gemini-1.5-flash": (0.075, 0.30),
    "gemini-1.5-pro": (1.25, 5.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-4.1": (2.00, 8.00),
}

# Longest keys first so "gpt-4o-mini" is tried before "gpt-4o"
_BUCKETS = sorted(PRICING, key=len, reverse=True)


def normalize_model_id(model_id: str) -> str:
    """Map a provider model id (e.g. 'models/gemini-2.0-flash-001') onto a pricing bucket."""
    raw = (model_id or "").strip()
    lowered = raw.lower()
    for bucket in _BUCKETS:
        if bucket in lowered:
            return bucket
    return raw


def estimate_cost(model_id: str, prompt_tokens: int, output_tokens: int) -> float:
    """Estimated USD cost of one call. Unknown models are free rather than an error."""
    input_price, output_price = PRICING.get(normalize_model_id(model_id), (0.0, 0.0))
    return (prompt_tokens / 1_000_000) * input_price + (output_tokens / 1_000_000) * output_price


class UsageAccounting:
    def __init__(self, store: DocumentStore, default_project_id: Optional[str] = None):
        self.store = store
        self.default_project_id = default_project_id or settings.DEFAULT_USAGE_PROJECT_ID

    def build_record(self, model_id: str, usage: TokenUsage, context: Mapping[str, Any] | None = None) -> UsageRecord:
        ctx = UsageContext.model_validate(dict(context or {}))
        if not ctx.project_id:
            ctx = ctx.model_copy(update={"project_id": self.default_project_id})
        return UsageRecord(
            timestamp=int(time.time() * 1000),
            model_id=normalize_model_id(model_id),
            prompt_token_count=usage.prompt_tokens,
            candidates_token_count=usage.output_tokens,
            total_token_count=usage.total_tokens,
            estimated_cost=estimate_cost(model_id, usage.prompt_tokens, usage.output_tokens),
            context=ctx,
        )

    async def record(self, model_id: str, usage: TokenUsage, context: Mapping[str, Any] | None = None) -> None:
        """Append one usage record. Never raises."""
        try:
            rec = self.build_record(model_id, usage, context)
            await self.store.add(USAGE_COLLECTION, rec.model_dump(by_alias=True, exclude_none=True))
            logger.debug(
                "Usage recorded: model=%s tokens=%d cost=%.6f phase=%s",
                rec.model_id, rec.total_token_count, rec.estimated_cost, rec.context.phase,
            )
        except Exception:
            logger.exception("Failed to record token usage for model %s", model_id)

    async def list_records(self, project_id: Optional[str] = None) -> List[UsageRecord]:
        filters = [("context.projectId", "==", project_id)] if project_id else []
        docs = await self.store.query(USAGE_COLLECTION, filters, order_by="timestamp", descending=True)
        records: List[UsageRecord] = []
        for doc in docs:
            try:
                records.append(UsageRecord.model_validate(doc.data))
            except ValidationError as e:
                logger.warning("Skipping malformed usage record %s: %s", doc.id, e)
        return records


def _add(bucket: UsageBucket, rec: UsageRecord) -> None:
    bucket.calls += 1
    bucket.prompt_tokens += rec.prompt_token_count
    bucket.output_tokens += rec.candidates_token_count
    bucket.total_tokens += rec.total_token_count
    bucket.cost += rec.estimated_cost


def summarize(records: Iterable[UsageRecord]) -> UsageSummary:
    """Totals plus per-model and per-phase breakdowns."""
    summary = UsageSummary()
    for rec in records:
        _add(summary.total, rec)
        _add(summary.by_model.setdefault(rec.model_id, UsageBucket()), rec)
        _add(summary.by_phase.setdefault(rec.context.phase or "Unknown", UsageBucket()), rec)
    return summary
