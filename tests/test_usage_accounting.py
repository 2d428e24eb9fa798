import asyncio

import pytest

from recruitflow.schemas.usage import TokenUsage
from recruitflow.services.store.document_store import DocumentStore
from recruitflow.services.usage.accounting import (
    USAGE_COLLECTION,
    UsageAccounting,
    estimate_cost,
    normalize_model_id,
    summarize,
)
from recruitflow.services.usage.dispatcher import UsageDispatcher


class BrokenStore(DocumentStore):
    async def add(self, collection, data):
        raise RuntimeError("store offline")


def usage(prompt=1000, output=500):
    return TokenUsage(prompt_tokens=prompt, output_tokens=output, total_tokens=prompt + output)


@pytest.mark.parametrize(
    "raw,bucket",
    [
        ("models/gemini-2.0-flash-001", "gemini-2.0-flash"),
        ("gpt-4o-mini-2024-07-18", "gpt-4o-mini"),
        ("gpt-4o-2024-08-06", "gpt-4o"),
        ("GPT-4.1-mini", "gpt-4.1-mini"),
        ("llama3.1:8b", "llama3.1:8b"),
    ],
)
def test_normalize_model_id(raw, bucket):
    assert normalize_model_id(raw) == bucket


def test_estimate_cost():
    assert estimate_cost("gemini-2.0-flash", 1_000_000, 1_000_000) == pytest.approx(0.50)
    assert estimate_cost("gpt-4o", 2_000_000, 0) == pytest.approx(5.0)


def test_unknown_model_costs_nothing():
    assert estimate_cost("mystery-model", 123_456, 654_321) == 0.0


def test_record_defaults_project_to_global(store):
    accounting = UsageAccounting(store)

    async def scenario():
        await accounting.record("gpt-4o-mini", usage(), {"phase": "Phase 1 - Alignment"})
        return await accounting.list_records("global"), await store.query(USAGE_COLLECTION)

    records, raw = asyncio.run(scenario())
    assert len(records) == 1
    assert records[0].context.project_id == "global"
    data = raw[0].data
    assert data["promptTokenCount"] == 1000
    assert data["candidatesTokenCount"] == 500
    assert data["totalTokenCount"] == 1500
    assert data["context"] == {"phase": "Phase 1 - Alignment", "projectId": "global"}


def test_record_never_raises(store):
    accounting = UsageAccounting(BrokenStore(store._session_factory))
    asyncio.run(accounting.record("gpt-4o-mini", usage(), {"projectId": "p1"}))


def test_list_records_filters_by_project_newest_first(store):
    accounting = UsageAccounting(store)

    async def scenario():
        await store.add(USAGE_COLLECTION, accounting.build_record("gpt-4o", usage(), {"projectId": "p1"})
                        .model_copy(update={"timestamp": 1}).model_dump(by_alias=True))
        await store.add(USAGE_COLLECTION, accounting.build_record("gpt-4o", usage(), {"projectId": "p2"})
                        .model_dump(by_alias=True))
        await store.add(USAGE_COLLECTION, accounting.build_record("gpt-4o", usage(), {"projectId": "p1"})
                        .model_copy(update={"timestamp": 2}).model_dump(by_alias=True))
        return await accounting.list_records("p1"), await accounting.list_records()

    p1, everything = asyncio.run(scenario())
    assert [r.timestamp for r in p1] == [2, 1]
    assert len(everything) == 3


def test_summarize_breaks_down_by_model_and_phase(store):
    accounting = UsageAccounting(store)
    records = [
        accounting.build_record("gpt-4o-mini", usage(), {"phase": "Phase 2 - Interview"}),
        accounting.build_record("gpt-4o-mini-2024-07-18", usage(), {"phase": "Phase 2 - Interview"}),
        accounting.build_record("gemini-2.0-flash", usage(2000, 0), {}),
    ]

    summary = summarize(records)

    assert summary.total.calls == 3
    assert summary.total.total_tokens == 5000
    assert summary.by_model["gpt-4o-mini"].calls == 2
    assert summary.by_phase["Phase 2 - Interview"].calls == 2
    assert summary.by_phase["Unknown"].prompt_tokens == 2000
    assert summary.total.cost == pytest.approx(sum(r.estimated_cost for r in records))


def test_dispatcher_without_accounting_is_noop():
    async def scenario():
        dispatcher = UsageDispatcher(None)
        dispatcher.dispatch("gpt-4o", usage())
        return dispatcher.pending

    assert asyncio.run(scenario()) == 0


def test_dispatcher_keeps_generation_side_clean(store):
    dispatcher = UsageDispatcher(UsageAccounting(BrokenStore(store._session_factory)))

    async def scenario():
        dispatcher.dispatch("gpt-4o", usage(), {"projectId": "p1"})
        await dispatcher.drain()

    asyncio.run(scenario())
    # record() swallows store errors, so nothing reaches the dispatcher either
    assert dispatcher.failures == []
