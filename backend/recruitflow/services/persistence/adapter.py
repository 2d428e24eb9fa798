# recruitflow/services/persistence/adapter.py
"""
Persistence Adapter - writes the approved pipeline state of a project (or of a legacy
single-tenant user) to the document store and loads it back.

Writes are merge writes and fire-and-forget: a failed save is logged and kept in
`failures`, never raised into the approval that triggered it. Saves for one
document are applied in call order.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ValidationError

from recruitflow.core.config import settings
from recruitflow.schemas.project import ProjectState
from recruitflow.services.store.document_store import DocumentStore

logger = logging.getLogger("pipeline.persistence")


class _Unset:
    """Marker for a value that was never provided; stripped before writing."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()

_DROP = object()


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if value is UNSET:
        return _DROP
    if isinstance(value, BaseModel):
        return _clean(value.model_dump(by_alias=True, exclude_none=True))
    if isinstance(value, Enum):
        return _clean(value.value)
    if isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        # NaN / inf are not valid JSON
        return value if math.isfinite(value) else _DROP
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if v is None:
                continue
            cleaned = _clean(v)
            if cleaned is not _DROP:
                out[str(k)] = cleaned
        return out
    if isinstance(value, (list, tuple, set, frozenset)):
        out_list = []
        for v in value:
            cleaned = _clean(v)
            if cleaned is not _DROP:
                out_list.append(cleaned)
        return out_list
    # callables, arbitrary objects
    return _DROP


def strip_undefined(value: Any) -> Any:
    """
    Deep-convert a state tree into plain JSON-safe data: pydantic models become camelCase
    dicts, None-valued and UNSET keys are removed, non-serializable values are dropped.
    """
    cleaned = _clean(value)
    return None if cleaned is _DROP else cleaned


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ProjectScope:
    """Multi-project scope: one document per project in `projects`."""
    project_id: str
    collection: str = "projects"
    timestamp_field: str = "updatedAt"

    @property
    def doc_id(self) -> str:
        return self.project_id

    def payload(self, state: ProjectState) -> Dict[str, Any]:
        data = strip_undefined(state)
        # Project info and funnel counters live as top-level project fields here
        for key in ("projectInfo", "funnelData", "updatedAt"):
            data.pop(key, None)
        data[self.timestamp_field] = _now_ms()
        return data


@dataclass(frozen=True)
class LegacyUserScope:
    """Single-tenant scope: the whole pipeline stored on the user's document in `users`."""
    user_id: str
    collection: str = "users"
    timestamp_field: str = "lastUpdated"

    @property
    def doc_id(self) -> str:
        return self.user_id

    def payload(self, state: ProjectState) -> Dict[str, Any]:
        data = strip_undefined(state)
        data.pop("updatedAt", None)
        data[self.timestamp_field] = _now_ms()
        return data


Scope = Union[ProjectScope, LegacyUserScope]


def _key(scope: Scope) -> Tuple[str, str]:
    return scope.collection, scope.doc_id


class PersistenceAdapter:
    def __init__(self, store: DocumentStore, debounce_seconds: Optional[float] = None):
        self.store = store
        self.debounce_seconds = settings.PERSIST_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.failures: List[BaseException] = []
        self._tails: Dict[Tuple[str, str], asyncio.Task] = {}
        self._seq: Dict[Tuple[str, str], int] = {}

    def save(self, scope: Scope, state: ProjectState) -> asyncio.Task:
        """
        Schedule a merge write of `state` and return immediately. The payload is taken
        now, so later in-memory changes do not leak into this write. With debouncing
        enabled, a newer save for the same document replaces a pending one.
        """
        payload = scope.payload(state)
        key = _key(scope)
        seq = self._seq.get(key, 0) + 1
        self._seq[key] = seq
        previous = self._tails.get(key)

        task = asyncio.get_running_loop().create_task(self._write(scope, payload, seq, previous))
        self._tails[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        return task

    def _forget(self, key: Tuple[str, str], task: asyncio.Task) -> None:
        if self._tails.get(key) is task:
            del self._tails[key]

    async def save_now(self, scope: Scope, state: ProjectState) -> bool:
        """Awaited save. Returns False when the write failed (already logged)."""
        before = len(self.failures)
        await self.save(scope, state)
        return len(self.failures) == before

    async def flush(self) -> None:
        """Wait until every scheduled save has finished."""
        while self._tails:
            await asyncio.gather(*list(self._tails.values()), return_exceptions=True)

    async def _write(self, scope: Scope, payload: Dict[str, Any], seq: int, previous: Optional[asyncio.Task]) -> None:
        key = _key(scope)
        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)
            if self._seq.get(key) != seq:
                logger.debug("Save %s/%s superseded by a newer one", *key)
                return
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await self.store.set(scope.collection, scope.doc_id, payload, merge=True)
            logger.info("Saved state to %s/%s", *key)
        except Exception as e:
            self.failures.append(e)
            logger.exception("Failed to save state to %s/%s", *key)

    async def load(self, scope: Scope) -> Optional[ProjectState]:
        try:
            doc = await self.store.get(scope.collection, scope.doc_id)
        except Exception:
            logger.exception("Failed to load state from %s/%s", *_key(scope))
            return None
        if doc is None:
            return None

        data = dict(doc)
        data["updatedAt"] = data.get(scope.timestamp_field)
        try:
            return ProjectState.model_validate(data)
        except ValidationError:
            logger.exception("Stored state in %s/%s is not a valid pipeline state", *_key(scope))
            return None
