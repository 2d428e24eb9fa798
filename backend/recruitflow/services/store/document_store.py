# recruitflow/services/store/document_store.py
"""Async facade over the SQLAlchemy document repository.

The pipeline treats the store as an opaque key-value collaborator with merge writes:
get / set(merge) / add / query / delete, plus in-process realtime subscriptions that
notify listeners asynchronously after every write to a matching document.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy.orm import Session, sessionmaker

from recruitflow.db.base import SessionLocal
from recruitflow.repositories import document_repo
from recruitflow.repositories.document_repo import Filter

logger = logging.getLogger("pipeline.store")


@dataclass
class Document:
    id: str
    data: dict


Listener = Callable[[List[Document]], Any]


@dataclass
class _Subscription:
    collection: str
    filters: Sequence[Filter]
    order_by: Optional[str]
    descending: bool
    listener: Listener
    active: bool = field(default=True)


class DocumentStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory
        self._subscriptions: list[_Subscription] = []
        self._deliveries: set[asyncio.Task] = set()
        # One unit of work at a time; SQLite connections are shared across worker threads
        self._lock = threading.Lock()

    # ----- sync helpers (run in worker threads) -----

    def _run(self, fn: Callable[[Session], Any]) -> Any:
        with self._lock:
            db = self._session_factory()
            try:
                return fn(db)
            finally:
                db.close()

    # ----- public async API -----

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        def _get(db: Session):
            row = document_repo.get_document(db, collection, doc_id)
            return dict(row.data) if row else None

        return await asyncio.to_thread(self._run, _get)

    async def set(self, collection: str, doc_id: str, data: dict, *, merge: bool = True) -> None:
        await asyncio.to_thread(
            self._run, lambda db: document_repo.set_document(db, collection, doc_id, data, merge=merge)
        )
        await self._notify(collection)

    async def add(self, collection: str, data: dict) -> str:
        doc_id = await asyncio.to_thread(
            self._run, lambda db: document_repo.add_document(db, collection, data).doc_id
        )
        await self._notify(collection)
        return doc_id

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        def _query(db: Session):
            rows = document_repo.query_documents(
                db, collection, filters=filters, order_by=order_by, descending=descending, limit=limit
            )
            return [Document(id=r.doc_id, data=dict(r.data or {})) for r in rows]

        return await asyncio.to_thread(self._run, _query)

    async def delete(self, collection: str, doc_id: str) -> bool:
        deleted = await asyncio.to_thread(
            self._run, lambda db: document_repo.delete_document(db, collection, doc_id)
        )
        if deleted:
            await self._notify(collection)
        return deleted

    # ----- realtime subscriptions -----

    def subscribe(
        self,
        collection: str,
        listener: Listener,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Callable[[], None]:
        """
        Register a listener that receives the full matching result set: once right after
        subscribing and again after every write to the collection. Must be called from
        inside a running event loop. Returns an unsubscribe callable.
        """
        sub = _Subscription(collection, tuple(filters), order_by, descending, listener)
        self._subscriptions.append(sub)
        self._spawn(asyncio.get_running_loop(), sub)

        def _unsubscribe() -> None:
            sub.active = False
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return _unsubscribe

    async def _notify(self, collection: str) -> None:
        loop = asyncio.get_running_loop()
        for sub in list(self._subscriptions):
            if sub.active and sub.collection == collection:
                self._spawn(loop, sub)

    def _spawn(self, loop: asyncio.AbstractEventLoop, sub: _Subscription) -> None:
        task = loop.create_task(self._deliver(sub))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def drain(self) -> None:
        """Wait for every pending listener delivery."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def _deliver(self, sub: _Subscription) -> None:
        if not sub.active:
            return
        try:
            docs = await self.query(sub.collection, sub.filters, order_by=sub.order_by, descending=sub.descending)
            result = sub.listener(docs)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Subscription listener failed for collection '%s'", sub.collection)
