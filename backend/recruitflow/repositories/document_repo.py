from __future__ import annotations
import copy
import uuid
from typing import Any, Iterable, Optional, Sequence, Tuple
from sqlalchemy import select
from sqlalchemy.orm import Session
from recruitflow.models.document import StoredDocument

Filter = Tuple[str, str, Any]

_MISSING = object()


def deep_merge(base: dict, patch: dict) -> dict:
    """Return a copy of `base` with `patch` merged in; nested dicts merge, everything else replaces."""
    out = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def _lookup(data: dict, path: str) -> Any:
    cur: Any = data
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def _matches(data: dict, filters: Iterable[Filter]) -> bool:
    for field, op, expected in filters:
        actual = _lookup(data, field)
        if actual is _MISSING:
            return False
        if op == "==":
            ok = actual == expected
        elif op == "!=":
            ok = actual != expected
        elif op == "in":
            ok = actual in expected
        elif op == "array-contains":
            ok = isinstance(actual, list) and expected in actual
        elif op in (">", ">=", "<", "<="):
            try:
                ok = {
                    ">": actual > expected,
                    ">=": actual >= expected,
                    "<": actual < expected,
                    "<=": actual <= expected,
                }[op]
            except TypeError:
                ok = False
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
        if not ok:
            return False
    return True


def get_document(db: Session, collection: str, doc_id: str) -> Optional[StoredDocument]:
    return db.get(StoredDocument, (collection, doc_id))


def set_document(db: Session, collection: str, doc_id: str, data: dict, *, merge: bool = True) -> StoredDocument:
    existing = get_document(db, collection, doc_id)
    if existing:
        existing.data = deep_merge(existing.data or {}, data) if merge else copy.deepcopy(data)
        db.add(existing)
        db.commit()
        db.refresh(existing)
        return existing

    row = StoredDocument(collection=collection, doc_id=doc_id, data=copy.deepcopy(data))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def add_document(db: Session, collection: str, data: dict) -> StoredDocument:
    row = StoredDocument(collection=collection, doc_id=uuid.uuid4().hex, data=copy.deepcopy(data))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def query_documents(
    db: Session,
    collection: str,
    *,
    filters: Sequence[Filter] = (),
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> list[StoredDocument]:
    rows = db.execute(
        select(StoredDocument).where(StoredDocument.collection == collection).order_by(StoredDocument.created_at)
    ).scalars().all()
    rows = [r for r in rows if _matches(r.data or {}, filters)]
    if order_by:
        # Documents without the order field are skipped, as document stores do
        rows = [r for r in rows if _lookup(r.data or {}, order_by) is not _MISSING]
        rows.sort(key=lambda r: _lookup(r.data, order_by), reverse=descending)
    if limit is not None:
        rows = rows[:limit]
    return rows


def delete_document(db: Session, collection: str, doc_id: str) -> bool:
    row = get_document(db, collection, doc_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True
