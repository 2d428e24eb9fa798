# backend/recruitflow/models/__init__.py
from recruitflow.models.document import StoredDocument

__all__ = [
    "StoredDocument",
]
