# Purpose: Generic document rows backing the key-value document store (collection + id -> JSON).
from __future__ import annotations
from sqlalchemy import Column, String, DateTime, JSON, PrimaryKeyConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from recruitflow.db.base import Base


class StoredDocument(Base):
    __tablename__ = "documents"

    collection = Column(String(64), nullable=False)
    doc_id = Column(String(128), nullable=False)

    data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (PrimaryKeyConstraint("collection", "doc_id", name="pk_documents"),)
