# recruitflow/schemas/batch.py
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from recruitflow.schemas.phases import DocType, InterviewResult


class QueueStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class UploadedFile(BaseModel):
    """A file handed to the core: either a path on disk or in-memory content."""
    filename: str
    path: Optional[str] = None
    content: Optional[bytes] = None

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadedFile":
        p = Path(path)
        return cls(filename=p.name, path=str(p))


class QueueItem(BaseModel):
    """One group of files inferred to belong to a single candidate. Never persisted."""
    id: str
    candidate_name: str
    files: List[UploadedFile] = Field(default_factory=list)
    status: QueueStatus = QueueStatus.PENDING
    result: Optional[InterviewResult] = None
    error_message: Optional[str] = None


class QueueItemOut(BaseModel):
    id: str
    candidate_name: str
    file_names: List[str]
    status: QueueStatus
    result: Optional[InterviewResult] = None
    error_message: Optional[str] = None

    @classmethod
    def from_item(cls, item: QueueItem) -> "QueueItemOut":
        return cls(
            id=item.id,
            candidate_name=item.candidate_name,
            file_names=[f.filename for f in item.files],
            status=item.status,
            result=item.result,
            error_message=item.error_message,
        )


class DrainReport(BaseModel):
    processed: List[str] = Field(default_factory=list)
    succeeded: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    cancelled: bool = False


class FileMatch(BaseModel):
    candidate_name: str
    doc_type: DocType


class SmartUploadReport(BaseModel):
    total: int = 0
    matched: int = 0
    assignments: Dict[str, FileMatch] = Field(default_factory=dict)  # filename -> match
    unmatched: List[str] = Field(default_factory=list)
    unreadable: Dict[str, str] = Field(default_factory=dict)
