# recruitflow/core/context.py
"""Explicit per-session context passed to every component that needs caller identity
or credentials (usage tagging, persistence scope, external pickers)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class SessionContext:
    user_id: str
    project_id: Optional[str] = None
    company_name: Optional[str] = None
    user_email: Optional[str] = None
    access_token: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)
    _open: bool = field(default=False, repr=False)

    def open(self, *, access_token: Optional[str] = None) -> "SessionContext":
        if access_token is not None:
            self.access_token = access_token
        self._open = True
        return self

    def close(self) -> None:
        # Drop credentials on teardown; the identity stays for late log lines.
        self.access_token = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def usage_tags(self, *, phase: Optional[str] = None, candidate_name: Optional[str] = None) -> Dict[str, Any]:
        """Context tag attached to usage records for one generation call."""
        tags: Dict[str, Any] = {
            "phase": phase,
            "projectId": self.project_id,
            "companyName": self.company_name,
            "candidateName": candidate_name,
            "userEmail": self.user_email,
            "userId": self.user_id,
        }
        return {k: v for k, v in tags.items() if v}

    def __enter__(self) -> "SessionContext":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()
