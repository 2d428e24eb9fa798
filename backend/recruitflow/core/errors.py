# recruitflow/core/errors.py
"""Typed error taxonomy shared by the generation boundary, the phase state machine
and the batch engine. Retry logic dispatches on GenerationErrorKind, never on messages."""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional


class GenerationErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"      # 429 / quota exhausted
    NO_CONTENT = "no_content"          # empty structured payload
    INVALID_OUTPUT = "invalid_output"  # malformed JSON or schema mismatch
    SERVICE = "service"                # any other provider failure
    CONFIGURATION = "configuration"    # missing key / unknown provider


class PipelineError(Exception):
    """Base class for every error raised by the pipeline core."""


class GenerationError(PipelineError):
    def __init__(self, kind: GenerationErrorKind, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.kind = kind
        self.cause = cause

    @property
    def is_retryable(self) -> bool:
        return self.kind is GenerationErrorKind.RATE_LIMITED

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.args[0]}"


class ExtractionError(PipelineError):
    """A file could not be turned into text."""

    def __init__(self, filename: str, reason: str = ""):
        self.filename = filename
        self.reason = reason
        msg = f"could not read file {filename}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class DependencyGateError(PipelineError):
    """Inputs required before a phase may generate are missing."""

    def __init__(self, phase: str, message: str):
        super().__init__(f"{phase}: {message}")
        self.phase = phase


class PhaseTransitionError(PipelineError):
    """The requested transition is not allowed from the slot's current state."""

    def __init__(self, phase: str, current: str, action: str):
        super().__init__(f"{phase}: cannot {action} while {current}")
        self.phase = phase
        self.current = current
        self.action = action


class ValidationFailedError(PipelineError):
    """A working copy misses required fields and cannot be approved."""

    def __init__(self, phase: str, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__(f"{phase}: invalid result ({'; '.join(self.errors[:5])})")
        self.phase = phase


class UnknownCandidateError(PipelineError):
    """A result references candidate names that are not part of the roster."""

    def __init__(self, phase: str, names: Iterable[str]):
        self.names = sorted(set(names))
        super().__init__(f"{phase}: unknown candidate(s): {', '.join(self.names)}")
        self.phase = phase
