# recruitflow/api/errors.py
"""Map pipeline errors onto HTTP responses."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from recruitflow.core.errors import (
    DependencyGateError,
    ExtractionError,
    GenerationError,
    GenerationErrorKind,
    PhaseTransitionError,
    UnknownCandidateError,
    ValidationFailedError,
)

logger = logging.getLogger("pipeline.api")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DependencyGateError)
    async def _gate(request: Request, exc: DependencyGateError):
        return JSONResponse(status_code=409, content={"detail": str(exc), "phase": exc.phase})

    @app.exception_handler(PhaseTransitionError)
    async def _transition(request: Request, exc: PhaseTransitionError):
        return JSONResponse(status_code=409, content={"detail": str(exc), "phase": exc.phase})

    @app.exception_handler(ValidationFailedError)
    async def _validation(request: Request, exc: ValidationFailedError):
        return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(UnknownCandidateError)
    async def _unknown(request: Request, exc: UnknownCandidateError):
        return JSONResponse(status_code=422, content={"detail": str(exc), "names": exc.names})

    @app.exception_handler(ExtractionError)
    async def _extraction(request: Request, exc: ExtractionError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(GenerationError)
    async def _generation(request: Request, exc: GenerationError):
        status = 429 if exc.kind is GenerationErrorKind.RATE_LIMITED else 502
        if exc.kind is GenerationErrorKind.CONFIGURATION:
            status = 503
        logger.warning("Generation failed on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status, content={"detail": str(exc), "kind": exc.kind.value})
