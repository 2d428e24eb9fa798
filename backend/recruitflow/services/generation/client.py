# recruitflow/services/generation/client.py
"""
Generation Client - the single entry point every phase uses to call the AI service.

One schema-constrained call per attempt. Rate-limit failures are retried with
exponential backoff (base * 2^attempt seconds); every other failure surfaces
immediately. Successful calls hand their token usage to the UsageDispatcher
without waiting for it.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from recruitflow.core.config import settings
from recruitflow.core.errors import GenerationError, GenerationErrorKind
from recruitflow.schemas.usage import TokenUsage
from recruitflow.services.common.llm_client import BackendResponse, GenerationBackend, coerce_json
from recruitflow.services.usage.dispatcher import UsageDispatcher

logger = logging.getLogger("pipeline.generation")

T = TypeVar("T", bound=BaseModel)

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class GenerationResult(Generic[T]):
    data: T
    usage: TokenUsage
    model_id: str


class TextReply(BaseModel):
    reply: str


class GenerationClient:
    def __init__(
        self,
        backend: GenerationBackend,
        dispatcher: Optional[UsageDispatcher] = None,
        *,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        timeout: Optional[int] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.backend = backend
        self.dispatcher = dispatcher or UsageDispatcher(None)
        self.max_retries = settings.GENERATION_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_base = settings.GENERATION_BACKOFF_BASE_SECONDS if backoff_base is None else backoff_base
        self.timeout = timeout or settings.GENERATION_TIMEOUT_SECONDS
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff_base * (2 ** attempt)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Type[T],
        context: Mapping[str, Any] | None = None,
        max_retries: Optional[int] = None,
    ) -> GenerationResult[T]:
        retries = self.max_retries if max_retries is None else max_retries
        json_schema = schema.model_json_schema(by_alias=True)
        schema_name = schema.__name__

        attempt = 0
        while True:
            try:
                response: BackendResponse = await asyncio.to_thread(
                    self.backend.complete_structured,
                    system_prompt,
                    user_prompt,
                    json_schema,
                    schema_name=schema_name,
                    timeout=self.timeout,
                )
                break
            except GenerationError as e:
                if not e.is_retryable or attempt >= retries:
                    if e.is_retryable:
                        logger.error("Generation %s: rate limit persisted after %d retries", schema_name, retries)
                    raise
                attempt += 1
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Generation %s rate limited, retrying in %.1fs (attempt %d/%d)",
                    schema_name, delay, attempt, retries,
                )
                await self._sleep(delay)

        # Recorded as soon as the provider answers, before parsing. Accounting runs in
        # the background and can never affect this result
        self.dispatcher.dispatch(response.model_id, response.usage, context)
        data = self._parse(response.text, schema)

        logger.info(
            "Generation %s ok: model=%s tokens=%d retries=%d",
            schema_name, response.model_id, response.usage.total_tokens, attempt,
        )
        return GenerationResult(data=data, usage=response.usage, model_id=response.model_id)

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        context: Mapping[str, Any] | None = None,
        max_retries: Optional[int] = None,
    ) -> str:
        """Free-text answer, shares retry and accounting with `generate`."""
        result = await self.generate(system_prompt, user_prompt, TextReply, context, max_retries)
        return result.data.reply

    @staticmethod
    def _parse(text: str, schema: Type[T]) -> T:
        if not text or not text.strip():
            raise GenerationError(GenerationErrorKind.NO_CONTENT, "no content generated")
        try:
            payload = coerce_json(text)
        except json.JSONDecodeError as e:
            raise GenerationError(GenerationErrorKind.INVALID_OUTPUT, f"malformed JSON: {e}", cause=e) from e
        if not payload:
            raise GenerationError(GenerationErrorKind.NO_CONTENT, "no content generated")
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise GenerationError(
                GenerationErrorKind.INVALID_OUTPUT,
                f"output does not match {schema.__name__}: {e.error_count()} error(s)",
                cause=e,
            ) from e
