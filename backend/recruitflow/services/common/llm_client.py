# recruitflow/services/common/llm_client.py
"""Provider backends for structured generation (OpenAI and Ollama): one schema-constrained call
per invocation, provider failures translated into typed GenerationError kinds, plus prompt loading
and lenient JSON coercion shared by every phase."""
from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import requests
from openai import OpenAI, APIConnectionError, APIStatusError, APITimeoutError, RateLimitError

from recruitflow.core.config import settings
from recruitflow.core.errors import GenerationError, GenerationErrorKind
from recruitflow.schemas.usage import TokenUsage

logger = logging.getLogger("pipeline.llm")


# Default Ollama chat options
DEFAULT_CHAT_OPTIONS: Dict[str, Any] = {
    "temperature": 0,
    "seed": 7,
    "repeat_penalty": 1.05,
    "num_ctx": 8192,
    "num_predict": 4096,
}


@dataclass
class BackendResponse:
    """Raw provider answer: the structured payload as text plus token usage."""
    text: str
    usage: TokenUsage
    model_id: str


class GenerationBackend(Protocol):
    model: str

    def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Dict[str, Any],
        *,
        schema_name: str,
        timeout: int,
    ) -> BackendResponse:
        ...


def load_prompt(relative_path: str) -> str:
    """
    Load a prompt file from recruitflow/prompts/<relative_path>.
    If the exact relative path is not found, also try by basename under recruitflow/prompts/.
    """
    base = Path(__file__).resolve().parents[2] / "prompts"  # points to recruitflow/prompts
    path = base / relative_path
    if path.exists():
        text = path.read_text(encoding="utf-8")
        logger.debug("Loaded prompt: %s (%d chars)", relative_path, len(text))
        return text
    alt = base / Path(relative_path).name
    if alt.exists():
        text = alt.read_text(encoding="utf-8")
        logger.debug("Loaded prompt by basename fallback: %s (%d chars)", alt.name, len(text))
        return text
    raise FileNotFoundError(f"Prompt file not found. Tried: {path} and {alt}")


def _messages(system_prompt: str, user_prompt: str) -> List[Dict[str, str]]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})
    return messages


# ===== OpenAI =====

class OpenAIBackend:
    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None, client: Optional[OpenAI] = None):
        self.model = model or settings.OPENAI_MODEL
        self._api_key = api_key or settings.OPENAI_API_KEY
        self._client = client
        logger.info("LLM backend initialized with OpenAI: %s", self.model)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise GenerationError(
                    GenerationErrorKind.CONFIGURATION,
                    "OPENAI_API_KEY is not set. Please add it to your environment or .env file.",
                )
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def complete_structured(self, system_prompt, user_prompt, schema, *, schema_name, timeout) -> BackendResponse:
        client = self._get_client()
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=_messages(system_prompt, user_prompt),
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": schema_name, "schema": schema, "strict": False},
                },
                temperature=0,
                timeout=timeout,
            )
        except RateLimitError as e:
            # Covers both 429 throttling and insufficient_quota
            raise GenerationError(GenerationErrorKind.RATE_LIMITED, str(e), cause=e) from e
        except APIStatusError as e:
            kind = GenerationErrorKind.RATE_LIMITED if e.status_code == 429 else GenerationErrorKind.SERVICE
            raise GenerationError(kind, str(e), cause=e) from e
        except (APIConnectionError, APITimeoutError) as e:
            raise GenerationError(GenerationErrorKind.SERVICE, str(e), cause=e) from e

        content = ""
        if resp.choices:
            content = (resp.choices[0].message.content or "").strip()
        usage = TokenUsage()
        if resp.usage is not None:
            usage = TokenUsage(
                prompt_tokens=resp.usage.prompt_tokens or 0,
                output_tokens=resp.usage.completion_tokens or 0,
                total_tokens=resp.usage.total_tokens or 0,
            )
        logger.debug("OpenAI structured call received %d chars", len(content))
        return BackendResponse(text=content, usage=usage, model_id=resp.model or self.model)


# ===== Ollama =====

class OllamaBackend:
    def __init__(self, model: Optional[str] = None, base_url: Optional[str] = None):
        base = base_url or settings.OLLAMA_BASE_URL
        if not base:
            raise GenerationError(
                GenerationErrorKind.CONFIGURATION,
                "OLLAMA_BASE_URL is not set. Please add it to your environment or .env file.",
            )
        self.model = model or settings.LLM_CHAT_MODEL or "llama3.2"
        self.chat_url = f"{base.rstrip('/')}/api/chat"
        self.default_options = DEFAULT_CHAT_OPTIONS.copy()
        logger.info("LLM backend initialized with Ollama: %s @ %s", self.model, base)

    def complete_structured(self, system_prompt, user_prompt, schema, *, schema_name, timeout) -> BackendResponse:
        payload = {
            "model": self.model,
            "messages": _messages(system_prompt, user_prompt),
            "format": schema,
            "stream": False,
            "options": self.default_options,
            "keep_alive": "30m",
        }
        try:
            response = requests.post(self.chat_url, json=payload, timeout=timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            kind = GenerationErrorKind.RATE_LIMITED if status == 429 else GenerationErrorKind.SERVICE
            raise GenerationError(kind, f"Ollama returned HTTP {status}: {e}", cause=e) from e
        except requests.RequestException as e:
            raise GenerationError(GenerationErrorKind.SERVICE, str(e), cause=e) from e

        body = response.json()
        content = (body.get("message", {}) or {}).get("content", "").strip()
        prompt_tokens = int(body.get("prompt_eval_count") or 0)
        output_tokens = int(body.get("eval_count") or 0)
        usage = TokenUsage(
            prompt_tokens=prompt_tokens,
            output_tokens=output_tokens,
            total_tokens=prompt_tokens + output_tokens,
        )
        logger.debug("Ollama structured call received %d chars", len(content))
        return BackendResponse(text=content, usage=usage, model_id=body.get("model") or self.model)


def build_backend(provider: Optional[str] = None) -> GenerationBackend:
    """Instantiate the configured provider backend."""
    provider = (provider or settings.llm_provider_effective).lower()
    if provider == "openai":
        return OpenAIBackend()
    if provider == "ollama":
        return OllamaBackend()
    raise GenerationError(GenerationErrorKind.CONFIGURATION, f"Unknown provider: {provider}")


def coerce_json(text: str) -> Dict[str, Any]:
    """Best-effort JSON object parser for LLM responses.

    Handles common failure modes:
    - Markdown code fences (```json ... ```)
    - Extra commentary before/after JSON
    - JSON embedded inside a larger string
    """

    def strip_code_fences(s: str) -> str:
        s = s.strip()
        s = re.sub(r"^\s*```(?:json)?\s*", "", s, flags=re.IGNORECASE)
        s = re.sub(r"\s*```\s*$", "", s)
        return s.strip()

    def extract_first_json_object(s: str) -> Optional[str]:
        # Find the first balanced {...} object.
        start = s.find("{")
        if start == -1:
            return None
        depth = 0
        in_string = False
        escape = False
        for i in range(start, len(s)):
            ch = s[i]
            if in_string:
                if escape:
                    escape = False
                    continue
                if ch == "\\":
                    escape = True
                    continue
                if ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return s[start : i + 1]
        return None

    stripped = strip_code_fences(text or "")
    if not stripped:
        return {}

    try:
        obj = json.loads(stripped)
        if isinstance(obj, dict):
            return obj
        # Sometimes a model returns a single-element list with a dict.
        if isinstance(obj, list) and len(obj) == 1 and isinstance(obj[0], dict):
            return obj[0]
    except json.JSONDecodeError:
        pass

    candidate = extract_first_json_object(stripped)
    if candidate:
        obj = json.loads(candidate)
        if isinstance(obj, dict):
            return obj

    # Last resort: let json raise a useful error.
    obj = json.loads(stripped)
    if not isinstance(obj, dict):
        raise json.JSONDecodeError("Expected JSON object", stripped, 0)
    return obj
