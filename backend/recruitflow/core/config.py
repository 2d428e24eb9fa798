# recruitflow/core/config.py
from __future__ import annotations
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field

# Resolve the .env alongside the backend package root (adjust if your layout differs)
ENV_PATH = Path(__file__).resolve().parent.parent / ".env"

DEFAULT_NAME_STOPWORDS = [
    "cv",
    "curriculo",
    "resume",
    "transcricao",
    "transcript",
    "entrevista",
    "interview",
    "meeting",
    "reuniao",
    "anotacoes",
    "notas",
    "notes",
    "alinhamento",
]


class Settings(BaseSettings):

    # --- App info ---
    APP_NAME: str = Field(default="Recruitflow Pipeline")

    # --- Document store ---
    DATABASE_URL: str = Field(
        default="sqlite:///./recruitflow.db",
        description="SQLAlchemy URL of the document store (e.g., postgresql+psycopg://... or sqlite:///...)",
    )

    # --- Generation provider ---
    LLM_PROVIDER: str | None = Field(
        default=None,
        description="'openai' or 'ollama'. Derived from the configured models when missing.",
    )
    OPENAI_API_KEY: str | None = Field(default=None, description="API key for OpenAI services")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Default OpenAI model for structured generation")
    OLLAMA_BASE_URL: str | None = Field(default=None, description="Base URL of local Ollama server")
    LLM_CHAT_MODEL: str | None = Field(default=None, description="Ollama model used for structured generation")

    # --- Retry / backoff ---
    GENERATION_MAX_RETRIES: int = Field(default=3, ge=0)
    GENERATION_BACKOFF_BASE_SECONDS: float = Field(
        default=1.0,
        ge=0,
        description="Wait before retry N is base * 2^N seconds",
    )
    GENERATION_TIMEOUT_SECONDS: int = Field(default=120, ge=1)

    # --- Persistence ---
    PERSIST_DEBOUNCE_SECONDS: float = Field(default=0.0, ge=0, description="0 disables debouncing")

    # --- Batch ingestion ---
    BATCH_NAME_STOPWORDS: list[str] = Field(default_factory=lambda: list(DEFAULT_NAME_STOPWORDS))

    # --- Usage accounting ---
    DEFAULT_USAGE_PROJECT_ID: str = Field(default="global")

    class Config:
        env_file = str(ENV_PATH)
        case_sensitive = True

    @property
    def llm_provider_effective(self) -> str:
        """
        Prefer LLM_PROVIDER; if it's missing, use Ollama when LLM_CHAT_MODEL is set
        and OpenAI otherwise.
        """
        if self.LLM_PROVIDER:
            return self.LLM_PROVIDER.lower()
        if self.LLM_CHAT_MODEL:
            return "ollama"
        return "openai"


settings = Settings()
