import secrets
from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "ContentaGen"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    FRONTEND_HOST: str = "http://localhost:5173"
    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS] + [
            self.FRONTEND_HOST
        ]

    # Auth
    SECRET_KEY: str = secrets.token_urlsafe(32)
    # 60 minutes * 24 hours * 8 days = 8 days
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8
    FIRST_SUPERUSER: str = "admin@example.com"
    FIRST_SUPERUSER_PASSWORD: str = "changethis"

    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./contentagen.db"

    # LLM provider (any OpenAI-compatible endpoint, OpenRouter by default)
    LLM_API_KEY: str = ""
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    MODEL_DEFAULT: str = "x-ai/grok-4-fast"
    MODEL_STRATEGIST: str | None = None
    MODEL_RESEARCHER: str | None = None
    MODEL_WRITER: str | None = None
    MODEL_EDITOR: str | None = None
    MODEL_READER: str | None = None
    MODEL_IDEAS: str | None = None
    MODEL_DISTILLER: str | None = None

    # Web search
    TAVILY_API_KEY: str = ""
    TAVILY_BASE_URL: str = "https://api.tavily.com"
    TAVILY_MAX_RESULTS: int = 5

    # Knowledge base
    CHROMA_PERSIST_DIRECTORY: str = "./chroma_db"
    KNOWLEDGE_CHUNK_SIZE: int = 4000
    KNOWLEDGE_CHUNK_OVERLAP: int = 500
    KNOWLEDGE_SIMILARITY_THRESHOLD: float = 0.7
    KNOWLEDGE_QUERY_LIMIT: int = 10
    # Embeddings through the LLM provider when set, otherwise Chroma's local default model
    EMBEDDING_MODEL: str | None = None

    # Billing
    BILLING_ENABLED: bool = False
    POLAR_ACCESS_TOKEN: str = ""
    POLAR_BASE_URL: str = "https://api.polar.sh/v1"
    DEFAULT_PLAN: Literal["free", "pro", "ultra"] = "free"

    # File storage
    STORAGE_DIRECTORY: str = "./storage"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Background jobs
    JOB_MAX_ATTEMPTS: int = 3
    JOB_MIN_TIMEOUT_SECONDS: float = 1.0
    JOB_BACKOFF_FACTOR: float = 2.0


settings = Settings()  # type: ignore
