"""Settings for the API process and the pipeline worker.

Every field is read from the environment variable of the same name
(case-insensitive) or from a local ``.env`` file.
"""

from enum import Enum

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Settings are not usable in the current environment."""


class Settings(BaseSettings):
    """repowiki configuration, grouped by the component that reads it."""

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="development or production; production refuses incomplete settings",
    )
    database_url: str = Field(
        default="sqlite:///./repowiki.db",
        description="SQLAlchemy URL for jobs and generated documents",
    )

    # -- completion service (LiteLLM model strings, e.g. "openai/gpt-4.1") --
    chat_model: str = Field(
        default="gpt-4.1",
        description="Model for README, changelog, overview and topic bodies",
    )
    analysis_model: str = Field(
        default="",
        description="Model for the catalogue planner; empty means chat_model",
    )
    chat_api_key: str = Field(default="", description="Provider API key")
    chat_api_base: str = Field(default="", description="Custom provider endpoint")
    llm_timeout: int = Field(default=600, ge=1, description="Seconds per completion request")
    max_tool_rounds: int = Field(
        default=30, ge=1, description="Model/file-tool round trips allowed per completion"
    )

    # -- pipeline --
    repositories_dir: str = Field(
        default="/repositories",
        description="Root for local checkouts, laid out as <organization>/<name>",
    )
    queue_capacity: int = Field(
        default=10_000, ge=1, description="Queued jobs before submission waits"
    )
    # Most providers start returning 429 around this many parallel conversations.
    task_max_concurrency: int = Field(
        default=5,
        ge=1,
        validation_alias=AliasChoices("task_max_concurrency", "task_max_size_per_user"),
        description="Topic bodies generated at once within one job",
    )
    repair_mermaid: bool = Field(
        default=False, description="Repair broken mermaid diagrams in topic bodies"
    )
    commit_log_limit: int = Field(
        default=20, ge=1, description="Recent commits summarised into the changelog"
    )
    worker_enabled: bool = Field(
        default=True, description="Run the pipeline worker inside the API process"
    )

    # -- logging --
    log_level: str = Field(default="INFO", description=f"One of {', '.join(_LOG_LEVELS)}")
    log_format: str = Field(default="json", description="json or text")

    @property
    def planner_model(self) -> str:
        return self.analysis_model or self.chat_model

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {_LOG_LEVELS}, got {v!r}")
        return level

    def validate_production_config(self) -> None:
        """Refuse to start in production without a provider key or on SQLite.

        Raises:
            ConfigurationError: production environment with incomplete settings.
        """
        if self.environment != Environment.PRODUCTION:
            return

        problems = []
        if not self.chat_api_key:
            problems.append("CHAT_API_KEY is empty; every job would fail at its first model call")
        if self.database_url.startswith("sqlite"):
            problems.append("DATABASE_URL points at SQLite; use PostgreSQL in production")
        if problems:
            raise ConfigurationError(
                "Production configuration is incomplete:\n  - " + "\n  - ".join(problems)
            )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


settings = Settings()
