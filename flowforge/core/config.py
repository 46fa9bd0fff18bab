"""Engine configuration using Pydantic Settings.

Environment variables are loaded from .env files and system environment.
Every execution limit has a default here and can be overridden per run
through ExecutionOptions.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings.

    All settings can be overridden via environment variables.
    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "FlowForge Engine"
    DEBUG: bool = False

    # Execution limits
    EXECUTION_TIMEOUT_SECONDS: float = 300.0  # 5 minutes
    MAX_NODE_EXECUTIONS: int = 100
    MAX_NODES_PER_EXECUTION: int = 1000
    ISOLATE_TRIGGER_FAILURES: bool = False

    # Bounded in-memory stores
    EXECUTION_HISTORY_SIZE: int = 1000
    EVENT_HISTORY_SIZE: int = 1000

    # HttpRequest node
    HTTP_REQUEST_TIMEOUT_SECONDS: float = 30.0
    HTTP_MAX_RESPONSE_SIZE: int = 10 * 1024 * 1024  # 10MB

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str | None = None  # Defaults to logs/flowforge.log
    LOG_JSON_FORMAT: bool = True  # Use JSON format for file logs
    LOG_SENSITIVE_FILTER: bool = True  # Filter sensitive data from logs

    @field_validator(
        "EXECUTION_TIMEOUT_SECONDS",
        "MAX_NODE_EXECUTIONS",
        "MAX_NODES_PER_EXECUTION",
        "EXECUTION_HISTORY_SIZE",
        "EVENT_HISTORY_SIZE",
        "HTTP_REQUEST_TIMEOUT_SECONDS",
        "HTTP_MAX_RESPONSE_SIZE",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Reject zero or negative limits."""
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the log level name."""
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached engine settings.

    Settings are cached after first load for performance.
    """
    return Settings()


# Global settings instance
settings = get_settings()
