"""Application settings loaded from environment variables.

Environment Configuration:
    CONVERSE_ENV: Deployment environment (local | test | staging | prod)
    MESSAGE_STORE: Message store backend (memory | supabase | sql)
    MESSAGES_TABLE: Table holding message rows (default: messages)
    STORE_TIMEOUT_S: Timeout for a single store round-trip in seconds
    LOG_JSON: Emit JSON logs (true) or console-friendly logs (false)
    LOG_LEVEL: Root log level name (default: INFO)

Supabase Configuration (required when MESSAGE_STORE=supabase):
    SUPABASE_URL: Supabase project URL (e.g., https://xxx.supabase.co)
    SUPABASE_SERVICE_KEY: Service role key used for PostgREST calls

SQL Configuration (required when MESSAGE_STORE=sql):
    DATABASE_URL: SQLAlchemy connection string
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class StoreBackend(str, Enum):
    """Available message store adapters."""

    MEMORY = "memory"
    SUPABASE = "supabase"
    SQL = "sql"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the supabase backend
    - DATABASE_URL is required for the sql backend
    - The in-memory backend is refused in staging and prod
    """

    converse_env: Environment = Field(default=Environment.LOCAL, alias="CONVERSE_ENV")
    message_store: StoreBackend = Field(default=StoreBackend.MEMORY, alias="MESSAGE_STORE")
    messages_table: str = Field(default="messages", alias="MESSAGES_TABLE")
    store_timeout_s: float = Field(default=30.0, alias="STORE_TIMEOUT_S")

    # Supabase (PostgREST) settings
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_KEY")

    # SQL settings
    database_url: str | None = Field(default=None, alias="DATABASE_URL")

    log_json: bool = Field(default=True, alias="LOG_JSON")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "Settings":
        """Ensure the selected store backend has what it needs."""
        if self.store_timeout_s < 1:
            raise ValueError("STORE_TIMEOUT_S must be >= 1")

        if self.message_store == StoreBackend.SUPABASE:
            missing = []
            if not self.supabase_url:
                missing.append("SUPABASE_URL")
            if not self.supabase_service_key:
                missing.append("SUPABASE_SERVICE_KEY")
            if missing:
                raise ValueError(
                    f"Missing required Supabase settings: {', '.join(missing)}. "
                    "Set these environment variables or choose another MESSAGE_STORE."
                )

        if self.message_store == StoreBackend.SQL and not self.database_url:
            raise ValueError("DATABASE_URL is required for MESSAGE_STORE=sql")

        if (
            self.message_store == StoreBackend.MEMORY
            and self.converse_env in (Environment.STAGING, Environment.PROD)
        ):
            raise ValueError(
                f"MESSAGE_STORE=memory is not allowed for CONVERSE_ENV={self.converse_env.value}"
            )

        return self

    @property
    def rest_url(self) -> str | None:
        """PostgREST endpoint for the messages table."""
        if not self.supabase_url:
            return None
        return f"{self.supabase_url.rstrip('/')}/rest/v1/{self.messages_table}"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
