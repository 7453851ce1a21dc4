import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine.url import make_url, URL

DEFAULT_DATABASE_URL = "sqlite:///./data/messages.db"
DEFAULT_TEST_DATABASE_URL = "sqlite:///./data/messages_test.db"

DEFAULT_COMPLETION_FALLBACK_TEXT = (
    "Sorry, I could not get an answer from the assistant right now. "
    "Please try again in a moment."
)

# Project root (parent of app/) - used so .env is found regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Explicitly load .env into os.environ so it works in tests and subprocesses
load_dotenv(_PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "lark-relay"
    database_url: Optional[str] = None  # Will be set dynamically
    database_echo: bool = Field(
        default=False, json_schema_extra={"env": "DATABASE_ECHO"}
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT", "environment"),
    )
    log_level: str = Field(default="INFO", json_schema_extra={"env": "LOG_LEVEL"})
    port: int = Field(default=3000, json_schema_extra={"env": "PORT"})

    # Lark
    lark_app_id: Optional[str] = Field(
        default=None, json_schema_extra={"env": "LARK_APP_ID"}
    )
    lark_app_secret: Optional[str] = Field(
        default=None, json_schema_extra={"env": "LARK_APP_SECRET"}
    )
    lark_verification_token: Optional[str] = Field(
        default=None, json_schema_extra={"env": "LARK_VERIFICATION_TOKEN"}
    )
    lark_api_base_url: str = Field(
        default="https://open.larksuite.com/open-apis",
        json_schema_extra={"env": "LARK_API_BASE_URL"},
    )
    lark_request_timeout_seconds: float = Field(
        default=30.0, gt=0, json_schema_extra={"env": "LARK_REQUEST_TIMEOUT_SECONDS"}
    )

    # LLM / pydantic-ai
    llm_provider: Literal["google", "litellm"] = Field(
        default="google", json_schema_extra={"env": "LLM_PROVIDER"}
    )
    llm_model: str = Field(
        default="gemini-2.5-flash", json_schema_extra={"env": "LLM_MODEL"}
    )
    llm_instructions: Optional[str] = Field(
        default=None, json_schema_extra={"env": "LLM_INSTRUCTIONS"}
    )
    llm_history_turns: int = Field(
        default=0, ge=0, le=50, json_schema_extra={"env": "LLM_HISTORY_TURNS"}
    )
    gemini_api_key: Optional[str] = Field(
        default=None, json_schema_extra={"env": "GEMINI_API_KEY"}
    )
    litellm_api_key: Optional[str] = Field(
        default=None, json_schema_extra={"env": "LITELLM_API_KEY"}
    )
    litellm_api_base: Optional[str] = Field(
        default=None, json_schema_extra={"env": "LITELLM_API_BASE"}
    )
    completion_timeout_seconds: float = Field(
        default=30.0, gt=0, json_schema_extra={"env": "COMPLETION_TIMEOUT_SECONDS"}
    )
    completion_fallback_text: str = Field(
        default=DEFAULT_COMPLETION_FALLBACK_TEXT,
        min_length=1,
        json_schema_extra={"env": "COMPLETION_FALLBACK_TEXT"},
    )

    # Webhook dispatch: "background" acks first, "inline" acks after the pipeline
    dispatch_mode: Literal["background", "inline"] = Field(
        default="background", json_schema_extra={"env": "DISPATCH_MODE"}
    )
    admin_api_token: Optional[str] = Field(
        default=None, json_schema_extra={"env": "ADMIN_API_TOKEN"}
    )

    @model_validator(mode="before")
    @classmethod
    def set_database_url(cls, values):
        """Set the database_url dynamically based on the environment field."""
        if values.get("database_url"):
            return values
        environment = (
            values.get("environment")
            or values.get("ENV")
            or os.getenv("ENV", "development")
        )
        if str(environment).lower() == "test":
            values["database_url"] = os.getenv(
                "TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL
            )
        else:
            values["database_url"] = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

        return values

    @property
    def is_production(self) -> bool:
        """Check if the current environment is production."""
        return self.environment.lower() == "production"

    @property
    def is_test(self) -> bool:
        """Check if the current environment is test."""
        return self.environment.lower() == "test"

    @property
    def database_url_obj(self) -> URL:
        """Return the database URL as a URL object using sqlalchemy's make_url."""
        if not self.database_url:
            raise ValueError("Database URL is not set.")
        return make_url(self.database_url)

    @property
    def lark_configured(self) -> bool:
        return bool(self.lark_app_id and self.lark_app_secret)


def get_settings() -> Settings:
    """Get application settings from the environment."""
    return Settings()
