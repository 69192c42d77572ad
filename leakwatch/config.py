"""
Configuration for the leakwatch service.

Settings come from environment variables (or a local `.env` file) through
pydantic-settings and are validated once at startup.
"""

from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EMAIL_SENDER = "AI Site Security Diagnosis <onboarding@resend.dev>"
DEFAULT_EMAIL_SUBJECT = "[AI Site Security Diagnosis] Your investigation report is ready"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class MailerConfig(BaseModel):
    """Credentials and envelope for report emails, passed explicitly to the mailer."""

    api_key: str | None = None
    sender: str = DEFAULT_EMAIL_SENDER
    subject: str = DEFAULT_EMAIL_SUBJECT


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment; demo endpoints are refused in production",
    )
    demo_mode: bool = Field(
        default=False,
        description="Serve the fixed demo dataset instead of the hosted store",
    )

    supabase_url: str | None = Field(default=None, description="Hosted store project URL")
    supabase_key: str | None = Field(default=None, description="Hosted store anon/service key")

    resend_api_key: str | None = Field(default=None, description="Resend API key for report emails")
    email_sender: str = Field(default=DEFAULT_EMAIL_SENDER)
    email_subject: str = Field(default=DEFAULT_EMAIL_SUBJECT)

    @field_validator("supabase_url", "supabase_key", "resend_api_key", mode="before")
    @classmethod
    def empty_string_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for optional credentials."""
        if isinstance(v, str):
            v = v.strip()
            return v if v else None
        return v

    @property
    def demo_allowed(self) -> bool:
        return self.environment in (Environment.DEVELOPMENT, Environment.STAGING)

    @property
    def store_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def mailer_config(self) -> MailerConfig:
        return MailerConfig(api_key=self.resend_api_key, sender=self.email_sender, subject=self.email_subject)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance, loaded once per process."""
    return Settings()
