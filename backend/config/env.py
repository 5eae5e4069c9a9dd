from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    secret_key: str = Field(default="dev-insecure-change-me", alias="DJANGO_SECRET_KEY")
    debug: bool = Field(default=False, alias="DJANGO_DEBUG")
    allowed_hosts_raw: str = Field(default="*", alias="DJANGO_ALLOWED_HOSTS")
    database_path: str = Field(default="db.sqlite3", alias="DATABASE_PATH")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Email delivery
    resend_api_key: str | None = Field(default=None, alias="RESEND_API_KEY")
    sendgrid_api_key: str | None = Field(default=None, alias="SENDGRID_API_KEY")
    email_provider: str | None = Field(default=None, alias="EMAIL_PROVIDER")
    email_from_address: str = Field(default="no-reply@clubpulse.co.uk", alias="EMAIL_FROM_ADDRESS")
    email_from_name: str = Field(default="ClubPulse", alias="EMAIL_FROM_NAME")
    public_domain: str | None = Field(default=None, alias="REPLIT_DOMAIN")

    # Text generation
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
    )
    gemini_model: str = Field(default="gemini-1.5-flash", alias="GEMINI_MODEL")

    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT_SECONDS")

    @field_validator("email_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: object) -> str | None:
        if not value:
            return None
        return str(value).strip().lower()

    @property
    def allowed_hosts(self) -> list[str]:
        return [host.strip() for host in self.allowed_hosts_raw.split(",") if host.strip()]

    @property
    def public_base_url(self) -> str:
        if self.public_domain:
            return f"https://{self.public_domain.rstrip('/')}"
        return "http://localhost:8000"


@lru_cache
def get_app_settings() -> AppSettings:
    return AppSettings()
