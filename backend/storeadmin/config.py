from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from functools import lru_cache
from typing import Annotated


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
    )

    # Database
    database_url: str = "postgresql://storeadmin:storeadmin@db:5432/storeadmin"
    auto_create_tables: bool = True  # Run init_db() on startup

    # Application
    app_name: str = "Store Admin API"
    debug: bool = False
    log_level: str = "INFO"

    # Logging
    log_dir: str = "/app/logs"
    log_json: bool = False  # Enable JSON logging for production
    enable_request_logging: bool = True

    # CORS
    cors_origins: Annotated[list[str], NoDecode] = []  # Comma-separated via CORS_ORIGINS env var

    # Storefront (target of the links embedded in account e-mails)
    frontend_store_url: str = "http://localhost:3000"

    # Account tokens
    token_expiry_minutes: int = 60  # Verification / reset links expire after 1 hour

    # Outgoing mail
    mail_transport: str = "smtp"  # smtp | resend | console
    mail_from: str = "no-reply@householdhub.com"

    # Mail - SMTP relay
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_timeout: float = 10.0  # seconds

    # Mail - Resend API
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    resend_timeout: float = 10.0  # seconds

    # Password Policy
    password_min_length: int = 12
    password_require_uppercase: bool = True
    password_require_lowercase: bool = True
    password_require_digit: bool = True
    password_require_special: bool = True

    # Rate limiting
    rate_limit_enabled: bool = True
    account_email_rate_limit: str = "5/minute"  # Per client IP, on the e-mail request endpoints

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse comma-separated origins from environment variable"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v or []

    @field_validator('mail_transport')
    @classmethod
    def normalize_mail_transport(cls, v: str) -> str:
        return v.strip().lower()


@lru_cache()
def get_settings() -> Settings:
    return Settings()
