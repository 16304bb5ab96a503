"""Configuration settings using Pydantic."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Portal REST backend configuration."""
    model_config = SettingsConfigDict(env_prefix="API_")

    base_url: str = "http://localhost:4005/api"
    timeout_seconds: float = 30.0
    verify_ssl: bool = True

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)


class OtpSettings(BaseSettings):
    """One-time passcode configuration."""
    model_config = SettingsConfigDict(env_prefix="OTP_")

    code_length: int = 6
    expiry_seconds: int = 600  # mirrors the server TTL


class StorageSettings(BaseSettings):
    """Draft storage configuration."""
    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_path: str = "./data"
    persist_drafts: bool = True


class FormSettings(BaseSettings):
    """Complaint form configuration."""
    model_config = SettingsConfigDict(env_prefix="FORM_")

    mode: str = "guest"  # guest, citizen


class LogSettings(BaseSettings):
    """Logging configuration."""
    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    api: ApiSettings = Field(default_factory=ApiSettings)
    otp: OtpSettings = Field(default_factory=OtpSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    form: FormSettings = Field(default_factory=FormSettings)
    log: LogSettings = Field(default_factory=LogSettings)


def configure_logging(settings: LogSettings) -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.level.upper(), logging.INFO),
        format=settings.format,
    )
