import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from hireflow.core.paths import resolve_repo_path


def _env_files() -> list[str]:
    base = resolve_repo_path(".env")
    env = os.getenv("HF_ENVIRONMENT", "").strip().lower()
    files = [str(base)]
    if env and env != "development":
        files.append(str(resolve_repo_path(f".env.{env}")))
    else:
        files.append(str(resolve_repo_path(".env.local")))
    return files


class Settings(BaseSettings):
    app_name: str = "HireFlow"
    environment: str = "development"

    database_url: str
    redis_url: str = ""
    cors_origins: list[str] = []

    auth_mode: Literal["dev", "google"] = "dev"
    google_client_id: str = ""
    google_workspace_domain: str = ""
    google_application_credentials: str = "secrets/google-service-account.json"
    google_clock_skew_seconds: int = 180

    enable_gmail: bool = False
    enable_calendar: bool = False
    gmail_sender_email: str = "talent@hireflow.local"
    gmail_sender_name: str = "HireFlow Recruiting"
    calendar_id: str = "primary"
    calendar_timezone: str = "UTC"
    default_interview_minutes: int = 60

    public_base_url: str = "http://localhost:8000"
    offer_letter_dir: str = "generated/offer-letters"
    offer_letter_route: str = "/generated/offer-letters"

    enable_scheduler: bool = True
    scorecard_reminder_hours: int = 24

    audit_enabled: bool = True
    audit_max_value_length: int = 500

    model_config = SettingsConfigDict(env_prefix="HF_", env_file=_env_files(), extra="ignore")


settings = Settings()
