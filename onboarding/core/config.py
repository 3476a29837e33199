import os
from dataclasses import dataclass
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from onboarding.core.paths import resolve_repo_path


def _env_files() -> list[str]:
    base = resolve_repo_path(".env")
    env = os.getenv("OB_ENVIRONMENT", "").strip().lower()
    files = [str(base)]
    if env and env != "development":
        files.append(str(resolve_repo_path(f".env.{env}")))
    else:
        files.append(str(resolve_repo_path(".env.local")))
    return files


class Settings(BaseSettings):
    app_name: str = "Onboarding Pipeline"
    environment: str = "development"

    database_url: str = "sqlite+aiosqlite:///./onboarding.db"
    auto_create_tables: bool = True

    auth_mode: Literal["dev", "google"] = "dev"
    google_client_id: str = ""
    google_workspace_domain: str = ""
    google_application_credentials: str = "secrets/google-service-account.json"
    google_clock_skew_seconds: int = 180

    mail_backend: Literal["gmail", "log", "disabled"] = "disabled"
    mail_sender_email: str = ""
    mail_sender_name: str = "Recruitment Team"

    public_app_origin: str = ""
    public_app_base_path: str = ""

    upload_root: str = "uploads"
    candidate_doc_max_bytes: int = 10 * 1024 * 1024
    candidate_doc_max_files: int = 5
    offer_letter_max_bytes: int = 8 * 1024 * 1024
    batch_max_size: int = 200

    organization_name: str = "Recruitment Team"
    organization_address: str = ""
    signatory_name: str = "Hiring Manager"
    signatory_title: str = "Head of People"
    candidate_password_suffix: str = "@team"
    default_offer_months: int = 3

    model_config = SettingsConfigDict(env_prefix="OB_", env_file=_env_files(), extra="ignore")


@dataclass(frozen=True)
class WorkflowConfig:
    """Immutable view of the settings the workflow services need."""

    public_app_origin: str
    public_app_base_path: str
    upload_root: str
    batch_max_size: int
    candidate_doc_max_files: int
    candidate_doc_max_bytes: int
    offer_letter_max_bytes: int
    organization_name: str
    organization_address: str
    signatory_name: str
    signatory_title: str
    candidate_password_suffix: str
    default_offer_months: int

    @classmethod
    def from_settings(cls, source: Settings) -> "WorkflowConfig":
        return cls(
            public_app_origin=source.public_app_origin,
            public_app_base_path=source.public_app_base_path,
            upload_root=source.upload_root,
            batch_max_size=source.batch_max_size,
            candidate_doc_max_files=source.candidate_doc_max_files,
            candidate_doc_max_bytes=source.candidate_doc_max_bytes,
            offer_letter_max_bytes=source.offer_letter_max_bytes,
            organization_name=source.organization_name,
            organization_address=source.organization_address,
            signatory_name=source.signatory_name,
            signatory_title=source.signatory_title,
            candidate_password_suffix=source.candidate_password_suffix,
            default_offer_months=source.default_offer_months,
        )


settings = Settings()
workflow_config = WorkflowConfig.from_settings(settings)
