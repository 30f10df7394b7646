from __future__ import annotations

import os

from pydantic import AliasChoices, Field

from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_origins(value: str | None) -> list[str]:
    if not value:
        return []
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def _parse_ids(value: str | None) -> list[int]:
    if not value:
        return []
    return [int(part) for part in value.split(",") if part.strip()]


def _env_files() -> list[str]:
    env = os.getenv("RP_ENVIRONMENT", "").strip().lower()
    files = [".env"]
    if env and env != "development":
        files.append(f".env.{env}")
    else:
        files.append(".env.local")
    return files


class Settings(BaseSettings):
    app_name: str = "Resource Portal"
    environment: str = "development"
    organisation_name: str = "Unisouk"

    database_url: str = Field(
        default="sqlite+aiosqlite:///./resource_portal.db",
        validation_alias=AliasChoices("RP_DATABASE_URL", "DATABASE_URL"),
    )

    cors_origins_csv: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias=AliasChoices("RP_CORS_ORIGINS", "RP_CORS_ORIGINS_CSV"),
    )

    auto_create_schema: bool = False
    seed_on_startup: bool = False

    # When set, identity headers must match an employee record.
    require_known_employee: bool = False
    default_user_email: str = "demo@example.com"
    default_user_roles: str = "EMPLOYEE"

    # Only enable behind a proxy that overwrites X-Forwarded-For.
    trust_forwarded_for: bool = False
    slow_request_ms: int = 1000

    default_page_size: int = 20
    max_page_size: int = 100

    # Resources quick-assigned to new hires when onboarding names none.
    onboarding_resource_ids_csv: str = Field(
        default="",
        validation_alias=AliasChoices("RP_ONBOARDING_RESOURCE_IDS", "RP_ONBOARDING_RESOURCE_IDS_CSV"),
    )

    model_config = SettingsConfigDict(env_prefix="RP_", env_file=_env_files(), extra="ignore")

    @property
    def cors_origins(self) -> list[str]:
        return _parse_origins(self.cors_origins_csv)

    @property
    def onboarding_resource_ids(self) -> list[int]:
        return _parse_ids(self.onboarding_resource_ids_csv)


settings = Settings()
