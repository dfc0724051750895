import os
import sys
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_WEAK_SECRETS = {"", "local-dev-secret", "replace-me", "test-signing-secret"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "OTA Update Server"
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"

    database_backend: Literal["sql", "json"] = "sql"
    database_dsn: str = "sqlite:///./ota_server.db"
    bundle_catalog_path: str = ""

    update_strategy: Literal["appVersion", "fingerprint"] = "appVersion"
    default_channel: str = "production"

    storage_backend: Literal["jwt", "s3"] = "jwt"
    storage_public_base_url: str = "http://localhost:8000/storage"
    storage_local_root: str = "./storage"
    signed_url_ttl_seconds: int = 3600
    signed_url_secret: str = "local-dev-secret"
    signed_url_algorithm: str = "HS256"
    s3_region: str = ""
    s3_endpoint_url: str = ""

    admin_api_token: str = ""
    log_level: str = "INFO"
    metrics_enabled: bool = False

    @model_validator(mode="after")
    def validate_production_guardrails(self) -> "Settings":
        if self.signed_url_ttl_seconds <= 0:
            raise ValueError("SIGNED_URL_TTL_SECONDS must be positive.")
        if self.database_backend == "json" and not self.bundle_catalog_path.strip():
            raise ValueError("DATABASE_BACKEND=json requires BUNDLE_CATALOG_PATH.")
        if not self.default_channel.strip():
            raise ValueError("DEFAULT_CHANNEL must not be empty.")

        if self.app_env.lower() != "production":
            return self

        if self.database_backend == "sql" and self.database_dsn.startswith("sqlite"):
            raise ValueError("Production requires DATABASE_DSN backed by PostgreSQL.")
        if self.storage_backend == "jwt":
            if self.signed_url_secret in _WEAK_SECRETS or len(self.signed_url_secret) < 32:
                raise ValueError("Production requires SIGNED_URL_SECRET with at least 32 characters.")
        if not self.admin_api_token.strip() or len(self.admin_api_token) < 24:
            raise ValueError("Production requires ADMIN_API_TOKEN with at least 24 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    app_env = os.getenv("APP_ENV", "").lower()
    is_pytest_runtime = "pytest" in sys.modules
    if app_env == "test" or (not app_env and is_pytest_runtime):
        def _env_or_default(name: str, default: str) -> str:
            value = os.getenv(name)
            if value is None:
                return default
            stripped = value.strip()
            return stripped if stripped else default

        return Settings(
            app_env="test",
            database_dsn=_env_or_default("DATABASE_DSN", "sqlite:///./ota_server_test.db"),
            signed_url_secret=_env_or_default("SIGNED_URL_SECRET", "test-signing-secret"),
            storage_public_base_url=_env_or_default("STORAGE_PUBLIC_BASE_URL", "http://testserver/storage"),
            admin_api_token=_env_or_default("ADMIN_API_TOKEN", "test-admin-token"),
        )
    return Settings()
