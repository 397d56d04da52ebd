"""
Application configuration: single source of truth.

All environment variables are defined in the root .env file.
This module loads them via pydantic-settings and exposes a singleton `settings`.
"""

import logging
import warnings
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator

_config_logger = logging.getLogger("twistpay.config")

# Resolve paths relative to repo root (two levels up from this file)
_REPO_ROOT = Path(__file__).resolve().parent.parent.parent  # backend/twistpay/config.py → repo root
_ENV_FILE = _REPO_ROOT / ".env"


class Settings(BaseSettings):
    # ── General ──────────────────────────────────────────────
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # ── Storage (append-only log + derived JSON stores) ──────
    data_dir: str = Field(default="/mnt/data")
    webhook_log_paths: str = Field(
        default="",
        description="Comma-separated log files; the first one receives appends",
    )
    code_db_path: str = Field(default="")
    payload_index_path: str = Field(default="")

    # ── Shared-secret API keys ───────────────────────────────
    get_api_key: str = Field(default="")
    post_api_key: str = Field(default="")

    # ── Card validation ──────────────────────────────────────
    card_issuer_prefix: str = Field(default="62840010", min_length=8, max_length=8)

    # ── OTP verification collaborator ────────────────────────
    otp_provider: str = Field(default="http")
    otp_verify_url: str = Field(default="")
    otp_timeout_seconds: float = Field(default=8.0, gt=0)
    otp_confirmation_ttl_minutes: int = Field(default=10, ge=1)
    otp_mock_code: str = Field(default="000000")

    # ── ActiveCampaign (CRM) ─────────────────────────────────
    ac_base_url: str = Field(default="")
    ac_api_key: str = Field(default="")

    # ── CORS ─────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000")

    @model_validator(mode="after")
    def _resolve_storage_paths(self) -> "Settings":
        """Fill file locations that were left blank from DATA_DIR."""
        data_dir = Path(self.data_dir)
        if not self.webhook_log_paths.strip():
            self.webhook_log_paths = str(data_dir / "webhook_logs.txt")
        if not self.code_db_path:
            self.code_db_path = str(data_dir / "code.json")
        if not self.payload_index_path:
            self.payload_index_path = str(data_dir / "payload_index.json")
        _config_logger.debug("Record log files: %s", self.webhook_log_paths)
        return self

    @model_validator(mode="after")
    def _warn_missing_keys(self) -> "Settings":
        """In production the API keys are mandatory."""
        if not self.get_api_key and not self.post_api_key:
            if self.environment != "development":
                raise ValueError(
                    "GET_API_KEY or POST_API_KEY must be set in non-development environments."
                )
            warnings.warn(
                "GET_API_KEY/POST_API_KEY not set; protected endpoints will reject every request.",
                stacklevel=2,
            )
        return self

    @property
    def log_path_list(self) -> list[str]:
        return [p.strip() for p in self.webhook_log_paths.split(",") if p.strip()]

    @property
    def store_status_api_key(self) -> str:
        return self.post_api_key or self.get_api_key

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    model_config = {
        "env_file": str(_ENV_FILE),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
