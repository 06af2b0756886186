from __future__ import annotations

import os
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_LINE_API_BASE = "https://api.line.me/v2/bot"
_DEFAULT_QUICKCHART_URL = "https://quickchart.io/chart"

class Settings(BaseSettings):
    # Deploy passes env vars; env_file is optional (missing file is fine).
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    daycare_env: str = "dev"

    # --- LINE Messaging API ---
    line_channel_access_token: Optional[str] = None
    line_channel_secret: Optional[str] = None
    line_api_base: str = _DEFAULT_LINE_API_BASE
    line_max_messages: int = 5
    http_timeout_seconds: float = 10.0

    # --- Spreadsheet (Apps Script web app) ---
    sheets_script_url: str = Field(default="", validate_default=True)
    sheets_cache_seconds: int = 300

    # --- Reports ---
    quickchart_base_url: str = _DEFAULT_QUICKCHART_URL
    cron_secret: Optional[str] = None
    report_timezone: str = "Asia/Taipei"
    report_window_days: int = 14
    chart_window_size: int = 14
    high_risk_threshold: int = 2

    otel_enabled: bool = False

    @field_validator("line_channel_access_token", "line_channel_secret", "cron_secret", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("sheets_script_url", mode="before")
    @classmethod
    def _coerce_sheets_url(cls, v):
        # Accept the older GOOGLE_SCRIPT_URL name used by the front-end deploy.
        if v:
            return str(v).strip()
        return os.getenv("GOOGLE_SCRIPT_URL", "").strip()

    @field_validator("line_api_base", "quickchart_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


settings = Settings()
