"""Configuration models and YAML loader for the session keeper."""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

# Named launch-argument presets. "visible" replaces the old collection of
# window-finding scripts: it pins size/position and stops Chromium from
# throttling a backgrounded window.
LAUNCH_ARGS_PRESETS: dict[str, tuple[str, ...]] = {
    "default": (
        "--no-first-run",
        "--disable-dev-shm-usage",
        "--start-maximized",
    ),
    "visible": (
        "--no-first-run",
        "--disable-dev-shm-usage",
        "--start-maximized",
        "--window-size=1200,800",
        "--window-position=100,100",
        "--force-device-scale-factor=1",
        "--disable-background-timer-throttling",
        "--disable-backgrounding-occluded-windows",
        "--disable-renderer-backgrounding",
    ),
}

LOGIN_SCORE_THRESHOLD = 2


class BrowserConfig(BaseModel):
    """Browser session configuration."""

    user_data_dir: str = "browser-data"
    headless: bool = False
    args_preset: Literal["default", "visible"] = "default"
    timeout_ms: int = Field(default=30000, ge=1000)
    navigation_timeout_ms: int = Field(default=30000, ge=1000)
    settle_delay_ms: int = Field(default=3000, ge=0)
    init_wait_timeout_s: float = Field(default=30.0, gt=0)
    probe_timeout_s: float = Field(default=5.0, gt=0)

    @property
    def launch_args(self) -> list[str]:
        return list(LAUNCH_ARGS_PRESETS[self.args_preset])


class CookieConfig(BaseModel):
    """Where the cookie file lives."""

    path: str = "cookies.json"


class LoginConfig(BaseModel):
    """Login verdict threshold and login-window timing."""

    threshold: int = Field(default=LOGIN_SCORE_THRESHOLD, ge=0, le=10)
    status_memo_seconds: float = Field(default=2.0, ge=0)
    login_wait_timeout_s: float = Field(default=300.0, gt=0)
    poll_interval_s: float = Field(default=5.0, gt=0)


class GateConfig(BaseModel):
    """Cooldown and staleness for the login-attempt gate."""

    cooldown_s: float = Field(default=10.0, ge=0)
    stale_after_s: float = Field(default=300.0, gt=0)
    max_failed_attempts: int | None = Field(default=3, ge=1)

    @model_validator(mode="after")
    def stale_exceeds_cooldown(self) -> "GateConfig":
        if self.stale_after_s <= self.cooldown_s:
            msg = "stale_after_s must be greater than cooldown_s"
            raise ValueError(msg)
        return self


class BatchConfig(BaseModel):
    """Keywords to search once a session is authenticated."""

    keywords: list[str] = Field(default_factory=list)
    delay_min_s: float = Field(default=3.0, ge=0)
    delay_max_s: float = Field(default=7.0, ge=0)

    @field_validator("keywords")
    @classmethod
    def keywords_not_empty(cls, v: list[str]) -> list[str]:
        cleaned = [kw.strip() for kw in v]
        if any(not kw for kw in cleaned):
            msg = "keywords must not be empty"
            raise ValueError(msg)
        return cleaned


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/search_runs.db"


class LoggingConfig(BaseModel):
    """Logging tweaks."""

    dedup_window_s: float = Field(default=5.0, ge=0)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    cookies: CookieConfig = Field(default_factory=CookieConfig)
    login: LoginConfig = Field(default_factory=LoginConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return cls.model_validate(raw)
