"""Settings models loaded from ``config/settings.toml`` and the environment."""
from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Dict, Literal, Mapping, Optional

from pydantic import BaseModel, Field

DEFAULT_SETTINGS_PATH = Path("config/settings.toml")


class FetchSettings(BaseModel):
    """How individual pages are retrieved."""

    user_agent: str = "mailcrawl/0.1 (+contact discovery)"
    timeout_seconds: float = Field(default=30.0, gt=0)
    render_mode: Literal["http", "browser"] = "http"
    retries: int = Field(default=2, ge=1)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    respect_robots: bool = False


class CrawlSettings(BaseModel):
    """Breadth and concurrency bounds for one job's traversal."""

    max_pages: int = Field(default=20, gt=0)
    max_concurrency: int = Field(default=2, gt=0)
    nav_link_limit: int = Field(default=15, ge=0)
    fallback_link_limit: int = Field(default=5, ge=0)
    max_duration_seconds: float = Field(default=0, ge=0)


class PoolSettings(BaseModel):
    """Polling cadence and per-cycle limits for the worker pool."""

    max_concurrent_workers: int = Field(default=4, gt=0)
    batch_size: int = Field(default=5, gt=0)
    poll_interval_seconds: float = Field(default=2.0, ge=0)
    error_backoff_seconds: float = Field(default=5.0, ge=0)
    terminal_write_attempts: int = Field(default=4, ge=1)
    terminal_write_backoff_seconds: float = Field(default=1.0, ge=0)


class StorageSettings(BaseModel):
    backend: Literal["memory", "jsonfile"] = "jsonfile"
    path: Path = Path("data/jobs.json")


class LoggingSettings(BaseModel):
    config_path: Path = Path("config/logging.yaml")


class Settings(BaseModel):
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    crawl: CrawlSettings = Field(default_factory=CrawlSettings)
    pool: PoolSettings = Field(default_factory=PoolSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# env var -> (section, key)
_ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "MAX_CONCURRENT_WORKERS": ("pool", "max_concurrent_workers"),
    "WORKER_BATCH_SIZE": ("pool", "batch_size"),
    "MAILCRAWL_MAX_PAGES": ("crawl", "max_pages"),
    "MAILCRAWL_RENDER_MODE": ("fetch", "render_mode"),
    "MAILCRAWL_STORE_PATH": ("storage", "path"),
}


def apply_env_overrides(
    raw: Dict[str, Dict[str, object]],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Dict[str, object]]:
    """Overlay supported environment variables onto the raw settings mapping."""
    environ = os.environ if environ is None else environ
    merged = {section: dict(values) for section, values in raw.items()}
    for name, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(name)
        if value in (None, ""):
            continue
        merged.setdefault(section, {})[key] = value
    return merged


def load_settings(
    path: Path = DEFAULT_SETTINGS_PATH,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Read the TOML configuration file, apply env overrides and validate."""
    raw: Dict[str, Dict[str, object]] = {}
    if path.exists():
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    return Settings.model_validate(apply_env_overrides(raw, environ))
