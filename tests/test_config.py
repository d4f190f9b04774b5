from pathlib import Path

import pytest
from pydantic import ValidationError

from mailcrawl.config import apply_env_overrides, load_settings


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / "absent.toml", environ={})
    assert settings.pool.max_concurrent_workers == 4
    assert settings.pool.batch_size == 5
    assert settings.crawl.max_pages == 20
    assert settings.crawl.max_concurrency == 2
    assert settings.crawl.nav_link_limit == 15
    assert settings.crawl.fallback_link_limit == 5
    assert settings.fetch.render_mode == "http"
    assert settings.storage.backend == "jsonfile"


def test_toml_values_and_env_overrides(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text(
        "[crawl]\nmax_pages = 7\n\n[pool]\nbatch_size = 9\n\n[storage]\nbackend = \"memory\"\n",
        encoding="utf-8",
    )
    settings = load_settings(
        path,
        environ={
            "MAX_CONCURRENT_WORKERS": "8",
            "MAILCRAWL_MAX_PAGES": "3",
            "MAILCRAWL_STORE_PATH": "/tmp/jobs.json",
            "WORKER_BATCH_SIZE": "",
        },
    )
    assert settings.crawl.max_pages == 3
    assert settings.pool.max_concurrent_workers == 8
    assert settings.pool.batch_size == 9
    assert settings.storage.backend == "memory"
    assert settings.storage.path == Path("/tmp/jobs.json")


def test_env_overrides_do_not_mutate_input():
    raw = {"crawl": {"max_pages": 5}}
    merged = apply_env_overrides(raw, {"MAILCRAWL_MAX_PAGES": "9"})
    assert raw == {"crawl": {"max_pages": 5}}
    assert merged["crawl"]["max_pages"] == "9"


def test_invalid_values_are_rejected(tmp_path):
    with pytest.raises(ValidationError):
        load_settings(tmp_path / "absent.toml", environ={"MAILCRAWL_RENDER_MODE": "telepathy"})
    with pytest.raises(ValidationError):
        load_settings(tmp_path / "absent.toml", environ={"MAX_CONCURRENT_WORKERS": "0"})


def test_shipped_settings_file_loads():
    path = Path(__file__).resolve().parents[1] / "config" / "settings.toml"
    settings = load_settings(path, environ={})
    assert settings.crawl.max_pages == 20
    assert settings.pool.terminal_write_attempts == 4
