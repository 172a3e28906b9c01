"""Tests for application settings."""

from __future__ import annotations

import argparse

import pytest

from immich_optimizer.config import AppSettings
from immich_optimizer.core import ConfigError

API_KEY = "0123456789abcdef"


@pytest.fixture
def tasks_file(tmp_path):
    path = tmp_path / "tasks.yaml"
    path.write_text("tasks:\n  - name: png\n    command: oxipng {path}\n    extensions: [png]\n", encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path, tasks_file) -> AppSettings:
    return AppSettings(
        immich_url="http://immich-server:2283",
        immich_api_key=API_KEY,
        watch_dir=tmp_path / "watch",
        undone_dir=tmp_path / "undone",
        tasks_file=tasks_file,
    )


def test_defaults() -> None:
    settings = AppSettings.from_env({})

    assert str(settings.watch_dir) == "/watch"
    assert str(settings.undone_dir) == "/undone"
    assert settings.delete_on_upload is False
    assert settings.max_concurrent_tasks == 10
    assert settings.http_timeout == 120.0


def test_from_env() -> None:
    settings = AppSettings.from_env(
        {
            "IUO_IMMICH_URL": "https://photos.example.com",
            "IUO_IMMICH_API_KEY": API_KEY,
            "IUO_WATCH_DIR": "/data/in",
            "IUO_DELETE_ON_UPLOAD": "true",
            "IUO_MAX_CONCURRENT_TASKS": "3",
            "IUO_HTTP_TIMEOUT": "30",
            "UNRELATED": "x",
        }
    )

    assert settings.immich_url == "https://photos.example.com"
    assert str(settings.watch_dir) == "/data/in"
    assert settings.delete_on_upload is True
    assert settings.max_concurrent_tasks == 3
    assert settings.http_timeout == 30.0


@pytest.mark.parametrize(("key", "value"), [("IUO_DELETE_ON_UPLOAD", "maybe"), ("IUO_MAX_CONCURRENT_TASKS", "ten")])
def test_invalid_env_values(key, value) -> None:
    with pytest.raises(ConfigError):
        AppSettings.from_env({key: value})


def test_flags_override_env() -> None:
    settings = AppSettings.from_env({"IUO_IMMICH_URL": "http://from-env:2283", "IUO_DELETE_ON_UPLOAD": "yes"})
    args = argparse.Namespace(immich_url="http://from-flag:2283", delete_on_upload=None, max_concurrent_tasks=4)

    settings.apply_args(args)

    assert settings.immich_url == "http://from-flag:2283"
    assert settings.delete_on_upload is True
    assert settings.max_concurrent_tasks == 4


def test_validate_creates_directories_and_loads_tasks(settings, tmp_path) -> None:
    settings.validate()

    assert (tmp_path / "watch").is_dir()
    assert (tmp_path / "undone").is_dir()
    assert settings.watch_dir.is_absolute()
    assert settings.tasks.applies_to("png")


@pytest.mark.parametrize(
    ("field", "value", "message"),
    [
        ("immich_url", "", "immich_url flag is required"),
        ("immich_url", "ftp://immich:21", "http or https"),
        ("immich_url", "http://", "valid host"),
        ("immich_api_key", "", "immich_api_key flag is required"),
        ("immich_api_key", "  short   ", "too short"),
        ("max_concurrent_tasks", 0, "at least 1"),
        ("tasks_file", None, "tasks_file flag is required"),
    ],
)
def test_validate_rejects(settings, field, value, message) -> None:
    setattr(settings, field, value)

    with pytest.raises(ConfigError, match=message):
        settings.validate()


def test_validate_without_server(settings) -> None:
    settings.immich_url = ""
    settings.immich_api_key = ""

    settings.validate(require_server=False)

    assert len(settings.tasks) == 1


def test_validate_missing_tasks_file(settings, tmp_path) -> None:
    settings.tasks_file = tmp_path / "missing.yaml"

    with pytest.raises(ConfigError, match="Failed to load tasks"):
        settings.validate()
