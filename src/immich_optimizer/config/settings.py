"""Application settings from flags, environment variables and defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from ..core.base import ConfigError
from .constants import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_MAX_CONCURRENT_TASKS,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    DEFAULT_TASKS_FILE,
    DEFAULT_UNDONE_DIR,
    DEFAULT_WATCH_DIR,
    DIRECTORY_MODE,
    ENV_PREFIX,
    FALSE_VALUES,
    MIN_API_KEY_LENGTH,
    TRUE_VALUES,
)
from .tasks import TaskConfiguration

if TYPE_CHECKING:
    import argparse
    from collections.abc import Mapping

LOG = logging.getLogger(__name__)


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean, got {value!r}"
    raise ConfigError(msg)


@dataclass
class AppSettings:
    """Everything the service needs to run, validated once at startup."""

    immich_url: str = ""
    immich_api_key: str = ""
    watch_dir: Path = field(default_factory=lambda: Path(DEFAULT_WATCH_DIR))
    undone_dir: Path = field(default_factory=lambda: Path(DEFAULT_UNDONE_DIR))
    tasks_file: Path | None = field(default_factory=lambda: Path(DEFAULT_TASKS_FILE))
    work_dir: Path | None = None
    delete_on_upload: bool = False
    max_concurrent_tasks: int = DEFAULT_MAX_CONCURRENT_TASKS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE_SECONDS
    tasks: TaskConfiguration = field(default_factory=TaskConfiguration, repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppSettings:
        """Read ``IUO_*`` variables on top of the defaults."""
        environ = os.environ if environ is None else environ
        settings = cls()
        for setting in fields(cls):
            if setting.name == "tasks":
                continue
            key = f"{ENV_PREFIX}{setting.name.upper()}"
            if key in environ:
                settings._set(setting.name, environ[key], source=key)
        return settings

    def apply_args(self, args: argparse.Namespace) -> AppSettings:
        """Override settings with command-line flags that were given."""
        for setting in fields(self):
            value = getattr(args, setting.name, None)
            if value is not None and setting.name != "tasks":
                self._set(setting.name, value, source=f"--{setting.name}")
        return self

    def _set(self, name: str, value: Any, *, source: str) -> None:
        """Assign a raw value, converting it to the field's type."""
        current = getattr(self, name)
        try:
            if name in {"watch_dir", "undone_dir", "tasks_file", "work_dir"}:
                converted: Any = Path(value) if value not in ("", None) else None
            elif isinstance(current, bool):
                converted = value if isinstance(value, bool) else _parse_bool(source, str(value))
            elif isinstance(current, int):
                converted = int(value)
            elif isinstance(current, float):
                converted = float(value)
            else:
                converted = str(value)
        except (TypeError, ValueError) as e:
            msg = f"Invalid value for {source}: {value!r}"
            raise ConfigError(msg, cause=e) from e
        setattr(self, name, converted)

    def validate(self, *, require_server: bool = True) -> AppSettings:
        """Check settings, create the managed directories and load the tasks file."""
        if require_server:
            self._validate_server()

        if self.max_concurrent_tasks < 1:
            msg = "max_concurrent_tasks must be at least 1"
            raise ConfigError(msg)
        if self.http_timeout <= 0:
            msg = "http_timeout must be positive"
            raise ConfigError(msg)
        if self.tasks_file is None:
            msg = "the --tasks_file flag is required"
            raise ConfigError(msg)

        self.watch_dir = self._ensure_directory(self.watch_dir, "watch")
        self.undone_dir = self._ensure_directory(self.undone_dir, "undone")
        if self.work_dir is not None:
            self.work_dir = self._ensure_directory(self.work_dir, "work")

        self.tasks = TaskConfiguration.load_from_file(self.tasks_file)
        return self

    def _validate_server(self) -> None:
        if not self.immich_url:
            msg = "the --immich_url flag is required"
            raise ConfigError(msg)

        parsed = urlparse(self.immich_url)
        if parsed.scheme not in {"http", "https"}:
            msg = "immich_url must use http or https scheme"
            raise ConfigError(msg)
        if not parsed.netloc:
            msg = "immich_url must include a valid host"
            raise ConfigError(msg)

        if not self.immich_api_key:
            msg = "the --immich_api_key flag is required"
            raise ConfigError(msg)
        if len(self.immich_api_key.strip()) < MIN_API_KEY_LENGTH:
            msg = f"immich_api_key appears to be too short (minimum {MIN_API_KEY_LENGTH} characters)"
            raise ConfigError(msg)

    @staticmethod
    def _ensure_directory(directory: Path, label: str) -> Path:
        try:
            directory.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Error creating {label} directory {directory}: {e}"
            raise ConfigError(msg, file_path=directory, cause=e) from e
        return directory.absolute()
