"""Optimization task definitions and extension routing."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..core.base import ConfigError

LOG = logging.getLogger(__name__)

PLACEHOLDERS = ("path", "folder", "name", "extension", "config_dir")


def normalize_extension(extension: str) -> str:
    """Lowercase an extension and drop its leading dot."""
    extension = extension.lower()
    return extension[1:] if extension.startswith(".") else extension


@dataclass(frozen=True)
class TaskStep:
    """A single external command in a task chain."""

    args: tuple[str, ...]
    timeout: float | None = None

    @property
    def executable(self) -> str:
        """Program the step runs."""
        return self.args[0]

    def render(self, values: dict[str, str]) -> list[str]:
        """Substitute placeholders in every argument."""
        try:
            return [arg.format_map(values) for arg in self.args]
        except (KeyError, IndexError, ValueError) as e:
            msg = f"Invalid placeholder in step command {' '.join(self.args)!r}: {e}"
            raise ConfigError(msg, cause=e) from e


@dataclass(frozen=True)
class Task:
    """A named chain of steps applied to files with matching extensions."""

    name: str
    extensions: frozenset[str]
    steps: tuple[TaskStep, ...]

    def claims(self, extension: str) -> bool:
        """Check whether this task handles the extension."""
        return normalize_extension(extension) in self.extensions


@dataclass(frozen=True)
class TaskConfiguration:
    """All tasks loaded at startup, in configuration order."""

    tasks: tuple[Task, ...] = ()
    config_dir: Path | None = None

    def __iter__(self):
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    def applies_to(self, extension: str) -> bool:
        """Check whether any task claims the extension."""
        return self.select(extension) is not None

    def select(self, extension: str) -> Task | None:
        """Return the first task in configuration order that claims the extension."""
        for task in self.tasks:
            if task.claims(extension):
                return task
        return None

    @property
    def extensions(self) -> set[str]:
        """Every extension claimed by at least one task."""
        claimed: set[str] = set()
        for task in self.tasks:
            claimed |= task.extensions
        return claimed

    @classmethod
    def load_from_file(cls, config_path: Path) -> TaskConfiguration:
        """Load task definitions from a YAML file."""
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            msg = f"Failed to load tasks from {config_path}: {e}"
            raise ConfigError(msg, file_path=config_path, cause=e) from e

        configuration = cls._from_dict(data or {}, config_dir=config_path.resolve().parent)
        LOG.info("Loaded %d tasks from %s", len(configuration), config_path)
        return configuration

    @classmethod
    def _from_dict(cls, data: dict[str, Any], config_dir: Path | None = None) -> TaskConfiguration:
        """Create the configuration from a parsed document."""
        if not isinstance(data, dict):
            msg = "Tasks file must contain a mapping with a 'tasks' list"
            raise ConfigError(msg)

        raw_tasks = data.get("tasks")
        if raw_tasks is None:
            raw_tasks = []
        if not isinstance(raw_tasks, list):
            msg = "'tasks' must be a list"
            raise ConfigError(msg)

        tasks: list[Task] = []
        seen_names: set[str] = set()
        for index, task_data in enumerate(raw_tasks):
            task = cls._parse_task(index, task_data)
            if task.name in seen_names:
                msg = f"Duplicate task name '{task.name}'"
                raise ConfigError(msg)
            seen_names.add(task.name)
            tasks.append(task)

        cls._warn_overlaps(tasks)
        return cls(tasks=tuple(tasks), config_dir=config_dir)

    @classmethod
    def _parse_task(cls, index: int, task_data: object) -> Task:
        """Parse one task entry."""
        if not isinstance(task_data, dict):
            msg = f"Task #{index} must be a mapping"
            raise ConfigError(msg)

        name = task_data.get("name")
        if not name:
            msg = f"Task #{index} is missing a name"
            raise ConfigError(msg)

        raw_extensions = task_data.get("extensions")
        if not raw_extensions or not isinstance(raw_extensions, list):
            msg = f"Task '{name}' needs a non-empty 'extensions' list"
            raise ConfigError(msg)
        extensions = frozenset(normalize_extension(str(ext)) for ext in raw_extensions)

        if "steps" in task_data:
            raw_steps = task_data["steps"]
        elif "command" in task_data:
            raw_steps = [{"command": task_data["command"], "timeout": task_data.get("timeout")}]
        else:
            raw_steps = None
        if not raw_steps or not isinstance(raw_steps, list):
            msg = f"Task '{name}' needs a 'command' or a non-empty 'steps' list"
            raise ConfigError(msg)

        steps = tuple(cls._parse_step(str(name), step) for step in raw_steps)
        return Task(name=str(name), extensions=extensions, steps=steps)

    @staticmethod
    def _parse_step(task_name: str, step_data: object) -> TaskStep:
        """Parse one step, given as a command string, an argument list or a mapping."""
        timeout = None
        command = step_data
        if isinstance(step_data, dict):
            command = step_data.get("command")
            timeout = step_data.get("timeout")

        if isinstance(command, str):
            args = tuple(shlex.split(command))
        elif isinstance(command, list):
            args = tuple(str(arg) for arg in command)
        else:
            args = ()
        if not args:
            msg = f"Task '{task_name}' has a step without a command"
            raise ConfigError(msg)

        if timeout is not None:
            try:
                timeout = float(timeout)
            except (TypeError, ValueError) as e:
                msg = f"Task '{task_name}' has an invalid step timeout: {timeout!r}"
                raise ConfigError(msg, cause=e) from e

        step = TaskStep(args=args, timeout=timeout)
        try:
            step.render(dict.fromkeys(PLACEHOLDERS, ""))
        except ConfigError as e:
            msg = f"Task '{task_name}': {e}"
            raise ConfigError(msg, cause=e) from e
        return step

    @staticmethod
    def _warn_overlaps(tasks: list[Task]) -> None:
        """Log extensions claimed by more than one task."""
        owner: dict[str, str] = {}
        for task in tasks:
            for extension in sorted(task.extensions):
                if extension in owner:
                    LOG.warning(
                        "Extension '%s' is claimed by tasks '%s' and '%s'; '%s' wins",
                        extension,
                        owner[extension],
                        task.name,
                        owner[extension],
                    )
                else:
                    owner[extension] = task.name
