"""Configuration management for the upload optimizer."""

from __future__ import annotations

from .constants import *  # noqa: F403
from .settings import AppSettings
from .tasks import Task, TaskConfiguration, TaskStep, normalize_extension

__all__ = [
    "AppSettings",
    "Task",
    "TaskConfiguration",
    "TaskStep",
    "normalize_extension",
]
