"""Base types, results and exceptions for the upload pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

LOG = logging.getLogger(__name__)

KB = 1 << 10
MB = 1 << 20
GB = 1 << 30
TB = 1 << 40


class PipelineStatus(Enum):
    """Terminal state of one file's pipeline run."""

    REJECTED = "rejected"
    UPLOADED = "uploaded"
    QUARANTINED = "quarantined"
    ERROR = "error"


@dataclass
class PipelineResult:
    """Result of running one file through the pipeline."""

    source_file: Path
    status: PipelineStatus
    message: str = ""
    optimized: bool = False
    uploaded_file: Path | None = None
    uploaded_filename: str | None = None
    original_deleted: bool = False
    original_size: int | None = None
    new_size: int | None = None
    processing_time: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


class OptimizerError(Exception):
    """Base exception for optimizer errors."""

    def __init__(
        self,
        message: str,
        file_path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.file_path = file_path
        self.cause = cause


class ConfigError(OptimizerError):
    """Invalid startup configuration."""


class FileUnreadableError(OptimizerError):
    """The source file could not be stat'ed or opened."""


class ProcessingError(OptimizerError):
    """An optimization task could not be completed."""


class NoProcessedFileError(ProcessingError):
    """No processed artifact exists for the file."""


class RecoveryError(OptimizerError):
    """Copying to or deleting from the managed directories failed."""


class UploadError(OptimizerError):
    """The asset server rejected the upload or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        file_path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, file_path=file_path, cause=cause)
        self.status_code = status_code
        self.body = body


class FileLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the file it concerns."""

    def process(self, msg: object, kwargs: Any) -> tuple[object, Any]:
        return f"file {self.extra['file']}: {msg}", kwargs


def file_logger(logger: logging.Logger, file_path: Path) -> FileLoggerAdapter:
    """Create a logger whose lines name the file being handled."""
    return FileLoggerAdapter(logger, {"file": file_path})


def human_readable_size(size: int) -> str:
    """Format a byte count the way log lines show it."""
    if size >= TB:
        return f"{size / TB:.2f} TB"
    if size >= GB:
        return f"{size / GB:.2f} GB"
    if size >= MB:
        return f"{size / MB:.2f} MB"
    if size >= KB:
        return f"{size / KB:.2f} KB"
    return f"{size} bytes"
