"""Core abstractions and utilities for the upload pipeline."""

from .base import (
    ConfigError,
    FileUnreadableError,
    NoProcessedFileError,
    OptimizerError,
    PipelineResult,
    PipelineStatus,
    ProcessingError,
    RecoveryError,
    UploadError,
    human_readable_size,
)
from .commands import CommandRunner, StepError
from .file_manager import FileManager
from .immich import ImmichClient
from .permits import PermitPool
from .pipeline import FilePipeline
from .watcher import FolderWatcher

__all__ = [
    "CommandRunner",
    "ConfigError",
    "FilePipeline",
    "FileManager",
    "FileUnreadableError",
    "FolderWatcher",
    "ImmichClient",
    "NoProcessedFileError",
    "OptimizerError",
    "PermitPool",
    "PipelineResult",
    "PipelineStatus",
    "ProcessingError",
    "RecoveryError",
    "StepError",
    "UploadError",
    "human_readable_size",
]
