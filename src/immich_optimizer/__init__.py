"""Immich upload optimizer - optimize files dropped into a folder and upload them to Immich."""

from __future__ import annotations

__version__ = "0.1.0"
__description__ = "Watch-folder optimizer and uploader for Immich"

# Public API exports
from .config import AppSettings, Task, TaskConfiguration, TaskStep
from .core import (
    CommandRunner,
    ConfigError,
    FileManager,
    FilePipeline,
    FileUnreadableError,
    FolderWatcher,
    ImmichClient,
    NoProcessedFileError,
    OptimizerError,
    PermitPool,
    PipelineResult,
    PipelineStatus,
    ProcessingError,
    RecoveryError,
    StepError,
    UploadError,
)
from .processors import ProcessedArtifact, ProcessingOutcome, TaskProcessor
from .service import OptimizerService

__all__ = [
    # Configuration
    "AppSettings",
    "Task",
    "TaskConfiguration",
    "TaskStep",
    # Core functionality
    "CommandRunner",
    "FileManager",
    "FilePipeline",
    "FolderWatcher",
    "ImmichClient",
    "OptimizerService",
    "PermitPool",
    "TaskProcessor",
    # Data classes
    "PipelineResult",
    "PipelineStatus",
    "ProcessedArtifact",
    "ProcessingOutcome",
    # Exceptions
    "ConfigError",
    "FileUnreadableError",
    "NoProcessedFileError",
    "OptimizerError",
    "ProcessingError",
    "RecoveryError",
    "StepError",
    "UploadError",
]
