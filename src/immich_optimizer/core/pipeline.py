"""Per-file pipeline: validate, optimize, choose an artifact, upload, then clean up or quarantine."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from .base import (
    FileUnreadableError,
    NoProcessedFileError,
    PipelineResult,
    PipelineStatus,
    ProcessingError,
    RecoveryError,
    UploadError,
    file_logger,
    human_readable_size,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from ..config.tasks import TaskConfiguration
    from ..processors.task_processor import ProcessingOutcome, TaskProcessor
    from .file_manager import FileManager
    from .immich import ImmichClient

    ProcessorFactory = Callable[[Path], TaskProcessor]
    Logger = logging.Logger | logging.LoggerAdapter

LOG = logging.getLogger(__name__)


class FilePipeline:
    """
    Handles one file-ready event at a time per call.

    Instances hold no per-file state, so ``process_file`` may run on many
    threads at once. The only shared mutable resource is the permit pool the
    processor factory hands to each ``TaskProcessor``.
    """

    def __init__(
        self,
        tasks: TaskConfiguration,
        uploader: ImmichClient,
        file_manager: FileManager,
        processor_factory: ProcessorFactory,
        *,
        delete_on_upload: bool = False,
    ) -> None:
        self.tasks = tasks
        self.uploader = uploader
        self.file_manager = file_manager
        self.processor_factory = processor_factory
        self.delete_on_upload = delete_on_upload

    def process_file(self, file_path: Path) -> PipelineResult:
        """Run the whole pipeline for one file."""
        start_time = time.time()
        log = file_logger(LOG, file_path)
        result = self._run(file_path, log)
        result.processing_time = time.time() - start_time
        return result

    def _run(self, file_path: Path, log: Logger) -> PipelineResult:
        message = self._validate(file_path, log)
        if message:
            return PipelineResult(source_file=file_path, status=PipelineStatus.REJECTED, message=message)

        log.info("Processing file")

        if not self.tasks.applies_to(file_path.suffix):
            log.info("Skipping optimization (extension '%s' not configured for processing)", file_path.suffix)
            return self._upload(file_path, file_path, file_path.name, optimized=False, log=log)

        try:
            processor = self.processor_factory(file_path)
        except FileUnreadableError as e:
            log.error("Error creating task processor: %s", e)
            return PipelineResult(source_file=file_path, status=PipelineStatus.REJECTED, message=str(e))

        with processor:
            try:
                outcome = processor.process(self.tasks)
            except ProcessingError as e:
                log.error("Error processing file: %s", e)
                quarantined = self._quarantine(file_path, file_path, log)
                return PipelineResult(
                    source_file=file_path,
                    status=PipelineStatus.QUARANTINED,
                    message=str(e),
                    original_size=processor.original_size,
                    metadata={"stage": "optimize", "recovery_copy": quarantined},
                )
            return self._upload_outcome(file_path, processor, outcome, log)

    def _validate(self, file_path: Path, log: Logger) -> str:
        """Return a rejection message, or an empty string when the file can be handled."""
        try:
            file_path.stat()
        except OSError as e:
            log.error("Error getting file info: %s", e)
            return f"Unable to stat file: {e}"
        if file_path.is_dir():
            log.debug("Ignoring directory")
            return "Path is a directory"
        return ""

    def _upload_outcome(
        self,
        file_path: Path,
        processor: TaskProcessor,
        outcome: ProcessingOutcome,
        log: Logger,
    ) -> PipelineResult:
        """Upload the processed artifact if it is strictly smaller, otherwise the original."""
        if not outcome.is_improvement:
            log.info("No optimization achieved, uploading original")
            result = self._upload(file_path, file_path, file_path.name, optimized=False, log=log)
            result.original_size = outcome.original_size
            result.new_size = outcome.processed_size
            return result

        try:
            processed_path = processor.processed_file_path()
        except NoProcessedFileError as e:
            log.warning("Error getting processed file path: %s", e)
            return self._upload(file_path, file_path, file_path.name, optimized=False, log=log)

        filename = processor.processed_filename or file_path.name
        log.info(
            "Uploading optimized file: %s -> %s",
            human_readable_size(outcome.original_size),
            human_readable_size(outcome.processed_size),
        )
        result = self._upload(file_path, processed_path, filename, optimized=True, log=log)
        result.original_size = outcome.original_size
        result.new_size = outcome.processed_size
        return result

    def _upload(
        self,
        original_path: Path,
        upload_path: Path,
        filename: str,
        *,
        optimized: bool,
        log: Logger,
    ) -> PipelineResult:
        """Upload one artifact and apply the cleanup or recovery rule for the outcome."""
        try:
            self.uploader.upload(upload_path, filename)
        except UploadError as e:
            log.error("Error uploading %s: %s", upload_path, e)
            quarantined = self._quarantine(upload_path, original_path, log)
            return PipelineResult(
                source_file=original_path,
                status=PipelineStatus.QUARANTINED,
                message=str(e),
                optimized=optimized,
                metadata={"stage": "upload", "status_code": e.status_code, "recovery_copy": quarantined},
            )

        # An uploaded optimized artifact supersedes the original.
        deleted = False
        if optimized or self.delete_on_upload:
            deleted = self._delete_original(original_path, log)

        return PipelineResult(
            source_file=original_path,
            status=PipelineStatus.UPLOADED,
            optimized=optimized,
            uploaded_file=upload_path,
            uploaded_filename=filename,
            original_deleted=deleted,
        )

    def _quarantine(self, file_path: Path, original_path: Path, log: Logger) -> bool:
        try:
            self.file_manager.quarantine(file_path, original_path)
        except RecoveryError as e:
            log.error("Error copying file to undone directory: %s", e)
            return False
        return True

    def _delete_original(self, file_path: Path, log: Logger) -> bool:
        try:
            self.file_manager.delete_from_watch(file_path)
        except RecoveryError as e:
            log.error("Error removing file after upload: %s", e)
            return False
        return True
