"""Runs the optimization chain for a single file in a private working directory."""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..config.tasks import normalize_extension
from ..core.base import (
    ConfigError,
    FileUnreadableError,
    NoProcessedFileError,
    ProcessingError,
    file_logger,
    human_readable_size,
)
from ..core.commands import CommandRunner

if TYPE_CHECKING:
    from ..config.tasks import Task, TaskConfiguration
    from ..core.permits import PermitPool

LOG = logging.getLogger(__name__)

WORK_DIR_PREFIX = "iuo-"


@dataclass(frozen=True)
class ProcessedArtifact:
    """A replacement file produced by a task chain."""

    path: Path
    size: int
    filename: str


@dataclass(frozen=True)
class ProcessingOutcome:
    """Sizes of the original and of the artifact a chain produced, if any."""

    original_size: int
    artifact: ProcessedArtifact | None = None
    task_name: str | None = None

    @property
    def processed_size(self) -> int:
        """Size of the artifact, 0 when there is none."""
        return self.artifact.size if self.artifact else 0

    @property
    def is_improvement(self) -> bool:
        """True when the artifact exists, is not empty and is strictly smaller."""
        return self.artifact is not None and 0 < self.artifact.size < self.original_size


class TaskProcessor:
    """
    Applies the matching task chain to a copy of one file.

    The source file is copied into a temporary working directory and every
    step runs against that copy, so the watched original is never modified.
    Use as a context manager; ``close`` removes the working directory and
    any artifact left in it.
    """

    def __init__(
        self,
        file_path: Path,
        permits: PermitPool,
        *,
        work_root: Path | None = None,
        config_dir: Path | None = None,
        runner: CommandRunner | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.file_path = file_path
        self.permits = permits
        self.work_root = work_root
        self.config_dir = config_dir
        self.runner = runner or CommandRunner()
        self.logger = logger or file_logger(LOG, file_path)
        self.original_size = 0
        self.work_dir: Path | None = None
        self.outcome: ProcessingOutcome | None = None
        self._closed = False

    @classmethod
    def open(
        cls,
        file_path: Path,
        permits: PermitPool,
        **kwargs: object,
    ) -> TaskProcessor:
        """Create a processor with its own copy of the file."""
        processor = cls(file_path, permits, **kwargs)  # type: ignore[arg-type]
        try:
            processor._prepare()
        except BaseException:
            processor.close()
            raise
        return processor

    def __enter__(self) -> TaskProcessor:
        return self

    def __exit__(self, _exc_type: object, _exc_val: object, _exc_tb: object) -> None:
        self.close()

    def _prepare(self) -> None:
        """Record the original size and copy the file into a fresh working directory."""
        try:
            stat = self.file_path.stat()
        except OSError as e:
            msg = f"Unable to stat {self.file_path}: {e}"
            raise FileUnreadableError(msg, file_path=self.file_path, cause=e) from e
        if self.file_path.is_dir():
            msg = f"{self.file_path} is a directory"
            raise FileUnreadableError(msg, file_path=self.file_path)

        self.original_size = stat.st_size
        try:
            if self.work_root is not None:
                self.work_root.mkdir(parents=True, exist_ok=True)
            self.work_dir = Path(tempfile.mkdtemp(prefix=WORK_DIR_PREFIX, dir=self.work_root))
            shutil.copy2(self.file_path, self.work_dir / self.file_path.name)
        except OSError as e:
            msg = f"Unable to prepare working copy of {self.file_path}: {e}"
            raise FileUnreadableError(msg, file_path=self.file_path, cause=e) from e

    def process(self, tasks: TaskConfiguration) -> ProcessingOutcome:
        """Run the applicable chain and record the artifact it leaves behind."""
        work_dir = self.work_dir
        if work_dir is None or self._closed:
            msg = "Processor is not open"
            raise ProcessingError(msg, file_path=self.file_path)

        task = tasks.select(self.file_path.suffix)
        if task is None:
            self.logger.info("No task claims extension '%s'", normalize_extension(self.file_path.suffix))
            self.outcome = ProcessingOutcome(original_size=self.original_size)
            return self.outcome

        with self.permits.permit():
            current = self._run_chain(task, work_dir)

        size = current.stat().st_size
        self.outcome = ProcessingOutcome(
            original_size=self.original_size,
            artifact=ProcessedArtifact(path=current, size=size, filename=current.name),
            task_name=task.name,
        )
        self.logger.info(
            "Task '%s' finished: %s -> %s",
            task.name,
            human_readable_size(self.original_size),
            human_readable_size(size),
        )
        return self.outcome

    def _run_chain(self, task: Task, work_dir: Path) -> Path:
        """
        Run every step of the task in order, returning the final file.

        ``{path}`` names the step's input. The input stays current while it
        exists, so a step may add files next to it; once a step removes it,
        the one file left in its place becomes the input of the next step.
        When the chain ends, the working directory must hold exactly one file.
        """
        current = work_dir / self.file_path.name

        for number, step in enumerate(task.steps, start=1):
            values = {
                "folder": str(work_dir),
                "name": current.stem,
                "extension": current.suffix[1:],
                "path": str(current),
                "config_dir": str(self.config_dir or ""),
            }
            try:
                command = step.render(values)
            except ConfigError as e:
                raise ProcessingError(str(e), file_path=self.file_path, cause=e) from e

            self.logger.debug("Task '%s' step %d/%d: %s", task.name, number, len(task.steps), step.executable)
            self.runner.run(command, cwd=work_dir, timeout=step.timeout, file_path=self.file_path)
            current = self._next_input(task, number, work_dir, current)

        files = self._files(work_dir)
        if len(files) != 1:
            msg = (
                f"Task '{task.name}' must leave exactly one file in the working directory, "
                f"found: {self._names(files)}"
            )
            raise ProcessingError(msg, file_path=self.file_path)
        return files[0]

    def _next_input(self, task: Task, step_number: int, work_dir: Path, current: Path) -> Path:
        """Return the file the next step works on."""
        if current.is_file():
            return current

        files = self._files(work_dir)
        if len(files) != 1:
            msg = (
                f"Task '{task.name}' step {step_number} removed {current.name} and left "
                f"{self._names(files)}; expected exactly one file to take its place"
            )
            raise ProcessingError(msg, file_path=self.file_path)
        return files[0]

    @staticmethod
    def _files(work_dir: Path) -> list[Path]:
        return sorted(f for f in work_dir.iterdir() if f.is_file())

    @staticmethod
    def _names(files: list[Path]) -> str:
        return ", ".join(f.name for f in files) or "none"

    @property
    def processed_size(self) -> int:
        """Size of the processed artifact, 0 when there is none."""
        return self.outcome.processed_size if self.outcome else 0

    @property
    def processed_filename(self) -> str | None:
        """File name of the processed artifact, if one exists."""
        if self.outcome and self.outcome.artifact:
            return self.outcome.artifact.filename
        return None

    def processed_file_path(self) -> Path:
        """Path of the processed artifact."""
        if self.outcome is None or self.outcome.artifact is None:
            msg = f"No processed file available for {self.file_path}"
            raise NoProcessedFileError(msg, file_path=self.file_path)
        return self.outcome.artifact.path

    def close(self) -> None:
        """Remove the working directory and everything in it."""
        if self._closed:
            return
        self._closed = True
        if self.work_dir is not None:
            shutil.rmtree(self.work_dir, ignore_errors=True)
            self.logger.debug("Removed working directory %s", self.work_dir)
