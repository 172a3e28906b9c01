"""Watch-folder event source feeding the pipeline."""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..config.constants import DEFAULT_SHUTDOWN_GRACE_SECONDS

if TYPE_CHECKING:
    from collections.abc import Callable

    from .pipeline import FilePipeline

LOG = logging.getLogger(__name__)

IGNORED_SUFFIXES = frozenset({".part", ".partial", ".tmp", ".crdownload"})

# A file renamed in from outside the tree only produces a created event. A file
# written in place is opened right after it is created, so a created file that
# nobody opens within this window arrived complete.
MOVED_IN_SETTLE_SECONDS = 0.5


def is_ignored(file_path: Path) -> bool:
    """Hidden files and partial downloads are never treated as ready."""
    name = file_path.name
    return name.startswith(".") or name.endswith("~") or file_path.suffix.lower() in IGNORED_SUFFIXES


class ReadyFileHandler(FileSystemEventHandler):
    """
    Turns filesystem events into file-ready callbacks.

    A file is ready when it is closed after writing, renamed inside the tree,
    or moved in from outside the tree.
    """

    def __init__(
        self,
        watch_root: Path,
        callback: Callable[[Path], None],
        settle_seconds: float = MOVED_IN_SETTLE_SECONDS,
    ) -> None:
        super().__init__()
        self.watch_root = watch_root
        self.callback = callback
        self.settle_seconds = settle_seconds
        self._pending: dict[Path, threading.Timer] = {}
        self._lock = threading.Lock()

    def on_closed(self, event: FileSystemEvent) -> None:
        """A file opened for writing was closed."""
        if not event.is_directory:
            file_path = self._path(event.src_path)
            self._cancel(file_path)
            self._dispatch(file_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """A file was renamed into place."""
        if not event.is_directory:
            self._cancel(self._path(event.src_path))
            self._dispatch(self._path(event.dest_path))

    def on_created(self, event: FileSystemEvent) -> None:
        """A file appeared; it is ready unless a writer opens it."""
        if event.is_directory:
            return
        file_path = self._path(event.src_path)
        if not self._accepts(file_path):
            return
        timer = threading.Timer(self.settle_seconds, self._settled, args=(file_path,))
        timer.daemon = True
        with self._lock:
            previous = self._pending.pop(file_path, None)
            self._pending[file_path] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def on_opened(self, event: FileSystemEvent) -> None:
        """A writer is filling the file; wait for its close event."""
        if not event.is_directory:
            self._cancel(self._path(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._cancel(self._path(event.src_path))

    def cancel_pending(self) -> None:
        """Forget files still inside their settle window."""
        with self._lock:
            timers = list(self._pending.values())
            self._pending.clear()
        for timer in timers:
            timer.cancel()

    def _settled(self, file_path: Path) -> None:
        with self._lock:
            if self._pending.get(file_path) is not threading.current_thread():
                return
            del self._pending[file_path]
        if file_path.is_file():
            LOG.debug("Moved in: %s", file_path)
            self.callback(file_path)

    def _cancel(self, file_path: Path) -> None:
        with self._lock:
            timer = self._pending.pop(file_path, None)
        if timer is not None:
            timer.cancel()

    @staticmethod
    def _path(raw_path: str | bytes) -> Path:
        return Path(os.fsdecode(raw_path))

    def _accepts(self, file_path: Path) -> bool:
        if is_ignored(file_path):
            LOG.debug("Ignoring %s", file_path)
            return False
        return file_path.is_relative_to(self.watch_root)

    def _dispatch(self, file_path: Path) -> None:
        if self._accepts(file_path):
            self.callback(file_path)


class FolderWatcher:
    """Runs every ready file through the pipeline on its own thread."""

    def __init__(
        self,
        watch_root: Path,
        pipeline: FilePipeline,
        observer: Observer | None = None,
        settle_seconds: float = MOVED_IN_SETTLE_SECONDS,
    ) -> None:
        self.watch_root = watch_root.absolute()
        self.pipeline = pipeline
        self.observer = observer or Observer()
        self.handler = ReadyFileHandler(self.watch_root, self.submit, settle_seconds)
        self._threads: set[threading.Thread] = set()
        self._lock = threading.Lock()
        self._accepting = False

    @property
    def active(self) -> int:
        """Number of files currently in the pipeline."""
        with self._lock:
            return len(self._threads)

    def start(self) -> None:
        """Start watching the tree recursively."""
        self.observer.schedule(self.handler, str(self.watch_root), recursive=True)
        self._accepting = True
        self.observer.start()
        LOG.info("Watching %s", self.watch_root)

    def submit(self, file_path: Path) -> None:
        """Hand one ready file to a new pipeline thread."""
        if not self._accepting:
            LOG.debug("Not accepting new files, dropping %s", file_path)
            return
        thread = threading.Thread(target=self._handle, args=(file_path,), name=f"pipeline-{file_path.name}")
        thread.daemon = True
        with self._lock:
            self._threads.add(thread)
        thread.start()

    def _handle(self, file_path: Path) -> None:
        try:
            self.pipeline.process_file(file_path)
        except Exception:
            LOG.exception("Unexpected error processing %s", file_path)
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())

    def stop(self, grace: float = DEFAULT_SHUTDOWN_GRACE_SECONDS) -> bool:
        """
        Stop accepting events and wait up to ``grace`` seconds for in-flight files.

        Returns False when some pipelines were still running at the deadline.
        """
        deadline = time.monotonic() + grace
        self._accepting = False
        self.handler.cancel_pending()
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=grace)

        with self._lock:
            pending = list(self._threads)
        for thread in pending:
            thread.join(timeout=max(0.0, deadline - time.monotonic()))

        remaining = self.active
        if remaining:
            LOG.warning("Shutdown timeout exceeded, %d files still in progress", remaining)
            return False
        LOG.info("Shutdown completed successfully")
        return True
