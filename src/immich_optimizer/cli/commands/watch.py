"""The long-running ``watch`` command."""

from __future__ import annotations

import logging
import signal
import threading
from typing import TYPE_CHECKING

from ...core import FolderWatcher
from ...service import OptimizerService

if TYPE_CHECKING:
    import argparse

    from ...config import AppSettings

LOG = logging.getLogger(__name__)


class WatchCommand:
    """Watches the directory until SIGINT or SIGTERM, then shuts down gracefully."""

    def __init__(self) -> None:
        self._stop_event = threading.Event()

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """The watch command takes only the global options."""

    def request_stop(self, signum: int | None = None, _frame: object = None) -> None:
        """Ask the running watcher to shut down."""
        if signum is not None:
            LOG.info("Received signal %s", signal.Signals(signum).name)
        self._stop_event.set()

    def handle(self, settings: AppSettings, _args: argparse.Namespace) -> int:
        """Run the watcher, blocking until a stop is requested."""
        self._stop_event.clear()
        previous = {sig: signal.signal(sig, self.request_stop) for sig in (signal.SIGINT, signal.SIGTERM)}

        try:
            with OptimizerService(settings) as service:
                watcher = FolderWatcher(settings.watch_dir, service.pipeline)
                try:
                    watcher.start()
                except OSError:
                    LOG.exception("Error starting file watcher")
                    return 1

                self._stop_event.wait()
                LOG.info("Shutting down gracefully...")
                watcher.stop(grace=settings.shutdown_grace)
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        return 0
