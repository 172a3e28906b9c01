"""The one-shot ``process`` command."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ...core import PipelineStatus
from ...core.directory_processor import discover_files, process_files
from ...service import OptimizerService
from ..failure_table import print_failure_table

if TYPE_CHECKING:
    import argparse

    from ...config import AppSettings

LOG = logging.getLogger(__name__)


class ProcessCommand:
    """Runs files already in the watch tree through the pipeline and exits."""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add process arguments to parser."""
        parser.add_argument(
            "paths",
            nargs="*",
            type=Path,
            help="Files or directories inside the watch directory (default: the whole watch directory)",
        )
        parser.add_argument("--workers", "-w", type=int, help="Files handled at once (default: max_concurrent_tasks)")
        parser.add_argument("--no-recursive", action="store_true", help="Do not descend into subdirectories")

    def handle(self, settings: AppSettings, args: argparse.Namespace) -> int:
        """Process the requested files; returns 1 if any of them failed."""
        paths = [path.absolute() for path in (args.paths or [settings.watch_dir])]
        outside = [path for path in paths if not path.is_relative_to(settings.watch_dir)]
        if outside:
            LOG.error(
                "Paths must be inside the watch directory %s: %s",
                settings.watch_dir,
                ", ".join(str(p) for p in outside),
            )
            return 1

        files = discover_files(paths, recursive=not args.no_recursive)
        if not files:
            LOG.info("No files to process")
            return 0

        workers = args.workers or settings.max_concurrent_tasks
        with OptimizerService(settings) as service:
            results = process_files(service.pipeline, files, max_workers=workers)

        failed = [r for r in results if r.status in {PipelineStatus.QUARANTINED, PipelineStatus.ERROR}]
        print_failure_table(failed, settings.undone_dir)
        return 1 if failed else 0
