"""Utility CLI commands."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...core.commands import missing_executables

if TYPE_CHECKING:
    import argparse

    from ...config import AppSettings

LOG = logging.getLogger(__name__)


class UtilityCommands:
    """Handlers for the ``check`` command."""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add check arguments to parser."""
        parser.add_argument("--quiet", "-q", action="store_true", help="Only report problems")

    def handle(self, settings: AppSettings, args: argparse.Namespace) -> int:
        """Report the tasks and whether every step executable is on PATH."""
        tasks = settings.tasks
        executables = {step.executable for task in tasks for step in task.steps}
        missing = missing_executables(executables)

        if not args.quiet:
            print(f"Tasks file: {settings.tasks_file}")
            for task in tasks:
                extensions = ", ".join(sorted(task.extensions))
                print(f"  {task.name}: {len(task.steps)} step(s) for {extensions}")
            for exe in sorted(executables):
                print(f"  {'✗' if exe in missing else '✓'} {exe}")

        if missing:
            LOG.error("Missing executables: %s", ", ".join(missing))
            return 1

        if not args.quiet:
            print("All task executables are available")
        return 0
