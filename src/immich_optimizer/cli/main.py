"""Main CLI interface for the upload optimizer."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .. import __version__
from ..config import AppSettings
from ..core import ConfigError
from .commands import ProcessCommand, UtilityCommands, WatchCommand

LOG = logging.getLogger(__name__)


class OptimizerCLI:
    """Command-line entry point: parses flags, builds settings and routes to a command."""

    def __init__(self) -> None:
        self.watch_command = WatchCommand()
        self.process_command = ProcessCommand()
        self.utility_commands = UtilityCommands()

    @staticmethod
    def setup_logging(verbosity: int) -> None:
        """Setup logging based on verbosity level."""
        level_map = {
            0: logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG,
        }
        level = level_map.get(verbosity, logging.DEBUG)

        log_format = (
            "%(asctime)s %(levelname)s: %(name)s: %(message)s"
            if verbosity >= 2
            else "%(asctime)s %(levelname)s: %(message)s"
        )
        logging.basicConfig(level=level, format=log_format, handlers=[logging.StreamHandler(sys.stderr)], force=True)

        # httpx logs every request at INFO
        if verbosity < 2:
            logging.getLogger("httpx").setLevel(logging.WARNING)

    def build_parser(self) -> argparse.ArgumentParser:
        """Build the argument parser."""
        parser = argparse.ArgumentParser(
            prog="immich-optimizer",
            description="Optimize files dropped into a folder and upload them to Immich",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Every option can also be set with an IUO_<OPTION> environment variable,
for example IUO_IMMICH_URL or IUO_DELETE_ON_UPLOAD=true.

Examples:
  # Watch /watch and upload everything that arrives
  immich-optimizer --immich_url http://immich-server:2283 --immich_api_key KEY watch

  # Upload the files already sitting in the watch directory
  immich-optimizer --watch_dir ./inbox process

  # Check that the tools used by tasks.yaml are installed
  immich-optimizer --tasks_file tasks.yaml check
            """,
        )

        parser.add_argument("--version", action="store_true", help="Show the current version")
        parser.add_argument(
            "-v",
            "--verbose",
            action="count",
            default=0,
            help="Increase verbosity (-v for info, -vv for debug)",
        )

        parser.add_argument("--immich_url", help="Immich server URL. Example: http://immich-server:2283")
        parser.add_argument("--immich_api_key", help="Immich API key")
        parser.add_argument("--watch_dir", type=Path, help="Directory to watch for new files")
        parser.add_argument("--undone_dir", type=Path, help="Directory for files that failed processing or upload")
        parser.add_argument("--tasks_file", type=Path, help="Path to the tasks configuration file")
        parser.add_argument("--work_dir", type=Path, help="Directory for temporary working copies")
        parser.add_argument(
            "--delete_on_upload",
            action="store_true",
            default=None,
            help="Delete files after successful upload",
        )
        parser.add_argument("--max_concurrent_tasks", type=int, help="Optimization chains allowed to run at once")
        parser.add_argument("--http_timeout", type=float, help="Upload request timeout in seconds")
        parser.add_argument("--shutdown_grace", type=float, help="Seconds to wait for in-flight files on shutdown")

        subparsers = parser.add_subparsers(dest="command", help="Available commands (default: watch)")

        watch_parser = subparsers.add_parser("watch", help="Watch the directory and upload new files")
        self.watch_command.add_arguments(watch_parser)

        process_parser = subparsers.add_parser("process", help="Process files already present, then exit")
        self.process_command.add_arguments(process_parser)

        check_parser = subparsers.add_parser("check", help="Check that task executables are installed")
        self.utility_commands.add_arguments(check_parser)

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parser = self.build_parser()
        parsed_args = parser.parse_args(args)

        if parsed_args.version:
            print(version_string())
            return 0

        command = parsed_args.command or "watch"
        verbosity = max(parsed_args.verbose, 1) if command == "watch" else parsed_args.verbose
        self.setup_logging(verbosity)

        try:
            settings = AppSettings.from_env().apply_args(parsed_args)
            settings.validate(require_server=command != "check")
        except ConfigError as e:
            LOG.error("Configuration error: %s", e)
            return 1

        try:
            if command == "watch":
                LOG.info("Starting %s", version_string())
                return self.watch_command.handle(settings, parsed_args)
            if command == "process":
                return self.process_command.handle(settings, parsed_args)
            if command == "check":
                return self.utility_commands.handle(settings, parsed_args)
            parser.error(f"Unknown command: {command}")
        except KeyboardInterrupt:
            LOG.info("Operation cancelled by user")
            return 130
        except Exception as e:
            LOG.exception("Unexpected error: %s", e)
            return 1

        return 0


def version_string() -> str:
    return f"immich-optimizer {__version__}"


def main() -> int:
    """Entry point for the CLI."""
    cli = OptimizerCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
