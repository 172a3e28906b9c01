"""Recovery copies and cleanup inside the watched and undone trees."""

from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING

from .base import RecoveryError

if TYPE_CHECKING:
    from pathlib import Path

LOG = logging.getLogger(__name__)


class FileManager:
    """Mirrors failed files into the undone tree and removes uploaded ones."""

    def __init__(self, watch_root: Path, undone_root: Path) -> None:
        self.watch_root = watch_root.absolute()
        self.undone_root = undone_root.absolute()

    def relative_path(self, file_path: Path) -> Path:
        """Path of a file relative to the watch root."""
        try:
            return file_path.absolute().relative_to(self.watch_root)
        except ValueError as e:
            msg = f"{file_path} is not inside the watch directory {self.watch_root}"
            raise RecoveryError(msg, file_path=file_path, cause=e) from e

    def undone_path(self, file_path: Path) -> Path:
        """Where a file from the watch tree is kept when it fails."""
        return self.undone_root / self.relative_path(file_path)

    def quarantine(self, file_path: Path, source_path: Path | None = None) -> Path:
        """
        Copy ``file_path`` into the undone tree.

        The destination directory mirrors the location of ``source_path``
        (defaults to ``file_path``) under the watch root, so a processed
        artifact from a temporary directory lands beside where its original
        would be. Existing copies are overwritten. The file being copied is
        never moved or deleted.
        """
        relative = self.relative_path(source_path or file_path)
        destination = self.undone_root / relative.parent / file_path.name

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(file_path, destination)
        except OSError as e:
            msg = f"Failed to copy {file_path} to {destination}: {e}"
            raise RecoveryError(msg, file_path=file_path, cause=e) from e

        LOG.info("Copied %s to %s", file_path, destination)
        return destination

    def delete_from_watch(self, file_path: Path) -> None:
        """Remove a file from the watch tree."""
        target = self.watch_root / self.relative_path(file_path)
        try:
            target.unlink()
        except OSError as e:
            msg = f"Failed to delete {target}: {e}"
            raise RecoveryError(msg, file_path=file_path, cause=e) from e

        LOG.debug("Removed %s from watch directory", target)
