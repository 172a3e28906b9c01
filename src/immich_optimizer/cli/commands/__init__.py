"""CLI command modules."""

from .process import ProcessCommand
from .utils import UtilityCommands
from .watch import WatchCommand

__all__ = ["ProcessCommand", "UtilityCommands", "WatchCommand"]
