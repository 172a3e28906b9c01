"""CLI module for the upload optimizer."""

from .main import OptimizerCLI, main

__all__ = ["OptimizerCLI", "main"]
