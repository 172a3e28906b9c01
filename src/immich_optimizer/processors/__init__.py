"""Processors that apply optimization tasks to files."""

from .task_processor import ProcessedArtifact, ProcessingOutcome, TaskProcessor

__all__ = ["ProcessedArtifact", "ProcessingOutcome", "TaskProcessor"]
