"""Wires settings into a ready-to-use pipeline."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from .core import FileManager, FilePipeline, ImmichClient, PermitPool
from .processors import TaskProcessor

if TYPE_CHECKING:
    from .config import AppSettings

LOG = logging.getLogger(__name__)


class OptimizerService:
    """Owns the permit pool, the upload client and the pipeline built from one set of settings."""

    def __init__(self, settings: AppSettings, client: ImmichClient | None = None) -> None:
        self.settings = settings
        self.permits = PermitPool(settings.max_concurrent_tasks)
        self.client = client or ImmichClient(
            settings.immich_url,
            settings.immich_api_key,
            timeout_seconds=settings.http_timeout,
        )
        self.file_manager = FileManager(settings.watch_dir, settings.undone_dir)
        processor_factory = partial(
            TaskProcessor.open,
            permits=self.permits,
            work_root=settings.work_dir,
            config_dir=settings.tasks.config_dir,
        )
        self.pipeline = FilePipeline(
            settings.tasks,
            self.client,
            self.file_manager,
            processor_factory,
            delete_on_upload=settings.delete_on_upload,
        )
        LOG.debug(
            "Pipeline ready: %d tasks, %d concurrent chains, delete on upload: %s",
            len(settings.tasks),
            self.permits.size,
            settings.delete_on_upload,
        )

    def close(self) -> None:
        """Release the HTTP client."""
        self.client.close()

    def __enter__(self) -> OptimizerService:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
