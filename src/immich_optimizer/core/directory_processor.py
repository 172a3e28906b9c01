"""One-shot sweep of files already present in the watch tree."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

from tqdm import tqdm

from .base import PipelineResult, PipelineStatus
from .watcher import is_ignored

if TYPE_CHECKING:
    from pathlib import Path

    from .pipeline import FilePipeline

LOG = logging.getLogger(__name__)


def discover_files(paths: list[Path], *, recursive: bool = True) -> list[Path]:
    """Expand directories into the files they contain, skipping hidden and partial files."""
    pattern = "**/*" if recursive else "*"
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            LOG.info("Scanning directory: %s (recursive: %s)", path, recursive)
            files.extend(sorted(f for f in path.glob(pattern) if f.is_file() and not is_ignored(f)))
        elif path.is_file():
            files.append(path)
        else:
            LOG.warning("Skipping %s: not a file or directory", path)
    return files


def process_files(pipeline: FilePipeline, files: list[Path], max_workers: int = 1) -> list[PipelineResult]:
    """
    Run each file through the pipeline with a progress bar.

    Args:
        pipeline: The pipeline every file goes through
        files: Files to process
        max_workers: Number of files handled at once; the optimization stage
            stays bounded by the pipeline's permit pool

    Returns:
        One result per file, in completion order

    """
    progress_bar = tqdm(
        total=len(files),
        desc="Processing files",
        unit="file",
        bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]",
    )
    LOG.info("Processing %d files with %d workers", len(files), max_workers)

    results: list[PipelineResult] = []
    try:
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            future_to_file = {executor.submit(pipeline.process_file, file_path): file_path for file_path in files}

            for future in as_completed(future_to_file):
                file_path = future_to_file[future]
                try:
                    result = future.result()
                except Exception as e:
                    LOG.exception("Error processing %s", file_path)
                    result = PipelineResult(source_file=file_path, status=PipelineStatus.ERROR, message=str(e))
                results.append(result)
                _update_progress_description(progress_bar, result)
                progress_bar.update(1)
    finally:
        progress_bar.close()

    _log_summary(results)
    return results


def _update_progress_description(progress_bar: tqdm, result: PipelineResult) -> None:
    name = result.source_file.name
    if result.status is PipelineStatus.UPLOADED:
        progress_bar.set_description(f"✓ Uploaded {name}")
    elif result.status is PipelineStatus.REJECTED:
        progress_bar.set_description(f"⏭ Skipped {name}")
    else:
        progress_bar.set_description(f"✗ Failed {name}")


def _log_summary(results: list[PipelineResult]) -> None:
    counts = {status: 0 for status in PipelineStatus}
    for result in results:
        counts[result.status] += 1
    LOG.info(
        "Processing complete: %d uploaded (%d optimized), %d quarantined, %d rejected, %d errors",
        counts[PipelineStatus.UPLOADED],
        sum(1 for r in results if r.status is PipelineStatus.UPLOADED and r.optimized),
        counts[PipelineStatus.QUARANTINED],
        counts[PipelineStatus.REJECTED],
        counts[PipelineStatus.ERROR],
    )
