"""Shared fixtures: watch/undone trees, step scripts and a recording uploader."""

from __future__ import annotations

import sys
import textwrap
from functools import partial
from pathlib import Path

import pytest

from immich_optimizer.config import Task, TaskConfiguration, TaskStep
from immich_optimizer.core import FileManager, FilePipeline, PermitPool, UploadError
from immich_optimizer.processors import TaskProcessor

SCRIPTS = {
    # truncate.py PATH SIZE: rewrite the file with SIZE bytes
    "truncate": """
        import sys
        path, size = sys.argv[1], int(sys.argv[2])
        with open(path, "wb") as f:
            f.write(b"o" * size)
    """,
    # convert.py PATH EXT SIZE: replace the file with one of another extension
    "convert": """
        import os, sys
        path, ext, size = sys.argv[1], sys.argv[2], int(sys.argv[3])
        with open(os.path.splitext(path)[0] + "." + ext, "wb") as f:
            f.write(b"c" * size)
        os.remove(path)
    """,
    # grow.py PATH: append bytes so the result is larger
    "grow": """
        import sys
        with open(sys.argv[1], "ab") as f:
            f.write(b"+" * 100)
    """,
    # sidecar.py PATH: leave a second file next to the input
    "sidecar": """
        import sys
        with open(sys.argv[1] + ".xmp", "w") as f:
            f.write("meta")
    """,
    # encode.py [OPTIONS] [-i] INPUT ... OUTPUT: write the first half of INPUT to OUTPUT
    "encode": """
        import os, sys
        args = sys.argv[1:]
        if "-i" in args:
            source = args[args.index("-i") + 1]
        else:
            source = next(arg for arg in args if os.path.isfile(arg))
        with open(source, "rb") as f:
            data = f.read()
        with open(args[-1], "wb") as f:
            f.write(data[: len(data) // 2])
    """,
    # remove.py PATH: delete the file
    "remove": """
        import os, sys
        os.remove(sys.argv[1])
    """,
    # fail.py: exit with an error
    "fail": """
        import sys
        sys.stderr.write("encoder exploded")
        sys.exit(3)
    """,
    # track.py MARKERS LOG: record how many chains run at once
    "track": """
        import os, sys, time, uuid
        markers, log = sys.argv[1], sys.argv[2]
        marker = os.path.join(markers, uuid.uuid4().hex)
        open(marker, "w").close()
        running = len(os.listdir(markers))
        with open(log, "a") as f:
            f.write(f"{running}\\n")
        time.sleep(0.3)
        os.remove(marker)
    """,
}


class RecordingUploader:
    """Stands in for ImmichClient and remembers what it was asked to upload."""

    def __init__(self, fail_status: int | None = None) -> None:
        self.fail_status = fail_status
        self.uploads: list[tuple[Path, str, bytes]] = []

    def upload(self, file_path: Path, filename: str | None = None) -> None:
        if self.fail_status is not None:
            msg = f"Upload failed with status {self.fail_status}: boom"
            raise UploadError(msg, status_code=self.fail_status, body="boom", file_path=file_path)
        self.uploads.append((file_path, filename or file_path.name, file_path.read_bytes()))


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "watch"
    directory.mkdir()
    return directory


@pytest.fixture
def undone_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "undone"
    directory.mkdir()
    return directory


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "work"
    directory.mkdir()
    return directory


@pytest.fixture
def scripts(tmp_path: Path) -> dict[str, Path]:
    """Write the helper scripts and return their paths by name."""
    directory = tmp_path / "scripts"
    directory.mkdir()
    paths = {}
    for name, source in SCRIPTS.items():
        path = directory / f"{name}.py"
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        paths[name] = path
    return paths


def python_step(script: Path, *args: str) -> TaskStep:
    """A step that runs one of the helper scripts with the current interpreter."""
    return TaskStep(args=(sys.executable, str(script), *args))


def make_task(name: str, extensions: list[str], *steps: TaskStep) -> Task:
    return Task(name=name, extensions=frozenset(extensions), steps=tuple(steps))


def make_pipeline(
    tasks: TaskConfiguration,
    uploader: RecordingUploader,
    watch_dir: Path,
    undone_dir: Path,
    work_dir: Path,
    *,
    permits: PermitPool | None = None,
    delete_on_upload: bool = False,
) -> FilePipeline:
    factory = partial(TaskProcessor.open, permits=permits or PermitPool(2), work_root=work_dir)
    return FilePipeline(
        tasks,
        uploader,  # type: ignore[arg-type]
        FileManager(watch_dir, undone_dir),
        factory,
        delete_on_upload=delete_on_upload,
    )
