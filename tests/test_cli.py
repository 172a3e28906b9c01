"""Tests for the command-line interface."""

from __future__ import annotations

import sys
from unittest.mock import patch

import pytest

from immich_optimizer import __version__
from immich_optimizer.cli.main import OptimizerCLI
from immich_optimizer.core import PipelineResult, PipelineStatus

API_KEY = "0123456789abcdef"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for key in [
        "IUO_IMMICH_URL",
        "IUO_IMMICH_API_KEY",
        "IUO_WATCH_DIR",
        "IUO_UNDONE_DIR",
        "IUO_TASKS_FILE",
        "IUO_DELETE_ON_UPLOAD",
    ]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def base_args(tmp_path, watch_dir, undone_dir):
    def build(tasks_yaml: str) -> list[str]:
        tasks_file = tmp_path / "tasks.yaml"
        tasks_file.write_text(tasks_yaml, encoding="utf-8")
        return [
            "--watch_dir",
            str(watch_dir),
            "--undone_dir",
            str(undone_dir),
            "--tasks_file",
            str(tasks_file),
        ]

    return build


def test_version(capsys) -> None:
    assert OptimizerCLI().run(["--version"]) == 0
    assert capsys.readouterr().out.strip() == f"immich-optimizer {__version__}"


def test_missing_server_is_config_error(base_args) -> None:
    assert OptimizerCLI().run([*base_args("tasks: []\n"), "process"]) == 1


def test_check_reports_available_tools(base_args, capsys) -> None:
    tasks_yaml = f"tasks:\n  - name: py\n    command: [{sys.executable!r}, '{{path}}']\n    extensions: [py]\n"

    assert OptimizerCLI().run([*base_args(tasks_yaml), "check"]) == 0
    assert "All task executables are available" in capsys.readouterr().out


def test_check_reports_missing_tools(base_args) -> None:
    tasks_yaml = "tasks:\n  - name: x\n    command: definitely-not-installed-tool {path}\n    extensions: [x]\n"

    assert OptimizerCLI().run([*base_args(tasks_yaml), "check", "--quiet"]) == 1


def test_process_runs_files_in_watch_dir(base_args, watch_dir) -> None:
    (watch_dir / "a.jpg").write_bytes(b"a")
    args = [*base_args("tasks: []\n"), "--immich_url", "http://immich:2283", "--immich_api_key", API_KEY, "process"]

    with patch("immich_optimizer.cli.commands.process.process_files") as mock_process:
        mock_process.return_value = [
            PipelineResult(source_file=watch_dir / "a.jpg", status=PipelineStatus.UPLOADED),
        ]
        assert OptimizerCLI().run(args) == 0

    pipeline, files = mock_process.call_args.args
    assert files == [watch_dir / "a.jpg"]
    assert pipeline.delete_on_upload is False


def test_process_reports_failures(base_args, watch_dir, capsys) -> None:
    (watch_dir / "c.png").write_bytes(b"c")
    args = [*base_args("tasks: []\n"), "--immich_url", "http://immich:2283", "--immich_api_key", API_KEY, "process"]

    with patch("immich_optimizer.cli.commands.process.process_files") as mock_process:
        mock_process.return_value = [
            PipelineResult(source_file=watch_dir / "c.png", status=PipelineStatus.QUARANTINED, message="HTTP 500"),
        ]
        assert OptimizerCLI().run(args) == 1

    assert "UPLOAD FAILURES" in capsys.readouterr().out


def test_process_rejects_paths_outside_watch_dir(base_args, tmp_path) -> None:
    args = [
        *base_args("tasks: []\n"),
        "--immich_url",
        "http://immich:2283",
        "--immich_api_key",
        API_KEY,
        "process",
        str(tmp_path),
    ]

    assert OptimizerCLI().run(args) == 1
