"""Tests for loading tasks and routing extensions."""

from __future__ import annotations

import logging
import textwrap

import pytest

from immich_optimizer.config import TaskConfiguration, TaskStep, normalize_extension
from immich_optimizer.core import ConfigError


def write_tasks(tmp_path, content: str):
    path = tmp_path / "tasks.yaml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(".JPG", "jpg"), ("jpg", "jpg"), (".tar.gz", "tar.gz"), ("", "")],
)
def test_normalize_extension(raw, expected) -> None:
    assert normalize_extension(raw) == expected


def test_load_tasks(tmp_path) -> None:
    path = write_tasks(
        tmp_path,
        """
        tasks:
          - name: jpeg-xl
            command: cjxl {path} {folder}/{name}.jxl
            extensions: [.JPG, jpeg]
          - name: video
            extensions: [mov, mp4]
            steps:
              - command: ffmpeg -i {path} {folder}/{name}.tmp.mp4
                timeout: 600
              - [mv, "{folder}/{name}.tmp.mp4", "{folder}/{name}.mp4"]
        """,
    )

    tasks = TaskConfiguration.load_from_file(path)

    assert [task.name for task in tasks] == ["jpeg-xl", "video"]
    assert tasks.config_dir == tmp_path.resolve()
    jxl, video = tasks.tasks
    assert jxl.extensions == frozenset({"jpg", "jpeg"})
    assert jxl.steps == (TaskStep(args=("cjxl", "{path}", "{folder}/{name}.jxl")),)
    assert video.steps[0].timeout == 600.0
    assert video.steps[1].args == ("mv", "{folder}/{name}.tmp.mp4", "{folder}/{name}.mp4")
    assert tasks.extensions == {"jpg", "jpeg", "mov", "mp4"}


def test_applies_to_normalizes(tmp_path) -> None:
    path = write_tasks(
        tmp_path,
        """
        tasks:
          - name: png
            command: oxipng {path}
            extensions: [png]
        """,
    )
    tasks = TaskConfiguration.load_from_file(path)

    assert tasks.applies_to(".PNG")
    assert tasks.applies_to("png")
    assert not tasks.applies_to(".jpg")
    assert not tasks.applies_to("")


def test_overlapping_extensions_first_task_wins(tmp_path, caplog) -> None:
    path = write_tasks(
        tmp_path,
        """
        tasks:
          - name: lossless
            command: oxipng {path}
            extensions: [png]
          - name: lossy
            command: pngquant {path}
            extensions: [png, gif]
        """,
    )

    with caplog.at_level(logging.WARNING):
        tasks = TaskConfiguration.load_from_file(path)

    assert tasks.select(".png").name == "lossless"
    assert tasks.select(".gif").name == "lossy"
    assert "'lossless' wins" in caplog.text


def test_empty_file_has_no_tasks(tmp_path) -> None:
    tasks = TaskConfiguration.load_from_file(write_tasks(tmp_path, ""))

    assert len(tasks) == 0
    assert not tasks.applies_to("jpg")


@pytest.mark.parametrize(
    "content",
    [
        "tasks: {}",
        "tasks:\n  - command: x\n    extensions: [jpg]\n",
        "tasks:\n  - name: a\n    command: x\n",
        "tasks:\n  - name: a\n    extensions: [jpg]\n",
        "tasks:\n  - name: a\n    extensions: [jpg]\n    steps: [{timeout: 3}]\n",
        "tasks:\n  - name: a\n    extensions: [jpg]\n    command: x\n    timeout: soon\n",
        "tasks:\n  - name: a\n    extensions: [jpg]\n    command: x\n  - name: a\n    extensions: [png]\n    command: y\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_tasks_raise(tmp_path, content) -> None:
    with pytest.raises(ConfigError):
        TaskConfiguration.load_from_file(write_tasks(tmp_path, content))


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(ConfigError):
        TaskConfiguration.load_from_file(tmp_path / "nope.yaml")


def test_render_substitutes_placeholders() -> None:
    step = TaskStep(args=("tool", "--in={path}", "{folder}/{name}.webp"))

    rendered = step.render({"path": "/w/a.png", "folder": "/w", "name": "a", "extension": "png", "config_dir": ""})

    assert rendered == ["tool", "--in=/w/a.png", "/w/a.webp"]


@pytest.mark.parametrize("command", ["cjxl {path} {folder}/{nmae}.jxl", "tool {0}", "tool {path"])
def test_bad_placeholder_fails_at_load(tmp_path, command) -> None:
    path = write_tasks(tmp_path, f"tasks:\n  - name: jpeg-xl\n    extensions: [jpg]\n    command: '{command}'\n")

    with pytest.raises(ConfigError, match="jpeg-xl"):
        TaskConfiguration.load_from_file(path)


def test_escaped_braces_are_accepted(tmp_path) -> None:
    path = write_tasks(tmp_path, "tasks:\n  - name: a\n    extensions: [jpg]\n    command: 'tool {{literal}} {path}'\n")

    tasks = TaskConfiguration.load_from_file(path)

    assert tasks.tasks[0].steps[0].render(dict.fromkeys(("path", "folder", "name", "extension", "config_dir"), "x")) == [
        "tool",
        "{literal}",
        "x",
    ]
