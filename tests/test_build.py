"""Tests for build tool invocation."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from modbuild.build import BuildOrchestrator, split_command, verbosity_flag
from modbuild.errors import BuildFailedError, ModBuildError
from modbuild.models import Module
from modbuild.settings import parse_settings


class RecordingRunner:
    """Test double that records build invocations."""

    def __init__(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self.calls: List[tuple[list[str], Path]] = []

    def __call__(self, args, *, cwd):  # type: ignore[no-untyped-def]
        self.calls.append((list(args), Path(cwd)))
        return self.returncode


def _modules(root: Path, *names: str) -> List[Module]:
    return [
        Module(path=root / name, name=name, descriptor=root / name / "build.gradle.kts", root=root)
        for name in names
    ]


def test_verbosity_flags() -> None:
    assert [verbosity_flag(level) for level in range(5)] == ["-q", None, "-i", "-d", "-d"]


def test_split_command_accepts_strings_and_lists() -> None:
    assert split_command("./gradlew --parallel 'with space'") == ["./gradlew", "--parallel", "with space"]
    assert split_command(["gradle", "-x"]) == ["gradle", "-x"]


def test_empty_selection_spawns_nothing(tmp_path: Path) -> None:
    runner = RecordingRunner()
    orchestrator = BuildOrchestrator(tmp_path, "gradle", runner=runner)

    orchestrator.build([], ["build"], settings_file="build.settings.gradle.kts")

    assert runner.calls == []
    assert not (tmp_path / "build.settings.gradle.kts").exists()


def test_build_writes_settings_and_runs_tasks(tmp_path: Path) -> None:
    runner = RecordingRunner()
    orchestrator = BuildOrchestrator(
        tmp_path, "gradle --parallel", build_args=["--continue"], runner=runner
    )

    orchestrator.build(_modules(tmp_path, "a", "b"), ["assemble", "test"], settings_file="s.gradle.kts")

    settings = tmp_path / "s.gradle.kts"
    [(command, cwd)] = runner.calls
    assert command == ["gradle", "-c", str(settings), "--parallel", "--continue", "assemble", "test"]
    assert cwd == tmp_path
    assert [name for name, _ in parse_settings(settings.read_text(encoding="utf-8"))] == ["a", "b"]


def test_command_line_orders_arguments(tmp_path: Path) -> None:
    orchestrator = BuildOrchestrator(tmp_path, "gradle --parallel", build_args=["--continue"])
    settings = tmp_path / "s.gradle.kts"

    assert orchestrator.command_line(settings, ["build"], 2) == [
        "gradle",
        "-i",
        "-c",
        str(settings),
        "--parallel",
        "--continue",
        "build",
    ]
    assert orchestrator.command_line(settings, ["build"], 1) == [
        "gradle",
        "-c",
        str(settings),
        "--parallel",
        "--continue",
        "build",
    ]


def test_default_command_is_root_wrapper(tmp_path: Path) -> None:
    assert BuildOrchestrator(tmp_path).build_cmd == [str(tmp_path / "gradlew")]


def test_nonzero_exit_raises_build_failed(tmp_path: Path) -> None:
    orchestrator = BuildOrchestrator(tmp_path, "gradle", runner=RecordingRunner(returncode=2))

    with pytest.raises(BuildFailedError) as excinfo:
        orchestrator.build(_modules(tmp_path, "a"), ["build"], settings_file="s.gradle.kts")

    assert excinfo.value.returncode == 2


def test_spawn_failure_is_wrapped(tmp_path: Path) -> None:
    def runner(args, *, cwd):  # type: ignore[no-untyped-def]
        raise FileNotFoundError("gradle")

    orchestrator = BuildOrchestrator(tmp_path, "gradle", runner=runner)

    with pytest.raises(ModBuildError) as excinfo:
        orchestrator.build(_modules(tmp_path, "a"), ["build"], settings_file="s.gradle.kts")

    assert not isinstance(excinfo.value, BuildFailedError)
    assert "Can't run the build process gradle" in str(excinfo.value)


def test_batches_use_numbered_settings_files(tmp_path: Path) -> None:
    runner = RecordingRunner()
    orchestrator = BuildOrchestrator(tmp_path, "gradle", runner=runner)

    orchestrator.build(
        _modules(tmp_path, "a", "b", "c"),
        ["build"],
        settings_file="build.settings.gradle.kts",
        batch_size=2,
    )

    settings_files = [command[command.index("-c") + 1] for command, _ in runner.calls]
    assert settings_files == [
        str(tmp_path / "build.settings0.gradle.kts"),
        str(tmp_path / "build.settings1.gradle.kts"),
    ]
    second = (tmp_path / "build.settings1.gradle.kts").read_text(encoding="utf-8")
    assert [name for name, _ in parse_settings(second)] == ["c"]
