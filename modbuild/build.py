"""Build tool invocation for a module selection."""

from __future__ import annotations

import shlex
import subprocess
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from .errors import BuildFailedError, ModBuildError
from .logging import get_logger
from .models import Module
from .settings import SettingsWriter

logger = get_logger("build")

_VERBOSITY_FLAGS = {0: "-q", 1: None, 2: "-i"}


def verbosity_flag(verbosity: int) -> Optional[str]:
    """Return the build tool flag for a verbosity level (quiet/default/info/debug)."""
    if verbosity >= 3:
        return "-d"
    return _VERBOSITY_FLAGS.get(max(verbosity, 0))


def split_command(command: str | Sequence[str]) -> List[str]:
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


class BuildOrchestrator:
    """Writes the settings file for a selection and runs the build tool against it."""

    def __init__(
        self,
        root_project: Path | str,
        build_cmd: str | Sequence[str] | None = None,
        *,
        build_args: Sequence[str] = (),
        settings_writer: SettingsWriter | None = None,
        runner: Callable[..., int] | None = None,
    ) -> None:
        self.root_project = Path(root_project)
        self.build_cmd = split_command(build_cmd or str(self.root_project / "gradlew"))
        if not self.build_cmd:
            raise ModBuildError("The build command is empty")
        self.build_args = list(build_args)
        self.settings_writer = settings_writer or SettingsWriter(self.root_project)
        self._runner = runner or self._default_runner

    def command_line(self, settings_file: Path, tasks: Sequence[str], verbosity: int) -> List[str]:
        command = [self.build_cmd[0]]
        flag = verbosity_flag(verbosity)
        if flag:
            command.append(flag)
        command.extend(["-c", str(settings_file)])
        command.extend(self.build_cmd[1:])
        command.extend(self.build_args)
        command.extend(tasks)
        return command

    def build(
        self,
        modules: Sequence[Module],
        tasks: Sequence[str],
        *,
        settings_file: Path | str,
        verbosity: int = 1,
        batch_size: Optional[int] = None,
    ) -> None:
        """Run ``tasks`` for ``modules``; raises on spawn failure or a failing build."""
        if not modules:
            logger.info("No module selected, nothing to build")
            return

        settings_path = Path(settings_file)
        if not settings_path.is_absolute():
            settings_path = self.root_project / settings_path

        if batch_size is None or batch_size <= 0 or batch_size >= len(modules):
            self._build_once(modules, tasks, settings_path, verbosity)
            return

        for number, start in enumerate(range(0, len(modules), batch_size)):
            batch = modules[start : start + batch_size]
            logger.info("Building batch %d with %d modules", number, len(batch))
            self._build_once(batch, tasks, _numbered(settings_path, number), verbosity)

    def _build_once(
        self,
        modules: Sequence[Module],
        tasks: Sequence[str],
        settings_file: Path,
        verbosity: int,
    ) -> None:
        self.settings_writer.write(modules, settings_file)
        command = self.command_line(settings_file, tasks, verbosity)
        logger.info("Start running %s on %s", " ".join(tasks), settings_file)
        logger.debug("Build command: %s", command)
        try:
            returncode = self._runner(command, cwd=self.root_project)
        except OSError as exc:
            raise ModBuildError(f"Can't run the build process {command[0]}", exc) from exc
        logger.debug("Build process exited with %s", returncode)
        if returncode != 0:
            raise BuildFailedError(
                f"Build failed with exit status {returncode}, please check the build output",
                returncode,
            )

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> int:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            check=False,
        )
        return completed.returncode


def _numbered(settings_file: Path, number: int) -> Path:
    name = settings_file.name
    for suffix in (".gradle.kts", ".gradle"):
        if name.endswith(suffix) and len(name) > len(suffix):
            return settings_file.with_name(f"{name[: -len(suffix)]}{number}{suffix}")
    return settings_file.with_name(f"{settings_file.stem}{number}{settings_file.suffix}")


__all__ = ["BuildOrchestrator", "split_command", "verbosity_flag"]
