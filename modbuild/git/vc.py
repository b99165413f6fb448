"""Version control capability and its git implementation."""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..errors import ModBuildError
from ..logging import get_logger

logger = get_logger("git")

_LOG_SEPARATOR = "\x1e"


class VersionControl(ABC):
    """Operations modbuild needs from the source control backend."""

    @abstractmethod
    def root(self) -> Path:
        """Return the working tree root."""

    @abstractmethod
    def remote_branch(self) -> str:
        """Return the upstream of HEAD, e.g. ``origin/feature``."""

    @abstractmethod
    def diff_files(self, commit: str) -> List[str]:
        """Return repo-relative paths changed between ``commit`` and the working tree."""

    @abstractmethod
    def add_path(self, path: Path) -> None:
        """Stage a file or directory."""

    @abstractmethod
    def commit(self, message: str) -> None:
        """Commit the staged changes."""

    @abstractmethod
    def get_push_url(self) -> str:
        """Return the push URL of the origin remote."""

    @abstractmethod
    def log(self, range_spec: str, include_body: bool = False) -> List[str]:
        """Return commit summaries (or full messages) in the range."""

    @abstractmethod
    def fetch(self, branch: str) -> None:
        """Fetch a branch from origin."""

    @abstractmethod
    def push(self, branch: str) -> None:
        """Push HEAD to a branch on origin."""

    @abstractmethod
    def merge(self, branch: str, dry_run: bool = False) -> None:
        """Merge ``origin/<branch>``; a dry run only checks for conflicts."""


class GitVersionControl(VersionControl):
    """VersionControl backed by the git command line."""

    def __init__(
        self,
        cwd: Path | str = ".",
        runner: Callable[..., str] | None = None,
    ) -> None:
        self._cwd = Path(cwd)
        self._runner = runner or self._default_runner
        self._root: Optional[Path] = None

    def root(self) -> Path:
        if self._root is None:
            output = self._git(
                ["rev-parse", "--show-toplevel"],
                "Can't open the repository, please check the current directory is inside a git repository",
                cwd=self._cwd,
            )
            self._root = Path(output.strip()).resolve()
        return self._root

    def remote_branch(self) -> str:
        logger.debug("Getting current remote branch")
        output = self._git(
            ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"],
            "No upstream branch for the local branch",
        )
        branch = output.strip()
        if not branch:
            raise ModBuildError("Can't find the branch pointed by HEAD")
        return branch

    def diff_files(self, commit: str) -> List[str]:
        logger.debug("Getting diff changes since %s", commit)
        resolved = self._resolve_commit(commit)
        output = self._git(
            ["diff", "--name-only", resolved],
            f"Can't find out the diff with reference {commit}",
        )
        files = [line.strip() for line in output.splitlines() if line.strip()]
        untracked = self._git(
            ["ls-files", "--others", "--exclude-standard"],
            "Can't list untracked files",
        )
        for line in untracked.splitlines():
            path = line.strip()
            if path and path not in files:
                files.append(path)
        logger.debug("Diff files: %s", files)
        return files

    def add_path(self, path: Path) -> None:
        logger.debug("Add %s to the repository", path)
        self._git(["add", "--", self._to_relative(Path(path))], "Can't add path to index")

    def commit(self, message: str) -> None:
        logger.debug("Commit changes with message: %s", message)
        self._git(["commit", "-m", message], "Can't create a commit")

    def get_push_url(self) -> str:
        output = self._git(
            ["remote", "get-url", "--push", "origin"], "The origin remote is not set"
        )
        url = output.strip()
        if not url:
            raise ModBuildError("The push url is not a valid string")
        return url

    def log(self, range_spec: str, include_body: bool = False) -> List[str]:
        logger.debug("Generate log in range %s", range_spec)
        fmt = "%B" if include_body else "%s"
        output = self._git(
            ["log", f"--format={fmt}{_LOG_SEPARATOR}", range_spec],
            f"Can't walk commit range {range_spec}",
        )
        entries = [entry.strip() for entry in output.split(_LOG_SEPARATOR)]
        return [entry for entry in entries if entry]

    def fetch(self, branch: str) -> None:
        logger.debug("Fetch changes from remote branch: %s", branch)
        self._git(["fetch", "origin", branch], "Can't fetch data from origin")

    def push(self, branch: str) -> None:
        logger.debug("Push changes to remote branch: %s", branch)
        self._git(["push", "origin", f"HEAD:refs/heads/{branch}"], "Can't push data to origin")

    def merge(self, branch: str, dry_run: bool = False) -> None:
        target = f"origin/{branch}"
        if dry_run:
            self._git(
                ["merge-tree", "--write-tree", "HEAD", target],
                f"Can't merge {branch}",
            )
        else:
            self._git(["merge", target], f"Can't merge {branch}")

    # ------------------------------------------------------------------
    # Internals

    def _resolve_commit(self, commit: str) -> str:
        for candidate in (commit, f"refs/remotes/{commit}"):
            try:
                output = self._git(
                    ["rev-parse", "--verify", "--quiet", f"{candidate}^{{commit}}"],
                    f"Can't resolve {candidate}",
                )
            except ModBuildError:
                continue
            resolved = output.strip()
            if resolved:
                return resolved
        raise ModBuildError(f"Can't find out the tree reference by {commit}")

    def _to_relative(self, path: Path) -> str:
        root = self.root()
        try:
            return path.resolve().relative_to(root).as_posix()
        except ValueError:
            return path.as_posix()

    def _git(self, args: List[str], description: str, *, cwd: Path | None = None) -> str:
        command = ["git", *args]
        try:
            return self._runner(command, cwd=cwd or self.root(), capture_output=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise ModBuildError(description, exc) from exc

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


__all__ = ["GitVersionControl", "VersionControl"]
