"""In-memory VersionControl double."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from modbuild.errors import ModBuildError
from modbuild.git.vc import VersionControl


class FakeVersionControl(VersionControl):
    """Records calls and answers from canned data."""

    def __init__(
        self,
        root: Path,
        *,
        changed: Optional[Dict[str, List[str]]] = None,
        upstream: Optional[str] = "origin/feature",
        push_url: str = "ssh://git@stash.example.com/APP/mobile.git",
        logs: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        self._root = root
        self.changed = changed or {}
        self.upstream = upstream
        self.push_url = push_url
        self.logs = logs or {}
        self.calls: List[tuple] = []

    def root(self) -> Path:
        return self._root

    def remote_branch(self) -> str:
        if self.upstream is None:
            raise ModBuildError("No upstream branch for the local branch")
        return self.upstream

    def diff_files(self, commit: str) -> List[str]:
        self.calls.append(("diff_files", commit))
        if commit not in self.changed:
            raise ModBuildError(f"Can't find out the tree reference by {commit}")
        return list(self.changed[commit])

    def add_path(self, path: Path) -> None:
        self.calls.append(("add_path", Path(path)))

    def commit(self, message: str) -> None:
        self.calls.append(("commit", message))

    def get_push_url(self) -> str:
        return self.push_url

    def log(self, range_spec: str, include_body: bool = False) -> List[str]:
        self.calls.append(("log", range_spec, include_body))
        return list(self.logs.get(range_spec, []))

    def fetch(self, branch: str) -> None:
        self.calls.append(("fetch", branch))

    def push(self, branch: str) -> None:
        self.calls.append(("push", branch))

    def merge(self, branch: str, dry_run: bool = False) -> None:
        self.calls.append(("merge", branch, dry_run))


__all__ = ["FakeVersionControl"]
