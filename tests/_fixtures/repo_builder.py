"""Helper utilities for constructing temporary module trees in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Iterable, List, Mapping

from modbuild.models import Module, ModuleGraph
from modbuild.scanner import ModuleScanner


class RepoBuilder:
    """Utility for writing files into a throwaway repository and rescanning it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = (tmp_path / "repo").resolve()
        self.root.mkdir()
        self._scanner = ModuleScanner()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the repository."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def module(self, relative: str, depends_on: Iterable[str] = (), *, kts: bool = True) -> None:
        """Write a module descriptor at `relative` referencing `depends_on`."""
        lines = ["dependencies {"]
        lines.extend(f'    implementation(project(":{name}"))' for name in depends_on)
        lines.append("}")
        descriptor = "build.gradle.kts" if kts else "build.gradle"
        self.write({f"{relative}/{descriptor}": "\n".join(lines) + "\n"})

    def scan(self) -> List[Module]:
        """Return a fresh module list for the repository."""
        return self._scanner.scan([self.root])

    def graph(self) -> ModuleGraph:
        return ModuleGraph.from_modules(self.scan())

    def path(self) -> Path:
        """Return the repository root path."""
        return self.root


__all__ = ["RepoBuilder"]
