"""Module discovery over one or more scan roots."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence, Set

from .errors import ConfigurationError
from .logging import get_logger
from .models import Module, derive_module_name

MAX_DEPTH = 3

# Preference order when a directory holds more than one descriptor.
DESCRIPTOR_NAMES: tuple[str, ...] = ("build.gradle.kts", "build.gradle")

_EXCLUDED_DIRS = {
    "build",
    "node_modules",
    "__pycache__",
}

logger = get_logger("scanner")


def _find_descriptor(directory: Path, filenames: Sequence[str]) -> Path | None:
    present = [name for name in DESCRIPTOR_NAMES if name in filenames]
    if not present:
        return None
    if len(present) > 1:
        logger.warning(
            "Directory %s holds %s, using %s", directory, ", ".join(present), present[0]
        )
    return directory / present[0]


def _iter_modules(root: Path, max_depth: int) -> Iterator[Module]:
    def _on_error(exc: OSError) -> None:
        logger.warning("Skipping unreadable entry %s: %s", exc.filename, exc)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        current_dir = Path(dirpath)
        relative = current_dir.relative_to(root)
        depth = len(relative.parts)

        dirnames[:] = sorted(
            name for name in dirnames if not name.startswith(".") and name not in _EXCLUDED_DIRS
        )

        descriptor = _find_descriptor(current_dir, filenames)
        if descriptor is not None and depth > 0:
            module = Module(
                path=current_dir,
                name=derive_module_name(relative),
                descriptor=descriptor,
                root=root,
            )
            logger.debug("Found module %s at %s", module.name, module.path)
            # A module's own subdirectories are sources, not modules.
            dirnames[:] = []
            yield module
            continue

        if depth >= max_depth:
            dirnames[:] = []


class ModuleScanner:
    """Walks scan roots for module descriptor files."""

    def __init__(self, max_depth: int = MAX_DEPTH) -> None:
        self.max_depth = max_depth

    def scan_root(self, root: Path | str) -> List[Module]:
        """Return the modules below one root in discovery order."""
        root_path = Path(root).expanduser()
        if not root_path.exists():
            raise ConfigurationError(f"Scan root not found: {root}")
        if not root_path.is_dir():
            raise ConfigurationError(f"Scan root is not a directory: {root}")
        root_path = root_path.resolve()
        logger.debug("Scanning %s", root_path)
        return list(_iter_modules(root_path, self.max_depth))

    def scan(self, roots: Iterable[Path | str]) -> List[Module]:
        """Return the modules of every root, dropping names or directories an earlier root produced."""
        modules: List[Module] = []
        seen: Set[str] = set()
        seen_paths: Set[Path] = set()
        visited: Set[Path] = set()
        for root in roots:
            resolved = Path(root).expanduser().resolve()
            if resolved in visited:
                continue
            visited.add(resolved)
            for module in self.scan_root(root):
                if module.name in seen:
                    logger.warning(
                        "Module %s at %s duplicates an already discovered name, ignored",
                        module.name,
                        module.path,
                    )
                    continue
                if module.path in seen_paths:
                    logger.warning(
                        "Module %s at %s was already discovered under another name, ignored",
                        module.name,
                        module.path,
                    )
                    continue
                seen.add(module.name)
                seen_paths.add(module.path)
                modules.append(module)
        logger.info("Discovered %d modules", len(modules))
        return modules


__all__ = ["DESCRIPTOR_NAMES", "MAX_DEPTH", "ModuleScanner"]
