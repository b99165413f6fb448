"""Changed-path sets and trigger rules used for change detection."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import Module
from .vc import VersionControl

logger = get_logger("changes")


@dataclass(frozen=True)
class TriggerRule:
    """Maps a path pattern to virtual paths treated as changed."""

    pattern: re.Pattern[str]
    paths: Tuple[str, ...]

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None


def parse_trigger_rules(text: str, *, source: str = "<triggers>") -> List[TriggerRule]:
    """Parse ``regex:comma,separated,paths`` lines, skipping malformed ones."""
    rules: List[TriggerRule] = []
    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if ":" not in line:
            logger.warning("Ignoring trigger rule without paths at %s:%d: %s", source, number, line)
            continue
        pattern_text, paths_text = line.rsplit(":", 1)
        try:
            pattern = re.compile(pattern_text.strip())
        except re.error as exc:
            logger.warning("Bad trigger pattern at %s:%d: %s (%s)", source, number, pattern_text, exc)
            continue
        paths = tuple(part.strip() for part in paths_text.split(",") if part.strip())
        if not paths:
            logger.warning("Ignoring trigger rule without paths at %s:%d: %s", source, number, line)
            continue
        rules.append(TriggerRule(pattern=pattern, paths=paths))
    return rules


def load_trigger_rules(path: Optional[Path]) -> List[TriggerRule]:
    """Load trigger rules from ``path`` when it exists."""
    if path is None or not path.is_file():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Can't read trigger file %s: %s", path, exc)
        return []
    rules = parse_trigger_rules(text, source=str(path))
    logger.debug("Loaded %d trigger rules from %s", len(rules), path)
    return rules


def _normalise(path: str) -> str:
    return path.replace("\\", "/").strip()


@dataclass
class ChangeSet:
    """Paths changed since a reference commit plus the trigger table."""

    root: Path
    changed_files: Tuple[str, ...]
    rules: Tuple[TriggerRule, ...] = ()
    _paths: Tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        files = [_normalise(path) for path in self.changed_files if _normalise(path)]
        self.changed_files = tuple(files)
        expanded = list(files)
        for rule in self.rules:
            if any(rule.matches(path) for path in files):
                for virtual in rule.paths:
                    if virtual not in expanded:
                        expanded.append(virtual)
        self._paths = tuple(expanded)

    @classmethod
    def from_version_control(
        cls,
        vc: VersionControl,
        commit: str,
        rules: Sequence[TriggerRule] = (),
    ) -> "ChangeSet":
        """Build the change set from the diff against ``commit``; may raise ModBuildError."""
        files = vc.diff_files(commit)
        logger.info("%d files changed since %s", len(files), commit)
        return cls(root=vc.root(), changed_files=tuple(files), rules=tuple(rules))

    @property
    def paths(self) -> Tuple[str, ...]:
        """Changed files followed by the virtual paths their trigger rules add."""
        return self._paths

    def relative_path(self, module: Module) -> str:
        try:
            return module.path.relative_to(self.root).as_posix()
        except ValueError:
            return module.path.as_posix()

    def touches(self, module: Module) -> bool:
        """Return True when any change or trigger rule marks the module as changed."""
        relative = self.relative_path(module)
        module_path = PurePosixPath(relative)
        for changed in self._paths:
            if _is_within(PurePosixPath(changed), module_path):
                return True
            trimmed = changed.rstrip("/")
            if trimmed and module.name.startswith(trimmed):
                return True

        watched = self._watched_prefixes(relative)
        if watched:
            return any(changed.startswith(prefix) for changed in self.changed_files for prefix in watched)
        return False

    def _watched_prefixes(self, relative: str) -> List[str]:
        prefixes: List[str] = []
        for rule in self.rules:
            if rule.matches(relative):
                prefixes.extend(rule.paths)
        return prefixes


def _is_within(path: PurePosixPath, ancestor: PurePosixPath) -> bool:
    try:
        path.relative_to(ancestor)
    except ValueError:
        return False
    return True


__all__ = [
    "ChangeSet",
    "TriggerRule",
    "load_trigger_rules",
    "parse_trigger_rules",
]
