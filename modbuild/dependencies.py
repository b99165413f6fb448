"""Inter-module reference extraction from descriptor files."""

from __future__ import annotations

import os
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .logging import get_logger
from .models import ModuleRecord

REFERENCE_MARKER = "project("

_COMMENT_PREFIXES = ("//", "/*", "*")
_REFERENCE_PATTERN = re.compile(
    r"""project\s*\(\s*(?:path\s*[=:]\s*)?(?P<quote>["']):(?P<name>[^"']+)(?P=quote)"""
)
_WHITESPACE = re.compile(r"\s+")

logger = get_logger("dependencies")


def parse_references(text: str) -> Tuple[str, ...]:
    """Return the module names referenced by descriptor text, in order, without repeats."""
    names: List[str] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue
        if REFERENCE_MARKER not in _WHITESPACE.sub("", line):
            continue
        for match in _REFERENCE_PATTERN.finditer(line):
            name = match.group("name").strip()
            if name and name not in names:
                names.append(name)
    return tuple(names)


def read_references(descriptor: Path) -> Tuple[str, ...]:
    try:
        text = descriptor.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("Can't read %s, treating it as dependency free: %s", descriptor, exc)
        return ()
    return parse_references(text)


def _partition(count: int, parts: int) -> List[range]:
    if count == 0:
        return []
    parts = max(1, min(parts, count))
    size, extra = divmod(count, parts)
    ranges: List[range] = []
    start = 0
    for index in range(parts):
        stop = start + size + (1 if index < extra else 0)
        ranges.append(range(start, stop))
        start = stop
    return ranges


def default_workers() -> int:
    return min(8, os.cpu_count() or 1)


class DependencyExtractor:
    """Fills unset dependency slots of module records using a fixed worker pool."""

    def __init__(self, workers: Optional[int] = None) -> None:
        self.workers = workers or default_workers()

    def resolve(self, records: Sequence[ModuleRecord]) -> None:
        """Compute dependencies for every record whose slot is still unset.

        Each worker owns a contiguous range of the pending records and is the
        only writer of their slots.
        """
        pending = [record for record in records if record.dependencies is None]
        if not pending:
            return

        ranges = _partition(len(pending), self.workers)
        logger.debug(
            "Extracting dependencies of %d modules with %d workers", len(pending), len(ranges)
        )

        def _work(owned: range) -> None:
            for index in owned:
                record = pending[index]
                record.dependencies = read_references(record.descriptor)

        if len(ranges) == 1:
            _work(ranges[0])
            return

        with ThreadPoolExecutor(max_workers=len(ranges)) as pool:
            for future in [pool.submit(_work, owned) for owned in ranges]:
                future.result()


__all__ = ["DependencyExtractor", "REFERENCE_MARKER", "parse_references", "read_references"]
