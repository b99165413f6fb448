"""Build settings artifact generation."""

from __future__ import annotations

import re
from pathlib import Path, PurePath
from typing import Iterable, List, Sequence, Tuple

from jinja2 import Environment, StrictUndefined

from .errors import ModBuildError
from .logging import get_logger
from .models import Module

PRE_SETTINGS_FILENAME = "settings.pre.gradle.kts"
DEFAULT_SETTINGS_FILENAME = "settings.gradle.kts"

HEADER = (
    "// This file is auto generated, please don't edit.\n"
    f"// You can add logic in {PRE_SETTINGS_FILENAME} instead.\n"
    "// Use `modbuild open` to regenerate this file.\n"
)

_ENTRIES_TEMPLATE = """\
{% for entry in entries %}
include(":{{ entry.name }}")
project(":{{ entry.name }}").projectDir = file("{{ entry.path }}")

{% endfor %}
"""

_INCLUDE_PATTERN = re.compile(r'^include\("(?P<name>:[^"]+)"\)\s*$')
_PROJECT_DIR_PATTERN = re.compile(
    r'^project\("(?P<name>:[^"]+)"\)\.projectDir\s*=\s*file\("(?P<path>[^"]*)"\)\s*$'
)

logger = get_logger("settings")


def relative_to(path: Path, from_dir: Path) -> str:
    """Express ``path`` relative to ``from_dir``, walking up with ``..`` as needed."""
    base = PurePath(from_dir)
    target = PurePath(path)
    ups: List[str] = []
    while not _is_within(target, base):
        if base.parent == base:
            break
        ups.append("..")
        base = base.parent
    if not _is_within(target, base):
        return target.as_posix()
    return "/".join([".", *ups, *target.relative_to(base).parts])


def _is_within(path: PurePath, ancestor: PurePath) -> bool:
    try:
        path.relative_to(ancestor)
    except ValueError:
        return False
    return True


def parse_settings(text: str) -> List[Tuple[str, str]]:
    """Return ``(name, project_dir)`` pairs declared by a generated settings file."""
    includes: List[str] = []
    directories: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        include = _INCLUDE_PATTERN.match(line)
        if include:
            includes.append(include.group("name")[1:])
            continue
        project_dir = _PROJECT_DIR_PATTERN.match(line)
        if project_dir:
            directories[project_dir.group("name")[1:]] = project_dir.group("path")
    return [(name, directories.get(name, "")) for name in includes]


class SettingsWriter:
    """Writes the module selection into a build settings file."""

    def __init__(self, root_project: Path | str) -> None:
        self.root_project = Path(root_project)
        self._env = Environment(
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self._template = self._env.from_string(_ENTRIES_TEMPLATE)

    @property
    def pre_settings_file(self) -> Path:
        return self.root_project / PRE_SETTINGS_FILENAME

    def render_entries(self, modules: Iterable[Module]) -> str:
        entries = [
            {"name": module.name, "path": relative_to(module.path, self.root_project)}
            for module in modules
        ]
        return self._template.render(entries=entries)

    def render(self, modules: Sequence[Module]) -> str:
        """Return the full settings text: header, pre file content, then entries."""
        return HEADER + self._read_pre_settings() + self.render_entries(modules)

    def write(self, modules: Sequence[Module], file: Path | str) -> Path:
        """Overwrite ``file`` with the settings for ``modules``."""
        target = Path(file)
        logger.info("Creating settings file: %s", target)
        content = self.render(modules)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("w", encoding="utf-8") as handle:
                handle.write(content)
        except OSError as exc:
            raise ModBuildError(f"Can't write to {target}", exc) from exc
        for module in modules:
            logger.debug("Add module %s to %s", module.name, target)
        return target

    def append(self, modules: Sequence[Module], file: Path | str) -> Path:
        """Append entries to an existing settings file, skipping names already declared."""
        target = Path(file)
        if not target.exists():
            raise ModBuildError(f"There is no settings file at {target}")
        try:
            existing = {name for name, _ in parse_settings(target.read_text(encoding="utf-8"))}
            fresh = [module for module in modules if module.name not in existing]
            with target.open("a", encoding="utf-8") as handle:
                handle.write(self.render_entries(fresh))
        except OSError as exc:
            raise ModBuildError(f"Can't write to {target}", exc) from exc
        return target

    def _read_pre_settings(self) -> str:
        path = self.pre_settings_file
        if not path.exists():
            return ""
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Can't add the content of %s: %s", path, exc)
            return ""
        if content and not content.endswith("\n"):
            content += "\n"
        return content


__all__ = [
    "DEFAULT_SETTINGS_FILENAME",
    "HEADER",
    "PRE_SETTINGS_FILENAME",
    "SettingsWriter",
    "parse_settings",
    "relative_to",
]
