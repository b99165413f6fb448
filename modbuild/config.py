"""Configuration loading for modbuild (.modbuild.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .errors import ConfigurationError

CONFIG_FILENAME = ".modbuild.yml"

DEFAULT_EXCLUDED_MODULES = "module-templates|build-tools|root-project.*"
DEFAULT_SETTINGS_FILE = "build.settings.gradle.kts"
DEFAULT_TRIGGERS_FILE = "build.triggers"
DEFAULT_TEMPLATES_DIR = "module-templates"

_BUILD_CMD_ENV_VARS = ("MODBUILD_BUILD_CMD", "GRADLE_CMD")


@dataclass
class ModBuildConfig:
    """Represents the settings defined in .modbuild.yml."""

    root: Path
    root_project_dir: Optional[str] = None
    excluded_modules: str = DEFAULT_EXCLUDED_MODULES
    build_cmd: Optional[str] = None
    build_args: List[str] = field(default_factory=list)
    default_tasks: List[str] = field(default_factory=lambda: ["build"])
    extra_roots: List[Path] = field(default_factory=list)
    triggers_file: Optional[Path] = None
    settings_file: str = DEFAULT_SETTINGS_FILE
    propagate_impact: bool = True
    workers: Optional[int] = None
    templates_dir: Optional[Path] = None
    protected_branches: List[str] = field(default_factory=lambda: ["master", "develop"])

    def resolve_build_cmd(self, environ: Mapping[str, str] | None = None) -> Optional[str]:
        """Return the build command, letting the environment override the file."""
        env = os.environ if environ is None else environ
        for name in _BUILD_CMD_ENV_VARS:
            value = env.get(name)
            if value and value.strip():
                return value.strip()
        return self.build_cmd


def load_config(config_path: Path) -> ModBuildConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ModBuildConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = ModBuildConfig(root=root)
    config.root_project_dir = _as_str(data.get("root_project_dir"))
    excluded = data.get("excluded_modules")
    if isinstance(excluded, list):
        config.excluded_modules = "|".join(_as_str_list(excluded))
    elif _as_str(excluded) is not None:
        config.excluded_modules = _as_str(excluded) or ""
    config.build_cmd = _as_str(data.get("build_cmd"))
    config.build_args = _as_str_list(data.get("build_args"))
    tasks = _as_str_list(data.get("default_tasks"))
    if tasks:
        config.default_tasks = tasks
    config.extra_roots = [_resolve(root, item) for item in _as_str_list(data.get("extra_roots"))]
    triggers = _as_str(data.get("triggers_file"))
    config.triggers_file = _resolve(root, triggers) if triggers else None
    settings_file = _as_str(data.get("settings_file"))
    if settings_file:
        config.settings_file = settings_file
    propagate = _as_bool(data.get("propagate_impact"))
    if propagate is not None:
        config.propagate_impact = propagate
    workers = _as_int(data.get("workers"))
    if workers is not None:
        if workers < 1:
            raise ConfigurationError(f"workers must be positive, got {workers}")
        config.workers = workers
    templates = _as_str(data.get("templates_dir"))
    config.templates_dir = _resolve(root, templates) if templates else None
    protected = _as_str_list(data.get("protected_branches"))
    if protected:
        config.protected_branches = protected
    return config


def detect_root_project(repo_root: Path, configured: Optional[str] = None) -> Path:
    """Return the directory that holds the build tool's root settings."""
    if configured:
        return _resolve(repo_root, configured)
    if _has_settings(repo_root):
        return repo_root
    for candidate in sorted(repo_root.glob("*/settings.gradle*")):
        if candidate.is_file():
            return candidate.parent
    return repo_root


def _has_settings(directory: Path) -> bool:
    return (directory / "settings.gradle").exists() or (directory / "settings.gradle.kts").exists()


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _resolve(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Can't read {path}", exc) from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse {path.name}", exc) from exc
    return loaded or {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_EXCLUDED_MODULES",
    "DEFAULT_SETTINGS_FILE",
    "DEFAULT_TEMPLATES_DIR",
    "DEFAULT_TRIGGERS_FILE",
    "ModBuildConfig",
    "detect_root_project",
    "load_config",
]
