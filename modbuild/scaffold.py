"""Module scaffolding from template directories."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

from .errors import ModBuildError
from .logging import get_logger

logger = get_logger("scaffold")


def feature_name(relative: str) -> str:
    """``feature/user-login`` -> ``FeatureUserLogin``."""
    words = relative.replace("/", "-").split("-")
    return "".join(word[:1].upper() + word[1:] for word in words if word)


def package_name(relative: str) -> str:
    """``feature-user/Login/domain`` -> ``feature.user.login``."""
    return (
        relative.lower()
        .replace("feature-", "feature.")
        .replace("-", "")
        .replace("/", ".")
        .replace(".domain", "")
    )


def create_tokens(relative: str) -> Dict[str, str]:
    tokens = {
        "#{featureName}": feature_name(relative),
        "#{packageName}": package_name(relative),
    }
    for key, value in tokens.items():
        logger.info("Generated token: %s = %s", key, value)
    return tokens


def split_names(value: str | None) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class Scaffolder:
    """Copies a template tree into a new module, substituting name tokens."""

    repo_root: Path

    def module_types(self, template_dir: Path, types: Sequence[str]) -> List[str]:
        """Return the requested template types that exist, or every type when none requested."""
        if not template_dir.is_dir():
            raise ModBuildError(f"There is no module template in {template_dir}")
        if not types:
            return sorted(entry.name for entry in template_dir.iterdir() if entry.is_dir())
        selected: List[str] = []
        for name in types:
            if not (template_dir / name).is_dir():
                logger.warning("There is no such type: %s in the template dir %s", name, template_dir)
                continue
            selected.append(name)
        return selected

    def targets(self, target_dir: Path, module_types: Sequence[str]) -> List[Path]:
        if len(module_types) == 1:
            return [target_dir]
        return [target_dir / name for name in module_types]

    def copy_template(self, template: Path, target: Path, excludes: Sequence[str] = ()) -> List[Path]:
        """Copy ``template`` into ``target``; returns the files written."""
        logger.info("Creating module %s from %s", target, template)
        try:
            relative = target.relative_to(self.repo_root).as_posix()
        except ValueError as exc:
            raise ModBuildError(f"{target} is outside the repository {self.repo_root}", exc) from exc

        package_path = package_name(relative).replace(".", "/")
        name = feature_name(relative)
        tokens = create_tokens(relative)
        excluded = set(excludes)

        def _target_path(source: Path) -> Path:
            parts = [
                part.replace("FeatureName", name).replace("template-feature", package_path)
                for part in source.relative_to(template).parts
            ]
            return target.joinpath(*parts)

        written: List[Path] = []
        try:
            for source in sorted(template.rglob("*")):
                if any(part in excluded for part in source.relative_to(template).parts):
                    logger.debug("Skip file: %s", source)
                    continue
                destination = _target_path(source)
                if source.is_dir():
                    destination.mkdir(parents=True, exist_ok=True)
                elif source.is_file():
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    content = source.read_text(encoding="utf-8")
                    for key, value in tokens.items():
                        content = content.replace(key, value)
                    destination.write_text(content, encoding="utf-8")
                    written.append(destination)
                else:
                    logger.warning("File type of %s is not supported", source)
        except OSError as exc:
            raise ModBuildError("Can't copy template directory", exc) from exc
        return written


__all__ = [
    "Scaffolder",
    "create_tokens",
    "feature_name",
    "package_name",
    "split_names",
]
