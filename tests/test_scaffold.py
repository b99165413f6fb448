"""Tests for template based module creation."""

from __future__ import annotations

from pathlib import Path

import pytest

from modbuild.errors import ModBuildError
from modbuild.scaffold import Scaffolder, create_tokens, feature_name, package_name, split_names


def _templates(root: Path) -> Path:
    templates = root / "module-templates"
    files = {
        "android/build.gradle.kts": 'android { namespace = "#{packageName}" }\n',
        "android/src/main/kotlin/template-feature/FeatureNameActivity.kt": "class #{featureName}Activity\n",
        "android/README.md": "skip me\n",
        "domain/build.gradle.kts": "// #{featureName}\n",
    }
    for relative, content in files.items():
        path = templates / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return templates


def test_name_tokens() -> None:
    assert feature_name("feature/user-login") == "FeatureUserLogin"
    assert package_name("feature-user/Login/domain") == "feature.user.login"
    assert create_tokens("feature/login") == {
        "#{featureName}": "FeatureLogin",
        "#{packageName}": "feature.login",
    }


def test_split_names() -> None:
    assert split_names(None) == []
    assert split_names("android, domain,,") == ["android", "domain"]


def test_module_types_default_to_every_template(tmp_path: Path) -> None:
    templates = _templates(tmp_path)
    scaffolder = Scaffolder(tmp_path)

    assert scaffolder.module_types(templates, []) == ["android", "domain"]
    assert scaffolder.module_types(templates, ["domain", "ios"]) == ["domain"]


def test_module_types_require_template_dir(tmp_path: Path) -> None:
    with pytest.raises(ModBuildError):
        Scaffolder(tmp_path).module_types(tmp_path / "missing", [])


def test_targets_nest_only_for_several_types(tmp_path: Path) -> None:
    scaffolder = Scaffolder(tmp_path)
    target = tmp_path / "feature" / "login"

    assert scaffolder.targets(target, ["android"]) == [target]
    assert scaffolder.targets(target, ["android", "domain"]) == [target / "android", target / "domain"]


def test_copy_template_substitutes_tokens_and_paths(tmp_path: Path) -> None:
    templates = _templates(tmp_path)
    target = tmp_path / "feature" / "login"

    written = Scaffolder(tmp_path).copy_template(templates / "android", target, excludes=["README.md"])

    activity = target / "src/main/kotlin/feature/login/FeatureLoginActivity.kt"
    assert activity in written
    assert activity.read_text(encoding="utf-8") == "class FeatureLoginActivity\n"
    assert (target / "build.gradle.kts").read_text(encoding="utf-8") == (
        'android { namespace = "feature.login" }\n'
    )
    assert not (target / "README.md").exists()


def test_copy_template_outside_repository(tmp_path: Path) -> None:
    templates = _templates(tmp_path)
    repo = tmp_path / "repo"
    repo.mkdir()

    with pytest.raises(ModBuildError):
        Scaffolder(repo).copy_template(templates / "domain", tmp_path / "elsewhere")
