"""Tests for module filter variants."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from modbuild.filters import ChangedSince, ModuleFilter, NameExclude, NameInclude, evaluate
from modbuild.git.changes import ChangeSet
from modbuild.models import Module


def _module(root: Path, relative: str, name: str | None = None) -> Module:
    path = root / relative
    return Module(
        path=path,
        name=name or relative.replace("/", ":"),
        descriptor=path / "build.gradle.kts",
        root=root,
    )


def test_name_variants_evaluate_by_regex(tmp_path: Path) -> None:
    module = _module(tmp_path, "feature/login")

    assert evaluate(NameInclude(re.compile("login")), module)
    assert not evaluate(NameInclude(re.compile("^payment")), module)
    assert evaluate(NameExclude(re.compile("^build-tools")), module)
    assert not evaluate(NameExclude(re.compile("feature")), module)


def test_changed_since_variant_delegates_to_change_set(tmp_path: Path) -> None:
    module = _module(tmp_path, "core")
    changes = ChangeSet(root=tmp_path, changed_files=("core/src/Main.kt",))

    assert evaluate(ChangedSince(changes), module)


def test_evaluate_rejects_unknown_variant(tmp_path: Path) -> None:
    with pytest.raises(TypeError):
        evaluate("not a filter", _module(tmp_path, "core"))  # type: ignore[arg-type]


def test_filter_chain_is_a_conjunction(tmp_path: Path) -> None:
    modules = [
        _module(tmp_path, "feature/login"),
        _module(tmp_path, "feature/payment"),
        _module(tmp_path, "module-templates/basic"),
    ]
    module_filter = ModuleFilter().with_name_regex("^feature|^module").exclude_modules(
        "module-templates|build-tools"
    )

    matched, others = module_filter.partition(modules)

    assert [m.name for m in matched] == ["feature:login", "feature:payment"]
    assert [m.name for m in others] == ["module-templates:basic"]


def test_empty_filter_matches_everything(tmp_path: Path) -> None:
    modules = [_module(tmp_path, "a"), _module(tmp_path, "b")]

    matched, others = ModuleFilter().partition(modules)

    assert matched == modules
    assert others == []


def test_bad_regex_is_dropped(tmp_path: Path) -> None:
    module_filter = ModuleFilter().with_name_regex("feature(").exclude_modules("[")

    assert len(module_filter) == 0
    assert module_filter.matches(_module(tmp_path, "anything"))


def test_builders_return_new_chains() -> None:
    base = ModuleFilter().exclude_modules("templates")
    narrowed = base.with_name_regex("core")

    assert len(base) == 1
    assert len(narrowed) == 2


def test_exclusions_keeps_only_exclude_variants(tmp_path: Path) -> None:
    changes = ChangeSet(root=tmp_path, changed_files=())
    module_filter = ModuleFilter().with_name_regex("core").exclude_modules("templates").since(changes)

    exclusions = module_filter.exclusions()

    assert len(exclusions) == 1
    assert isinstance(exclusions.predicates[0], NameExclude)
    assert exclusions.matches(_module(tmp_path, "feature"))
    assert not exclusions.matches(_module(tmp_path, "templates"))
