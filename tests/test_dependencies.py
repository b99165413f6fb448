"""Tests for descriptor reference extraction."""

from __future__ import annotations

from pathlib import Path

from modbuild.dependencies import DependencyExtractor, _partition, parse_references, read_references
from modbuild.models import ModuleGraph


def test_parse_references_reads_every_token_on_a_line() -> None:
    text = """
    dependencies {
        implementation(project(":core"))
        api project(path: ':feature:login')
        testImplementation(project(":core")); implementation(project(":ui"))
    }
    """

    assert parse_references(text) == ("core", "feature:login", "ui")


def test_parse_references_skips_comments_and_unrelated_lines() -> None:
    text = """
    // implementation(project(":commented"))
    /* implementation(project(":block")) */
    * implementation(project(":star"))
    implementation("com.example:lib:1.0")
    implementation(project(path = ":named"))
    """

    assert parse_references(text) == ("named",)


def test_parse_references_accepts_tabs_before_parenthesis() -> None:
    text = "implementation project\t(\":core\")\n"

    assert parse_references(text) == ("core",)


def test_read_references_treats_unreadable_descriptor_as_empty(tmp_path: Path) -> None:
    assert read_references(tmp_path / "missing.gradle") == ()


def test_partition_covers_every_index_once() -> None:
    ranges = _partition(10, 3)

    assert [len(owned) for owned in ranges] == [4, 3, 3]
    assert [index for owned in ranges for index in owned] == list(range(10))
    assert _partition(0, 4) == []
    assert len(_partition(2, 8)) == 2


def test_extractor_fills_unset_slots_only(repo_builder) -> None:
    repo_builder.module("core")
    repo_builder.module("feature", depends_on=["core"])
    repo_builder.module("app", depends_on=["feature", "core"])
    graph = repo_builder.graph()
    app = graph.record(graph.index_of("app"))
    app.dependencies = ("preset",)

    DependencyExtractor(workers=2).resolve(list(graph))

    assert app.dependencies == ("preset",)
    assert graph.dependencies_of(graph.index_of("feature")) == ("core",)
    assert graph.dependencies_of(graph.index_of("core")) == ()
    assert all(record.resolved for record in graph)


def test_extractor_matches_sequential_result(repo_builder) -> None:
    for index in range(12):
        repo_builder.module(f"m{index}", depends_on=[f"m{index - 1}"] if index else [])
    sequential = repo_builder.graph()
    parallel = ModuleGraph.from_modules(sequential.modules())

    DependencyExtractor(workers=1).resolve(list(sequential))
    DependencyExtractor(workers=5).resolve(list(parallel))

    assert [r.dependencies for r in sequential] == [r.dependencies for r in parallel]
