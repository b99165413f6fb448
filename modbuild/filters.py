"""Module filter variants and the interpreter that evaluates them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

from .git.changes import ChangeSet
from .logging import get_logger
from .models import Module

logger = get_logger("filters")


@dataclass(frozen=True)
class NameInclude:
    """Passes modules whose name matches the pattern."""

    pattern: re.Pattern[str]


@dataclass(frozen=True)
class NameExclude:
    """Passes modules whose name does not match the pattern."""

    pattern: re.Pattern[str]


@dataclass(frozen=True)
class ChangedSince:
    """Passes modules touched by the change set."""

    changes: ChangeSet


ModulePredicate = Union[NameInclude, NameExclude, ChangedSince]


def evaluate(predicate: ModulePredicate, module: Module) -> bool:
    """Return whether ``module`` passes a single filter variant."""
    if isinstance(predicate, NameInclude):
        return predicate.pattern.search(module.name) is not None
    if isinstance(predicate, NameExclude):
        return predicate.pattern.search(module.name) is None
    if isinstance(predicate, ChangedSince):
        return predicate.changes.touches(module)
    raise TypeError(f"Unknown module filter: {predicate!r}")


def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as exc:
        logger.warning("Bad regex for module name: %s (%s)", pattern, exc)
        return None


@dataclass(frozen=True)
class ModuleFilter:
    """Ordered AND-chain of filter variants.

    Builder methods return a new chain; a pattern that does not compile is
    dropped with a warning so the rest of the chain still applies.
    """

    predicates: Tuple[ModulePredicate, ...] = field(default_factory=tuple)

    def with_predicate(self, predicate: ModulePredicate) -> "ModuleFilter":
        return ModuleFilter(self.predicates + (predicate,))

    def with_name_regex(self, pattern: str | None) -> "ModuleFilter":
        if not pattern:
            return self
        compiled = _compile(pattern)
        return self.with_predicate(NameInclude(compiled)) if compiled else self

    def exclude_modules(self, pattern: str | None) -> "ModuleFilter":
        if not pattern:
            return self
        compiled = _compile(pattern)
        return self.with_predicate(NameExclude(compiled)) if compiled else self

    def since(self, changes: ChangeSet) -> "ModuleFilter":
        return self.with_predicate(ChangedSince(changes))

    def exclusions(self) -> "ModuleFilter":
        """Return the chain reduced to its exclusion variants."""
        return ModuleFilter(tuple(p for p in self.predicates if isinstance(p, NameExclude)))

    def matches(self, module: Module) -> bool:
        return all(evaluate(predicate, module) for predicate in self.predicates)

    def partition(self, modules: Sequence[Module]) -> Tuple[List[Module], List[Module]]:
        """Split modules into ``(matched, others)``, preserving order."""
        matched: List[Module] = []
        others: List[Module] = []
        for module in modules:
            if self.matches(module):
                logger.info("Found module met criteria: %s", module.name)
                matched.append(module)
            else:
                logger.debug("Module %s doesn't meet criteria", module.name)
                others.append(module)
        return matched, others

    def __len__(self) -> int:
        return len(self.predicates)


__all__ = [
    "ChangedSince",
    "ModuleFilter",
    "ModulePredicate",
    "NameExclude",
    "NameInclude",
    "evaluate",
]
