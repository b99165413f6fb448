"""Core data models shared across modbuild components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

_NAME_REWRITES: Tuple[Tuple[str, str], ...] = (
    (":android", "-android"),
    (":domain", "-domain"),
)


def derive_module_name(relative: Path | str) -> str:
    """Return the module name for a directory relative to its scan root."""
    parts = [part for part in Path(relative).parts if part not in ("", ".")]
    name = ":".join(parts)
    for old, new in _NAME_REWRITES:
        name = name.replace(old, new)
    return name


@dataclass(frozen=True)
class Module:
    """One independently buildable unit found by the scanner."""

    path: Path
    name: str
    descriptor: Path
    root: Path


@dataclass
class ModuleRecord:
    """Arena slot pairing a module with its lazily computed dependency names.

    ``dependencies`` is ``None`` until the extractor fills it, then it is never
    written again.
    """

    module: Module
    dependencies: Optional[Tuple[str, ...]] = None

    @property
    def descriptor(self) -> Path:
        return self.module.descriptor

    @property
    def resolved(self) -> bool:
        return self.dependencies is not None


@dataclass
class ModuleGraph:
    """Index-addressed arena of module records for one invocation."""

    records: List[ModuleRecord] = field(default_factory=list)
    _index: Dict[str, int] = field(default_factory=dict, repr=False)

    @classmethod
    def from_modules(cls, modules: Iterable[Module]) -> "ModuleGraph":
        graph = cls()
        for module in modules:
            graph.add(module)
        return graph

    def add(self, module: Module) -> int:
        if module.name in self._index:
            raise ValueError(f"Duplicate module name: {module.name}")
        self.records.append(ModuleRecord(module=module))
        index = len(self.records) - 1
        self._index[module.name] = index
        return index

    def index_of(self, name: str) -> Optional[int]:
        return self._index.get(name)

    def record(self, index: int) -> ModuleRecord:
        return self.records[index]

    def modules(self) -> List[Module]:
        return [record.module for record in self.records]

    def dependencies_of(self, index: int) -> Tuple[str, ...]:
        return self.records[index].dependencies or ()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ModuleRecord]:
        return iter(self.records)


SelectionResult = List[Module]


def module_names(modules: Sequence[Module]) -> List[str]:
    return [module.name for module in modules]


__all__ = [
    "Module",
    "ModuleGraph",
    "ModuleRecord",
    "SelectionResult",
    "derive_module_name",
    "module_names",
]
