"""Change-impact selection: grows a filtered seed set into the full build set."""

from __future__ import annotations

from typing import List, Optional, Sequence, Set

from .dependencies import DependencyExtractor
from .filters import ModuleFilter
from .logging import get_logger
from .models import Module, ModuleGraph, ModuleRecord, SelectionResult

logger = get_logger("selector")


class ImpactSelector:
    """Expands matched modules with impacted dependents and required dependencies.

    Impact propagation honours the exclusion chain: a dependent that is
    excluded stays out. Dependency closure ignores it: a module another
    selected module needs to compile is always added.
    """

    def __init__(self, extractor: DependencyExtractor | None = None) -> None:
        self.extractor = extractor or DependencyExtractor()

    def select(
        self,
        graph: ModuleGraph,
        module_filter: ModuleFilter,
        *,
        propagate_impact: bool = True,
        exclude_rule: Optional[ModuleFilter] = None,
    ) -> SelectionResult:
        """Partition the graph's modules with ``module_filter`` and expand the matches."""
        matched, others = module_filter.partition(graph.modules())
        rule = exclude_rule if exclude_rule is not None else module_filter.exclusions()
        return self.expand(
            graph, matched, others, propagate_impact=propagate_impact, exclude_rule=rule
        )

    def expand(
        self,
        graph: ModuleGraph,
        matched: Sequence[Module],
        others: Sequence[Module],
        *,
        propagate_impact: bool,
        exclude_rule: ModuleFilter,
    ) -> SelectionResult:
        selected: List[Module] = list(matched)
        remaining: List[Module] = list(others)

        if propagate_impact and selected and remaining:
            self._propagate_impact(graph, selected, remaining, exclude_rule)

        if remaining:
            self._close_dependencies(graph, selected, remaining)

        logger.info("Selected %d modules", len(selected))
        return selected

    # ------------------------------------------------------------------
    # Phases

    def _propagate_impact(
        self,
        graph: ModuleGraph,
        selected: List[Module],
        remaining: List[Module],
        exclude_rule: ModuleFilter,
    ) -> None:
        self.extractor.resolve(self._records(graph, remaining))

        frontier: Set[str] = {module.name for module in selected}
        reported: Set[str] = set()
        while frontier:
            added: List[Module] = []
            for module in remaining:
                dependencies = self._dependencies(graph, module)
                if frontier.isdisjoint(dependencies):
                    continue
                if exclude_rule.matches(module):
                    logger.info("Add impacted module %s", module.name)
                    added.append(module)
                elif module.name not in reported:
                    reported.add(module.name)
                    logger.info("Module %s is impacted but excluded", module.name)
            if not added:
                break
            added_names = {module.name for module in added}
            remaining[:] = [module for module in remaining if module.name not in added_names]
            selected.extend(added)
            frontier = added_names

    def _close_dependencies(
        self,
        graph: ModuleGraph,
        selected: List[Module],
        remaining: List[Module],
    ) -> None:
        unprocessed: List[Module] = list(selected)
        while unprocessed and remaining:
            self.extractor.resolve(self._records(graph, unprocessed))
            required: Set[str] = set()
            for module in unprocessed:
                required.update(self._dependencies(graph, module))

            added = [module for module in remaining if module.name in required]
            if not added:
                break
            for module in added:
                logger.info("Add required module %s", module.name)
            added_names = {module.name for module in added}
            remaining[:] = [module for module in remaining if module.name not in added_names]
            selected.extend(added)
            unprocessed = added

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _records(graph: ModuleGraph, modules: Sequence[Module]) -> List[ModuleRecord]:
        records: List[ModuleRecord] = []
        for module in modules:
            index = graph.index_of(module.name)
            if index is not None:
                records.append(graph.record(index))
        return records

    @staticmethod
    def _dependencies(graph: ModuleGraph, module: Module) -> Sequence[str]:
        index = graph.index_of(module.name)
        if index is None:
            return ()
        return graph.dependencies_of(index)


__all__ = ["ImpactSelector"]
