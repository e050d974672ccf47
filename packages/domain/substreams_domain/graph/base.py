"""Module dependency graph.

This module provides the DAG over a manifest's modules:
- Edges from each referenced module to the module reading it
- Validation (duplicate names, dangling references, cycles)
- Topological sort for dependency order
- Ancestor queries used by signature derivation

Source inputs are external roots: they are never resolved against the
module list and create no edges.
"""

import heapq
from typing import Dict, List, Set

from ..errors import (
    CyclicDependencyError,
    DanglingReferenceError,
    DuplicateModuleError,
    UnknownModuleError,
)
from ..logging import get_logger
from ..schemas.modules import Module


class ModuleGraph:
    """Validated DAG of modules.

    Building the graph validates it; a ModuleGraph instance is always
    acyclic with every store/map input resolved.

    Example:
        graph = ModuleGraph([store_balances, map_transfers])

        graph.topological_sort()
        → [map_transfers, store_balances]

        graph.ancestors_of("store_balances")
        → [map_transfers]
    """

    def __init__(self, modules: List[Module], logger=None):
        """Build the graph.

        Args:
            modules: Modules in declaration order
            logger: structlog logger (default: module logger)

        Raises:
            DuplicateModuleError: If two modules share a name
            DanglingReferenceError: If an input names a missing module
            CyclicDependencyError: If modules depend on each other in a cycle
        """
        self._log = logger or get_logger(__name__)
        self._modules: Dict[str, Module] = {}
        self._order: Dict[str, int] = {}

        for index, module in enumerate(modules):
            if module.name in self._modules:
                raise DuplicateModuleError(
                    f"module {module.name!r} is declared more than once",
                    modules=[module.name],
                )
            self._modules[module.name] = module
            self._order[module.name] = index

        # parents: modules a module reads from; children: modules reading it
        self._parents: Dict[str, List[str]] = {name: [] for name in self._modules}
        self._children: Dict[str, List[str]] = {name: [] for name in self._modules}

        for module in modules:
            for inp in module.inputs:
                producer = inp.module_name
                if producer is None:
                    continue
                if producer not in self._modules:
                    raise DanglingReferenceError(
                        f"module {module.name!r}: input {inp.name!r} references unknown module {producer!r}",
                        modules=[module.name, producer],
                    )
                if producer not in self._parents[module.name]:
                    self._parents[module.name].append(producer)
                    self._children[producer].append(module.name)

        self._sorted: List[str] = self._kahn_sort()
        self._position: Dict[str, int] = {name: i for i, name in enumerate(self._sorted)}

        self._log.debug(
            "module_graph.built",
            modules=len(self._modules),
            edges=sum(len(parents) for parents in self._parents.values()),
        )

    # ------------------------------------------------------------------ #
    # Sorting
    # ------------------------------------------------------------------ #

    def _kahn_sort(self) -> List[str]:
        """Kahn's algorithm, always emitting the earliest-declared ready module.

        Raises:
            CyclicDependencyError: If some modules never become ready
        """
        in_degree: Dict[str, int] = {name: len(parents) for name, parents in self._parents.items()}

        ready = [(self._order[name], name) for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        sorted_names: List[str] = []

        while ready:
            _, current = heapq.heappop(ready)
            sorted_names.append(current)

            for child in self._children[current]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    heapq.heappush(ready, (self._order[child], child))

        if len(sorted_names) != len(self._modules):
            remaining = sorted(
                (name for name, degree in in_degree.items() if degree > 0),
                key=self._order.__getitem__,
            )
            raise CyclicDependencyError(
                f"Circular dependency detected among modules: {remaining}",
                modules=remaining,
            )

        return sorted_names

    def topological_sort(self) -> List[Module]:
        """Modules ordered so each one comes after everything it reads from.

        Ties between independent modules follow declaration order.
        """
        return [self._modules[name] for name in self._sorted]

    def position(self, name: str) -> int:
        """Index of a module in topological order."""
        self._require(name)
        return self._position[name]

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def modules(self) -> List[Module]:
        """Modules in declaration order."""
        return list(self._modules.values())

    def has(self, name: str) -> bool:
        return name in self._modules

    def get(self, name: str) -> Module:
        self._require(name)
        return self._modules[name]

    def store_modules(self) -> List[Module]:
        """Store modules in topological order."""
        return [module for module in self.topological_sort() if module.is_store]

    def parents_of(self, name: str) -> List[Module]:
        """Modules `name` reads from directly, in input declaration order."""
        self._require(name)
        return [self._modules[parent] for parent in self._parents[name]]

    def ancestors_of(self, name: str) -> List[Module]:
        """Every module that must be computed before `name`.

        Each ancestor appears once, in topological order.

        Raises:
            UnknownModuleError: If `name` is not in the graph
        """
        self._require(name)
        return self._closure(name, self._parents)

    def descendants_of(self, name: str) -> List[Module]:
        """Every module that transitively reads from `name`, in topological order.

        Raises:
            UnknownModuleError: If `name` is not in the graph
        """
        self._require(name)
        return self._closure(name, self._children)

    def _closure(self, name: str, edges: Dict[str, List[str]]) -> List[Module]:
        seen: Set[str] = set()
        stack = list(edges[name])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(edges[current])
        return [self._modules[n] for n in sorted(seen, key=self._position.__getitem__)]

    def _require(self, name: str) -> None:
        if name not in self._modules:
            raise UnknownModuleError(
                f"module {name!r} not found in graph. Available modules: {list(self._modules)}",
                modules=[name],
            )

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __repr__(self) -> str:
        return f"ModuleGraph(modules={self._sorted})"


def topological_sort(modules: List[Module]) -> List[Module]:
    """Sort modules in dependency order.

    Raises:
        GraphError: If the modules do not form a valid DAG
    """
    return ModuleGraph(modules).topological_sort()
