"""
Step registry — the ordered, named set of actions a run applies.

Registration order matters: it is the tie-breaker of the topological
sort, so a registry always resolves to the same sequence and a re-run
after a partial failure retries steps in a predictable order.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterator

from hostprov.adapters.base import Action
from hostprov.core.errors import (
    CyclicDependencyError,
    DuplicateNameError,
    UnknownDependencyError,
)

logger = logging.getLogger(__name__)


class StepRegistry:
    """Named steps plus their declared dependencies."""

    def __init__(self, steps: list[Action] | None = None):
        self._steps: dict[str, Action] = {}
        for step in steps or []:
            self.register(step)

    def register(self, step: Action) -> None:
        """Add a step. Names are unique keys."""
        if step.name in self._steps:
            raise DuplicateNameError(step.name)
        self._steps[step.name] = step
        logger.debug("Registered step: %s (depends_on=%s)", step.name, list(step.depends_on))

    def get(self, name: str) -> Action | None:
        """Look up a step by name."""
        return self._steps.get(name)

    def names(self) -> list[str]:
        """Step names in registration order."""
        return list(self._steps.keys())

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Action]:
        return iter(self._steps.values())

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def resolve_order(self) -> list[Action]:
        """Topologically sort the steps (Kahn's algorithm).

        Among steps whose dependencies are all placed, the one registered
        first goes next.

        Raises:
            UnknownDependencyError: A step names an unregistered dependency.
            CyclicDependencyError: The graph has a cycle.
        """
        position = {name: idx for idx, name in enumerate(self._steps)}
        dependents: dict[str, list[str]] = {name: [] for name in self._steps}
        indeg: dict[str, int] = {name: 0 for name in self._steps}

        for step in self._steps.values():
            for dep in dict.fromkeys(step.depends_on):
                if dep not in self._steps:
                    raise UnknownDependencyError(step.name, dep)
                dependents[dep].append(step.name)
                indeg[step.name] += 1

        ready = [position[name] for name, deg in indeg.items() if deg == 0]
        heapq.heapify(ready)
        names = list(self._steps)
        order: list[Action] = []

        while ready:
            name = names[heapq.heappop(ready)]
            order.append(self._steps[name])
            for child in dependents[name]:
                indeg[child] -= 1
                if indeg[child] == 0:
                    heapq.heappush(ready, position[child])

        if len(order) != len(self._steps):
            stuck = [name for name in names if indeg[name] > 0]
            raise CyclicDependencyError(stuck)

        return order
