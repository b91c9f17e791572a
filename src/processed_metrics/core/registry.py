from __future__ import annotations

from typing import Iterable

from .descriptors import (
    TIME_AVERAGE_PRECISION,
    MetricDescriptor,
    average_order_revenue,
    goal_conversion_rate,
    performance_metrics,
)


class MetricRegistry:
    def __init__(self, descriptors: Iterable[MetricDescriptor] = ()) -> None:
        self._descriptors: dict[str, MetricDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    @classmethod
    def default(cls, time_precision: int = TIME_AVERAGE_PRECISION) -> "MetricRegistry":
        return cls(performance_metrics(time_precision))

    @classmethod
    def with_goals(
        cls, goal_ids: Iterable[str | int], time_precision: int = TIME_AVERAGE_PRECISION
    ) -> "MetricRegistry":
        registry = cls.default(time_precision)
        registry.register(average_order_revenue())
        for id_goal in goal_ids:
            registry.register(goal_conversion_rate(id_goal))
        return registry

    def register(self, descriptor: MetricDescriptor) -> None:
        self._descriptors[descriptor.name] = descriptor

    def __contains__(self, name: str) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def names(self) -> list[str]:
        return list(self._descriptors.keys())

    def get(self, name: str) -> MetricDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise KeyError(f"Unknown processed metric: {name}") from None

    def descriptors(self) -> list[MetricDescriptor]:
        return list(self._descriptors.values())

    def expand(self, names: Iterable[str]) -> tuple[list[str], list[str]]:
        """Return (expanded, added): the requested names plus every registered
        metric they depend on, transitively.
        """

        requested = list(names)
        expanded = list(requested)
        added: list[str] = []
        stack = list(reversed(requested))
        while stack:
            name = stack.pop()
            descriptor = self.get(name)
            for dep in descriptor.dependents:
                if dep in self._descriptors and dep not in expanded:
                    expanded.append(dep)
                    added.append(dep)
                    stack.append(dep)
        return expanded, added

    def resolve(self, names: Iterable[str] | None = None) -> list[MetricDescriptor]:
        """Descriptors for ``names`` (all when None) in evaluation order."""

        if names is None:
            selected = self.names()
        else:
            selected, _ = self.expand(names)
        return order_descriptors([self.get(name) for name in selected])


def order_descriptors(descriptors: list[MetricDescriptor]) -> list[MetricDescriptor]:
    """Order descriptors so each one follows the descriptors it reads.

    Input order is kept among descriptors with no dependency between them, so an
    already ordered list comes back unchanged.
    """

    by_name = {descriptor.name: descriptor for descriptor in descriptors}
    deps: dict[str, set[str]] = {}
    indegree: dict[str, int] = {}
    for descriptor in descriptors:
        dep_set = {dep for dep in descriptor.dependents if dep in by_name and dep != descriptor.name}
        deps[descriptor.name] = dep_set
        indegree[descriptor.name] = len(dep_set)

    ordered: list[MetricDescriptor] = []
    remaining = [descriptor.name for descriptor in descriptors]
    while remaining:
        ready = [name for name in remaining if indegree[name] == 0]
        if not ready:
            cycle = _metric_cycle(deps, remaining)
            raise ValueError(f"Cycle detected in metric dependencies: {' reads '.join(cycle)}")
        ordered.extend(by_name[name] for name in ready)
        remaining = [name for name in remaining if name not in ready]
        for name in remaining:
            indegree[name] -= len(deps[name].intersection(ready))
    return ordered


def _metric_cycle(deps: dict[str, set[str]], remaining: list[str]) -> list[str]:
    """Follow unresolved dependencies from the first stuck metric until one repeats."""

    pending = set(remaining)
    path = [remaining[0]]
    while True:
        nxt = min(deps[path[-1]] & pending)
        if nxt in path:
            return path[path.index(nxt) :] + [nxt]
        path.append(nxt)
