from __future__ import annotations

import pytest

from processed_metrics.core.descriptors import MetricDescriptor, average_page_load_time
from processed_metrics.core.registry import MetricRegistry, order_descriptors


def _names(descriptors) -> list[str]:
    return [descriptor.name for descriptor in descriptors]


def test_default_registry_orders_composite_last() -> None:
    registry = MetricRegistry.default()
    names = _names(registry.resolve())
    assert names[-1] == "avg_page_load_time"
    assert len(names) == 6


def test_resolve_pulls_in_dependencies_before_requested_metric() -> None:
    registry = MetricRegistry.default()
    names = _names(registry.resolve(["avg_page_load_time"]))
    assert names == [
        "avg_time_latency",
        "avg_time_transfer",
        "avg_time_dom_processing",
        "avg_time_dom_completion",
        "avg_time_on_load",
        "avg_page_load_time",
    ]


def test_order_descriptors_reorders_declaration_order() -> None:
    registry = MetricRegistry.default()
    composite = average_page_load_time()
    others = [d for d in registry.descriptors() if d.name != composite.name]
    ordered = order_descriptors([composite, *others])
    assert _names(ordered) == _names(others) + [composite.name]
    assert order_descriptors(ordered) == ordered


def test_cycle_is_reported() -> None:
    a = MetricDescriptor(name="a", dependents=("b",), compute_fn=lambda row: 1)
    b = MetricDescriptor(name="b", dependents=("a",), compute_fn=lambda row: 1)
    with pytest.raises(ValueError, match="Cycle detected") as excinfo:
        order_descriptors([a, b])
    assert str(excinfo.value).endswith("a reads b reads a")


def test_unknown_metric_raises_key_error() -> None:
    with pytest.raises(KeyError, match="avg_nothing"):
        MetricRegistry.default().get("avg_nothing")


def test_with_goals_registers_goal_metrics() -> None:
    registry = MetricRegistry.with_goals(["1", 2])
    assert "goal_1_conversion_rate" in registry
    assert "goal_2_conversion_rate" in registry
    assert "avg_order_revenue" in registry
