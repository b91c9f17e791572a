"""Processed metric descriptors.

A descriptor is a plain record: the column it produces, the columns it reads,
the columns it consumes (temporary), how it is computed and rendered, and an
optional gate deciding whether the metric applies to a table at all. Metric
families are built by factories rather than subclasses; composite metrics list
other descriptors' names as dependents and rely on the evaluator's dependency
ordering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .formatter import format_money, format_percent_metric, format_time_metric
from .table import Row, Table
from .types import EvaluationContext, is_absent
from .utils import quotient_safe

PERFORMANCE_METRIC_IDS = (
    "time_latency",
    "time_transfer",
    "time_dom_processing",
    "time_dom_completion",
    "time_on_load",
)
PAGE_LOAD_TIME = "avg_page_load_time"
TIME_AVERAGE_PRECISION = 3
CONVERSION_RATE_PRECISION = 2
REVENUE_PRECISION = 2


def _default_format(value: Any, context: str) -> str:
    if value is None or is_absent(value):
        return ""
    return str(value)


@dataclass(frozen=True)
class MetricDescriptor:
    name: str
    dependents: tuple[str, ...]
    compute_fn: Callable[[Row], Any]
    temporary: tuple[str, ...] = ()
    format_fn: Callable[[Any, str], str] = _default_format
    label: str = ""
    # Column whose table-wide sum must be positive for the metric to apply.
    gate_column: str | None = None
    # Raw columns dropped (and reported as empty) when the gate closes.
    gated_columns: tuple[str, ...] = ()
    allow_missing_dependents: bool = False
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def dependent_metrics(self) -> list[str]:
        return list(self.dependents)

    def temporary_metrics(self) -> set[str]:
        return set(self.temporary)

    def missing_dependents(self, row: Row) -> list[str]:
        return [name for name in self.dependents if not row.has_column(name)]

    def compute(self, row: Row) -> Any:
        return self.compute_fn(row)

    def before_compute(self, context: EvaluationContext | None, table: Table) -> bool:
        if self.gate_column is None:
            return True
        return table.column_sum(self.gate_column) > 0

    def is_materialized(self, table: Table) -> bool:
        return any(row.has_column(self.name) for row in table.rows)

    def format(self, value: Any, context: str) -> str:
        return self.format_fn(value, context)


def metric_value(row: Row, name: str) -> Any:
    """Numeric value of a column, ``0`` when the column is absent."""

    value = row.get_column(name)
    if is_absent(value) or value is None:
        return 0
    return value


def average_performance_metric(
    metric_id: str, label: str = "", precision: int = TIME_AVERAGE_PRECISION
) -> MetricDescriptor:
    """``avg_<id> = sum_<id> / nb_hits_with_<id>``, computed when a report is served.

    The sum and hit count are produced during archiving; the sum is dropped
    once the average exists.
    """

    sum_column = f"sum_{metric_id}"
    hits_column = f"nb_hits_with_{metric_id}"

    def compute(row: Row) -> Any:
        return quotient_safe(
            metric_value(row, sum_column),
            metric_value(row, hits_column),
            precision,
        )

    return MetricDescriptor(
        name=f"avg_{metric_id}",
        dependents=(sum_column, hits_column),
        compute_fn=compute,
        temporary=(sum_column,),
        format_fn=format_time_metric,
        label=label or f"Avg. {metric_id.replace('_', ' ')}",
        gate_column=sum_column,
        gated_columns=(sum_column, hits_column, f"min_{metric_id}", f"max_{metric_id}"),
    )


def average_page_load_time(metric_ids: tuple[str, ...] = PERFORMANCE_METRIC_IDS) -> MetricDescriptor:
    """Sum of the per-phase averages.

    A phase whose average was gated off counts as zero.
    """

    dependents = tuple(f"avg_{metric_id}" for metric_id in metric_ids)

    def compute(row: Row) -> Any:
        total = 0
        for name in dependents:
            total += metric_value(row, name)
        return total

    return MetricDescriptor(
        name=PAGE_LOAD_TIME,
        dependents=dependents,
        compute_fn=compute,
        format_fn=format_time_metric,
        label="Avg. page load time",
        allow_missing_dependents=True,
    )


def goal_conversion_rate(id_goal: str | int) -> MetricDescriptor:
    conversions = f"goal_{id_goal}_nb_conversions"

    def compute(row: Row) -> Any:
        return quotient_safe(
            100 * metric_value(row, conversions),
            metric_value(row, "nb_visits"),
            CONVERSION_RATE_PRECISION,
        )

    return MetricDescriptor(
        name=f"goal_{id_goal}_conversion_rate",
        dependents=(conversions, "nb_visits"),
        compute_fn=compute,
        format_fn=format_percent_metric,
        label=f"Conversion rate (goal {id_goal})",
        metadata={"id_goal": str(id_goal)},
    )


def average_order_revenue() -> MetricDescriptor:
    def compute(row: Row) -> Any:
        return quotient_safe(
            metric_value(row, "revenue"),
            metric_value(row, "nb_conversions"),
            REVENUE_PRECISION,
        )

    return MetricDescriptor(
        name="avg_order_revenue",
        dependents=("revenue", "nb_conversions"),
        compute_fn=compute,
        format_fn=format_money,
        label="Average order value",
    )


def performance_metrics(precision: int = TIME_AVERAGE_PRECISION) -> list[MetricDescriptor]:
    descriptors = [
        average_performance_metric(metric_id, precision=precision)
        for metric_id in PERFORMANCE_METRIC_IDS
    ]
    descriptors.append(average_page_load_time())
    return descriptors
