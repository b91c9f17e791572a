from __future__ import annotations

from typing import Any, Callable, Iterable

from .descriptors import MetricDescriptor
from .formatter import check_render_context
from .registry import order_descriptors
from .table import Table
from .types import EvaluationContext, EvaluationSummary, is_absent


class MetricEvaluator:
    """Adds processed metric columns to a table, in place.

    Per table: every descriptor's gate runs once before any row is touched.
    A closed gate drops the metric's raw columns and records them under the
    ``empty_columns`` metadata. Active descriptors are then computed row by
    row in dependency order; a row that receives a value loses that metric's
    temporary columns.
    Running it again on the same table changes nothing.
    """

    def __init__(self, logger: Callable[[str], None] | None = None) -> None:
        self._logger = logger

    def _log(self, context: EvaluationContext, msg: str) -> None:
        if self._logger is not None:
            self._logger(msg)
        else:
            context.logger(msg)

    def evaluate(
        self,
        table: Table,
        descriptors: Iterable[MetricDescriptor],
        context: EvaluationContext | None = None,
    ) -> EvaluationSummary:
        context = context or EvaluationContext()
        ordered = order_descriptors(list(descriptors))

        active: list[MetricDescriptor] = []
        inactive: list[str] = []
        removed_columns: list[str] = []
        for descriptor in ordered:
            if descriptor.before_compute(context, table):
                active.append(descriptor)
                continue
            inactive.append(descriptor.name)
            purged = self._close_gate(descriptor, table, context)
            for name in purged:
                if name not in removed_columns:
                    removed_columns.append(name)

        computed: dict[str, int] = {descriptor.name: 0 for descriptor in active}
        for row in table.rows:
            for descriptor in active:
                if not descriptor.allow_missing_dependents and descriptor.missing_dependents(row):
                    continue
                value = descriptor.compute(row)
                if value is None or is_absent(value):
                    continue
                row.set_column(descriptor.name, value)
                computed[descriptor.name] += 1
                # Rows left uncomputed keep their inputs.
                for name in descriptor.temporary:
                    row.delete_column(name)

        self._log(
            context,
            f"[evaluate] rows={len(table)} active={[d.name for d in active]} inactive={inactive}",
        )
        return EvaluationSummary(
            rows=len(table),
            active=[descriptor.name for descriptor in active],
            inactive=inactive,
            computed=computed,
            removed_columns=removed_columns,
        )

    def _close_gate(
        self, descriptor: MetricDescriptor, table: Table, context: EvaluationContext
    ) -> list[str]:
        if not descriptor.gated_columns:
            return []
        if table.get_rows_count() == 0 or descriptor.is_materialized(table):
            return []
        table.delete_columns(descriptor.gated_columns)
        table.append_empty_columns(descriptor.gated_columns)
        self._log(
            context,
            f"[gate] {descriptor.name} inactive: no {descriptor.gate_column} data, "
            f"dropped {list(descriptor.gated_columns)}",
        )
        return list(descriptor.gated_columns)


def format_metrics(
    table: Table,
    descriptors: Iterable[MetricDescriptor],
    render_context: str,
) -> list[dict[str, Any]]:
    """Rows as dicts with each processed metric rendered for ``render_context``.

    Columns hidden through ``empty_columns`` are left out.
    """

    check_render_context(render_context)
    by_name = {descriptor.name: descriptor for descriptor in descriptors}
    hidden = set(table.empty_columns)
    formatted: list[dict[str, Any]] = []
    for row in table.rows:
        out: dict[str, Any] = {}
        for name, value in row.columns.items():
            if name in hidden:
                continue
            descriptor = by_name.get(name)
            out[name] = descriptor.format(value, render_context) if descriptor else value
        formatted.append(out)
    return formatted
