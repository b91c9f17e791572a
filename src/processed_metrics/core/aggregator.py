from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from .config import resolve_config
from .formatter import format_conversion_rate
from .query import ReportQueryApi, ReportRequest
from .table import Row
from .types import GoalDefinition, TopDimensionEntry, is_absent

ECOMMERCE_ORDER = "ecommerceOrder"
ECOMMERCE_CART = "ecommerceAbandonedCart"
# Goal id asking report methods for the per-goal columns of every goal.
GOALS_FULL_TABLE = "0"
RETURNING_VISITORS_SEGMENT = "visitorType==returning,visitorType==returningCustomer"
NEW_VISITORS_SEGMENT = "visitorType==new"
ECOMMERCE_CAPABILITY = "CustomVariables"
ECOMMERCE_REVENUE_COLUMNS = (
    "revenue_subtotal",
    "revenue_tax",
    "revenue_shipping",
    "revenue_discount",
)


class CapabilityError(RuntimeError):
    pass


class UnknownGoalError(KeyError):
    pass


@dataclass(frozen=True)
class DimensionSpec:
    name: str
    method: str
    capability: str | None = None
    exclude_labels: frozenset[str] = frozenset()

    def excludes(self, label: Any) -> bool:
        return label in self.exclude_labels


def _as_number(value: Any) -> float | None:
    if value is None or is_absent(value) or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_count(number: float) -> float | int:
    return int(number) if number.is_integer() else number


def _or_zero(value: Any) -> Any:
    if value is None or is_absent(value) or not value:
        return 0
    return value


def _goal_definitions(goals: Mapping[str, Any]) -> dict[str, GoalDefinition]:
    definitions: dict[str, GoalDefinition] = {}
    for id_goal, goal in goals.items():
        if isinstance(goal, GoalDefinition):
            definitions[str(id_goal)] = goal
            continue
        definitions[str(id_goal)] = GoalDefinition(
            id_goal=str(id_goal),
            name=str(goal.get("name", "")),
            allow_multiple=bool(goal.get("allow_multiple", False)),
        )
    return definitions


class ReportAggregator:
    """Builds goal summaries out of several independent report queries.

    Which optional sections exist depends only on the ``capabilities`` given
    at construction.
    """

    def __init__(
        self,
        api: ReportQueryApi,
        capabilities: Iterable[str] | None = None,
        settings: dict[str, Any] | None = None,
        goals: Mapping[str, Any] | None = None,
        logger: Callable[[str], None] | None = None,
    ) -> None:
        self._api = api
        self.config = resolve_config(settings)
        if capabilities is None:
            capabilities = self.config["capabilities"]
        self.capabilities = frozenset(capabilities)
        self.goals = _goal_definitions(goals if goals is not None else self.config["goals"])
        self._logger = logger

    def _log(self, msg: str) -> None:
        if self._logger is not None:
            self._logger(msg)

    def _format_rate(self, value: Any) -> str:
        return format_conversion_rate(value, self.config["conversion_rate_precision"])

    def _expand_label(self, label: str) -> str:
        if label == "${keyword_not_defined}":
            return self.config["keyword_not_defined"]
        return label

    def dimensions(self) -> list[DimensionSpec]:
        specs: list[DimensionSpec] = []
        for item in self.config["dimensions"]:
            capability = item.get("capability")
            if capability and capability not in self.capabilities:
                continue
            specs.append(
                DimensionSpec(
                    name=item["name"],
                    method=item["method"],
                    capability=capability,
                    exclude_labels=frozenset(
                        self._expand_label(label) for label in item.get("exclude_labels", [])
                    ),
                )
            )
        return specs

    def top_dimensions(
        self,
        id_goal: str | int,
        period: str | None = None,
        date: str | None = None,
        segment: str | None = None,
    ) -> dict[str, list[TopDimensionEntry]]:
        """Best converting rows per dimension, in descending conversion order."""

        column_conversions = f"goal_{id_goal}_nb_conversions"
        column_rate = f"goal_{id_goal}_conversion_rate"
        cap = int(self.config["top_rows"])
        limit = cap + int(self.config["top_rows_margin"])

        top: dict[str, list[TopDimensionEntry]] = {}
        for spec in self.dimensions():
            request = ReportRequest(
                method=spec.method,
                period=period,
                date=date,
                segment=segment,
                id_goal=GOALS_FULL_TABLE,
                filter_sort_column=column_conversions,
                filter_sort_order="desc",
                filter_limit=limit,
                params={"filter_update_columns_when_show_all_goals": 1},
            )
            table = self._api.process(request)
            entries: list[TopDimensionEntry] = []
            for row in table.rows:
                if len(entries) >= cap:
                    break
                conversions = row.get_column(column_conversions)
                number = _as_number(conversions)
                if number is None or number <= 0:
                    continue
                label = row.get_column("label")
                if spec.excludes(label):
                    continue
                entries.append(
                    TopDimensionEntry(
                        name=label,
                        nb_conversions=_as_count(number),
                        conversion_rate=self._format_rate(row.get_column(column_rate)),
                        metadata=dict(row.metadata),
                    )
                )
            self._log(f"[top] {spec.name}: {len(entries)} of {len(table)} rows kept")
            top[spec.name] = entries
        return top

    def conversion_rate_for_segment(
        self,
        id_goal: str | int | None,
        period: str | None = None,
        date: str | None = None,
        segment: str | None = None,
    ) -> str:
        request = ReportRequest(
            method="Goals.getConversionRate",
            period=period,
            date=date,
            segment=segment,
            id_goal=None if id_goal is None else str(id_goal),
        )
        return self._format_rate(self._api.process(request))

    def _goal_row(self, id_goal: str, period: str | None, date: str | None) -> Row:
        request = ReportRequest(method="Goals.get", period=period, date=date, id_goal=id_goal)
        row = self._api.process(request).first_row()
        return row if row is not None else Row()

    def goal_metrics(
        self,
        id_goal: str | int,
        period: str | None = None,
        date: str | None = None,
    ) -> dict[str, Any]:
        id_goal = str(id_goal)
        row = self._goal_row(id_goal, period, date)
        nb_conversions = _or_zero(row.get_column("nb_conversions"))
        nb_visits_converted = row.get_column("nb_visits_converted")
        # Older archives do not carry nb_visits_converted.
        if not _or_zero(nb_visits_converted):
            nb_visits_converted = nb_conversions
        metrics: dict[str, Any] = {
            "id": id_goal,
            "nb_conversions": int(nb_conversions),
            "nb_visits_converted": int(nb_visits_converted),
            "conversion_rate": self._format_rate(row.get_column("conversion_rate")),
            "revenue": _or_zero(row.get_column("revenue")),
        }
        if id_goal == ECOMMERCE_ORDER:
            for column in ECOMMERCE_REVENUE_COLUMNS:
                value = row.get_column(column)
                metrics[column] = None if is_absent(value) else value
            metrics["items"] = _or_zero(row.get_column("items"))
            metrics["avg_order_revenue"] = _or_zero(row.get_column("avg_order_revenue"))
        return metrics

    def goal_report(
        self,
        id_goal: str | int,
        period: str | None = None,
        date: str | None = None,
    ) -> dict[str, Any]:
        id_goal = str(id_goal)
        ecommerce = id_goal == ECOMMERCE_ORDER
        if ecommerce:
            if ECOMMERCE_CAPABILITY not in self.capabilities:
                raise CapabilityError(
                    f"Ecommerce reports require the {ECOMMERCE_CAPABILITY} capability"
                )
            definition = GoalDefinition(id_goal=id_goal, name="Ecommerce", allow_multiple=True)
        elif id_goal in self.goals:
            definition = self.goals[id_goal]
        else:
            raise UnknownGoalError(f"Unknown goal: {id_goal}")

        report: dict[str, Any] = dict(self.goal_metrics(id_goal, period, date))
        if ecommerce:
            for name, value in self.goal_metrics(ECOMMERCE_CART, period, date).items():
                report[f"cart_{name}"] = value
        report.update(
            {
                "id_goal": id_goal,
                "goal_name": definition.name,
                "allow_multiple": definition.allow_multiple,
                "ecommerce": ecommerce,
                "top_dimensions": self.top_dimensions(id_goal, period, date),
                "conversion_rate_returning": self.conversion_rate_for_segment(
                    id_goal, period, date, RETURNING_VISITORS_SEGMENT
                ),
                "conversion_rate_new": self.conversion_rate_for_segment(
                    id_goal, period, date, NEW_VISITORS_SEGMENT
                ),
            }
        )
        return report

    def overview(self, period: str | None = None, date: str | None = None) -> dict[str, Any]:
        row = self._goal_row("", period, date)
        goal_metrics: dict[str, dict[str, Any]] = {}
        for id_goal, definition in self.goals.items():
            metrics = self.goal_metrics(id_goal, period, date)
            metrics["name"] = definition.name
            metrics["allow_multiple"] = definition.allow_multiple
            goal_metrics[id_goal] = metrics
        return {
            "nb_conversions": _or_zero(row.get_column("nb_conversions")),
            "nb_visits_converted": _or_zero(row.get_column("nb_visits_converted")),
            "conversion_rate": self._format_rate(row.get_column("conversion_rate")),
            "revenue": _or_zero(row.get_column("revenue")),
            "goal_metrics": goal_metrics,
        }
