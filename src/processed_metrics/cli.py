from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Callable

import pandas as pd
from jsonschema import ValidationError

from processed_metrics.core.aggregator import CapabilityError, ReportAggregator
from processed_metrics.core.config import load_settings, resolve_config
from processed_metrics.core.evaluator import MetricEvaluator, format_metrics
from processed_metrics.core.query import FrameReportApi
from processed_metrics.core.registry import MetricRegistry
from processed_metrics.core.table import EMPTY_COLUMNS_METADATA_NAME, Table
from processed_metrics.core.types import EvaluationContext, TopDimensionEntry
from processed_metrics.core.utils import debug_enabled, default_settings_path, json_dumps


def _stderr_logger(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _logger() -> Callable[[str], None] | None:
    return _stderr_logger if debug_enabled() else None


def _split(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _jsonable(value: Any) -> Any:
    if isinstance(value, TopDimensionEntry):
        return value.as_dict()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value


def _settings(path: str | None) -> dict[str, Any]:
    return load_settings(path or default_settings_path())


def _read_table(path: Path) -> Table:
    if path.suffix == ".json":
        df = pd.read_json(path, orient="records")
    else:
        df = pd.read_csv(path)
    return Table.from_frame(df)


def cmd_list_metrics(goals: list[str]) -> None:
    registry = MetricRegistry.with_goals(goals) if goals else MetricRegistry.default()
    for descriptor in registry.resolve():
        print(f"{descriptor.name}: {', '.join(descriptor.dependents)}")


def cmd_evaluate(
    file: str,
    metrics: str,
    settings_path: str | None,
    render_context: str | None,
    formatted: bool,
    goals: list[str],
) -> None:
    config = resolve_config(_settings(settings_path))
    precision = config["time_precision"]
    registry = (
        MetricRegistry.with_goals(goals, precision) if goals else MetricRegistry.default(precision)
    )
    names = None if metrics == "all" else _split(metrics)
    descriptors = registry.resolve(names)
    table = _read_table(Path(file))
    logger = _logger()
    context = EvaluationContext(
        render_context=render_context or config["render_context"],
        settings=config,
    )
    if logger is not None:
        context.logger = logger
    summary = MetricEvaluator().evaluate(table, descriptors, context)
    if formatted:
        rows: list[dict[str, Any]] = format_metrics(table, descriptors, context.render_context)
    else:
        rows = table.to_records()
    print(
        json_dumps(
            {
                "rows": rows,
                "metadata": {
                    EMPTY_COLUMNS_METADATA_NAME: table.empty_columns,
                },
                "summary": {
                    "active": summary.active,
                    "inactive": summary.inactive,
                    "computed": summary.computed,
                },
            }
        )
    )


def _aggregator(
    reports_dir: str, id_goal: str, settings_path: str | None, metadata_columns: list[str]
) -> ReportAggregator:
    settings = _settings(settings_path)
    config = resolve_config(settings)
    logger = _logger()
    registry = MetricRegistry.with_goals([id_goal])
    rate = registry.resolve([f"goal_{id_goal}_conversion_rate"])
    processed = {item["method"]: rate for item in config["dimensions"]}
    api = FrameReportApi.from_directory(
        Path(reports_dir),
        processed_metrics=processed,
        metadata_columns=metadata_columns,
        logger=logger,
    )
    return ReportAggregator(api, settings=settings, logger=logger)


def cmd_top_dimensions(
    reports_dir: str,
    id_goal: str,
    period: str | None,
    date: str | None,
    settings_path: str | None,
    metadata_columns: list[str],
) -> None:
    aggregator = _aggregator(reports_dir, id_goal, settings_path, metadata_columns)
    top = aggregator.top_dimensions(id_goal, period, date)
    print(json_dumps(_jsonable(top)))


def cmd_goal_report(
    reports_dir: str,
    id_goal: str,
    period: str | None,
    date: str | None,
    settings_path: str | None,
    metadata_columns: list[str],
) -> None:
    aggregator = _aggregator(reports_dir, id_goal, settings_path, metadata_columns)
    report = aggregator.goal_report(id_goal, period, date)
    print(json_dumps(_jsonable(report)))


def _add_report_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--reports-dir", required=True)
    parser.add_argument("--id-goal", required=True)
    parser.add_argument("--period")
    parser.add_argument("--date")
    parser.add_argument("--settings")
    parser.add_argument("--metadata-columns", default="")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="processed-metrics")
    sub = parser.add_subparsers(dest="command", required=True)

    list_parser = sub.add_parser("list-metrics")
    list_parser.add_argument("--goals", default="")

    eval_parser = sub.add_parser("evaluate")
    eval_parser.add_argument("--file", required=True)
    eval_parser.add_argument("--metrics", default="all")
    eval_parser.add_argument("--settings")
    eval_parser.add_argument("--context", choices=["html", "machine"])
    eval_parser.add_argument("--formatted", action="store_true")
    eval_parser.add_argument("--goals", default="")

    top_parser = sub.add_parser("top-dimensions")
    _add_report_arguments(top_parser)

    goal_parser = sub.add_parser("goal-report")
    _add_report_arguments(goal_parser)

    args = parser.parse_args(argv)

    try:
        if args.command == "list-metrics":
            cmd_list_metrics(_split(args.goals))
        elif args.command == "evaluate":
            cmd_evaluate(
                args.file,
                args.metrics,
                args.settings,
                args.context,
                bool(args.formatted),
                _split(args.goals),
            )
        elif args.command == "top-dimensions":
            cmd_top_dimensions(
                args.reports_dir,
                args.id_goal,
                args.period,
                args.date,
                args.settings,
                _split(args.metadata_columns),
            )
        elif args.command == "goal-report":
            cmd_goal_report(
                args.reports_dir,
                args.id_goal,
                args.period,
                args.date,
                args.settings,
                _split(args.metadata_columns),
            )
        else:
            raise SystemExit(2)
    except (CapabilityError, KeyError, ValueError, ValidationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc


if __name__ == "__main__":
    main()
