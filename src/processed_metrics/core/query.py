from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Protocol, Union

import pandas as pd

from .descriptors import MetricDescriptor
from .evaluator import MetricEvaluator
from .table import Table
from .types import EvaluationContext

FrameSource = Union[pd.DataFrame, Callable[["ReportRequest"], pd.DataFrame]]


@dataclass(frozen=True)
class ReportRequest:
    method: str
    period: str | None = None
    date: str | None = None
    segment: str | None = None
    id_goal: str | None = None
    filter_sort_column: str | None = None
    filter_sort_order: str = "desc"
    filter_limit: int | None = None
    params: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"method": self.method, "format": "original"}
        for key in ("period", "date", "segment", "filter_sort_column", "filter_limit"):
            value = getattr(self, key)
            if value is not None:
                params[key] = value
        if self.id_goal is not None:
            params["idGoal"] = self.id_goal
        if self.filter_sort_column is not None:
            params["filter_sort_order"] = self.filter_sort_order
        params.update(self.params)
        return params


class ReportQueryApi(Protocol):
    def process(self, request: ReportRequest) -> Table:  # pragma: no cover - protocol
        ...


class FrameReportApi:
    """Serves report methods from pandas DataFrames.

    Each method maps to a DataFrame or to a callable building one from the
    request. Sorting and row limits follow the request; configured processed
    metrics are evaluated on the resulting table.
    """

    def __init__(
        self,
        frames: Mapping[str, FrameSource],
        processed_metrics: Mapping[str, Iterable[MetricDescriptor]] | None = None,
        metadata_columns: Iterable[str] = (),
        logger: Callable[[str], None] | None = None,
    ) -> None:
        self._frames = dict(frames)
        self._processed = {key: list(value) for key, value in (processed_metrics or {}).items()}
        self._metadata_columns = list(metadata_columns)
        self._logger = logger
        self._evaluator = MetricEvaluator(logger=logger)
        self.requests: list[ReportRequest] = []

    @classmethod
    def from_directory(cls, path: Path, **kwargs: Any) -> "FrameReportApi":
        """One ``<method>.csv`` (or ``.json``) file per report method."""

        frames: dict[str, FrameSource] = {}
        for file in sorted(path.iterdir()):
            if file.suffix == ".csv":
                frames[file.stem] = pd.read_csv(file)
            elif file.suffix == ".json":
                frames[file.stem] = pd.read_json(file, orient="records")
        return cls(frames, **kwargs)

    def methods(self) -> list[str]:
        return sorted(self._frames)

    def process(self, request: ReportRequest) -> Table:
        self.requests.append(request)
        if request.method not in self._frames:
            raise KeyError(f"Unknown report method: {request.method}")
        source = self._frames[request.method]
        df = source(request) if callable(source) else source.copy()
        if self._logger is not None:
            self._logger(f"[query] {request.method} rows={len(df)} params={request.to_params()}")

        column = request.filter_sort_column
        if column is not None and column in df.columns:
            df = df.sort_values(
                column,
                ascending=request.filter_sort_order == "asc",
                kind="mergesort",
                na_position="last",
            )
        if request.filter_limit is not None and request.filter_limit >= 0:
            df = df.head(request.filter_limit)

        table = Table.from_frame(df.reset_index(drop=True), metadata_columns=self._metadata_columns)
        descriptors = self._processed.get(request.method)
        if descriptors:
            context = EvaluationContext(
                period=request.period, date=request.date, segment=request.segment
            )
            self._evaluator.evaluate(table, descriptors, context)
        return table
