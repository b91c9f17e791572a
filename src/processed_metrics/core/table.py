from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

import numpy as np
import pandas as pd

from .types import ABSENT, is_absent

EMPTY_COLUMNS_METADATA_NAME = "empty_columns"


def _normalize_cell(value: Any) -> Any:
    if value is None or is_absent(value):
        return ABSENT
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return ABSENT
    if value is pd.NA or value is pd.NaT:
        return ABSENT
    return value


@dataclass
class Row:
    columns: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def get_column(self, name: str) -> Any:
        return self.columns.get(name, ABSENT)

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def set_column(self, name: str, value: Any) -> None:
        if is_absent(value):
            self.columns.pop(name, None)
            return
        self.columns[name] = value

    def delete_column(self, name: str) -> bool:
        return self.columns.pop(name, ABSENT) is not ABSENT

    def get_metadata(self, name: str, default: Any = None) -> Any:
        return self.metadata.get(name, default)

    def as_dict(self) -> dict[str, Any]:
        return dict(self.columns)


@dataclass
class Table:
    """Ordered rows plus table-level metadata.

    ``empty_columns`` metadata is append-only and deduplicated; see
    :meth:`append_empty_columns`.
    """

    rows: list[Row] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def get_rows_count(self) -> int:
        return len(self.rows)

    def first_row(self) -> Row | None:
        return self.rows[0] if self.rows else None

    def add_row(self, row: Row) -> None:
        self.rows.append(row)

    def column_values(self, name: str) -> list[Any]:
        return [row.get_column(name) for row in self.rows if row.has_column(name)]

    def column_sum(self, name: str) -> float:
        total = 0.0
        for value in self.column_values(name):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            total += value
        return total

    def delete_columns(self, names: Iterable[str]) -> list[str]:
        """Remove columns from every row; returns the names that were present."""

        names = list(names)
        removed: list[str] = []
        for row in self.rows:
            for name in names:
                if row.delete_column(name) and name not in removed:
                    removed.append(name)
        return removed

    def get_metadata(self, name: str, default: Any = None) -> Any:
        return self.metadata.get(name, default)

    def set_metadata(self, name: str, value: Any) -> None:
        self.metadata[name] = value

    def append_metadata_values(self, name: str, values: Iterable[Any]) -> list[Any]:
        current = self.metadata.get(name)
        if not isinstance(current, list):
            current = list(current) if isinstance(current, (tuple, set)) else []
        for value in values:
            if value not in current:
                current.append(value)
        self.metadata[name] = current
        return current

    @property
    def empty_columns(self) -> list[str]:
        value = self.metadata.get(EMPTY_COLUMNS_METADATA_NAME)
        return list(value) if isinstance(value, (list, tuple)) else []

    def append_empty_columns(self, names: Iterable[str]) -> list[str]:
        return self.append_metadata_values(EMPTY_COLUMNS_METADATA_NAME, names)

    def copy(self) -> "Table":
        return copy.deepcopy(self)

    @classmethod
    def from_records(
        cls,
        records: Iterable[dict[str, Any]],
        metadata: dict[str, Any] | None = None,
        metadata_key: str = "metadata",
    ) -> "Table":
        rows: list[Row] = []
        for record in records:
            columns: dict[str, Any] = {}
            row_meta: dict[str, Any] = {}
            for key, value in record.items():
                if key == metadata_key and isinstance(value, dict):
                    row_meta = dict(value)
                    continue
                value = _normalize_cell(value)
                if not is_absent(value):
                    columns[str(key)] = value
            rows.append(Row(columns=columns, metadata=row_meta))
        return cls(rows=rows, metadata=dict(metadata or {}))

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        metadata: dict[str, Any] | None = None,
        metadata_columns: Iterable[str] = (),
    ) -> "Table":
        """Build a table from a DataFrame; NaN cells become absent columns."""

        meta_cols = [col for col in metadata_columns if col in df.columns]
        rows: list[Row] = []
        for record in df.to_dict(orient="records"):
            columns: dict[str, Any] = {}
            row_meta: dict[str, Any] = {}
            for key, value in record.items():
                value = _normalize_cell(value)
                if is_absent(value):
                    continue
                if key in meta_cols:
                    row_meta[str(key)] = value
                else:
                    columns[str(key)] = value
            rows.append(Row(columns=columns, metadata=row_meta))
        return cls(rows=rows, metadata=dict(metadata or {}))

    def to_records(self, include_metadata: bool = False) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        for row in self.rows:
            record = row.as_dict()
            if include_metadata and row.metadata:
                record["metadata"] = dict(row.metadata)
            records.append(record)
        return records

    def to_frame(self) -> pd.DataFrame:
        columns: list[str] = []
        for row in self.rows:
            for name in row.columns:
                if name not in columns:
                    columns.append(name)
        return pd.DataFrame.from_records(self.to_records(), columns=columns)
