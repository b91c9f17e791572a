from __future__ import annotations

from typing import Any

import pandas as pd
import pytest

from processed_metrics.core.query import FrameReportApi
from processed_metrics.core.table import Table

PHASES = (
    "time_latency",
    "time_transfer",
    "time_dom_processing",
    "time_dom_completion",
    "time_on_load",
)


def make_performance_record(label: str, **sums: tuple[float, int]) -> dict[str, Any]:
    """Raw archive columns for one row; phases not given get zero sums."""

    record: dict[str, Any] = {"label": label}
    for phase in PHASES:
        total, hits = sums.get(phase, (0, 0))
        record[f"sum_{phase}"] = total
        record[f"nb_hits_with_{phase}"] = hits
        record[f"min_{phase}"] = 0 if not hits else total / hits
        record[f"max_{phase}"] = 0 if not hits else total / hits
    return record


def make_table(records: list[dict[str, Any]], metadata: dict[str, Any] | None = None) -> Table:
    return Table.from_records(records, metadata=metadata)


@pytest.fixture()
def performance_table() -> Table:
    return make_table(
        [
            make_performance_record("/home", time_latency=(10, 5)),
            make_performance_record("/about", time_latency=(3, 2)),
        ]
    )


@pytest.fixture()
def dimension_frames() -> dict[str, pd.DataFrame]:
    return {
        "UserCountry.getCountry": pd.DataFrame(
            {
                "label": ["France", "Germany", "Japan", "Chile", "Peru"],
                "goal_1_nb_conversions": [0, 8, 3, 0, 5],
                "goal_1_conversion_rate": [0.0, 12.345, 2.5, 0.0, 5.0],
                "code": ["fr", "de", "jp", "cl", "pe"],
            }
        ),
        "Referrers.getKeywords": pd.DataFrame(
            {
                "label": ["Keyword not defined", "shoes", "boots", "socks", "hats"],
                "goal_1_nb_conversions": [20, 4, 2, 1, 1],
                "goal_1_conversion_rate": [9.0, 4.0, 2.0, 1.0, 1.0],
            }
        ),
        "Referrers.getWebsites": pd.DataFrame(
            {
                "label": ["example.org"],
                "goal_1_nb_conversions": [0],
                "goal_1_conversion_rate": [0.0],
            }
        ),
    }


@pytest.fixture()
def goal_frames(dimension_frames: dict[str, pd.DataFrame]) -> dict[str, Any]:
    goals = {
        "1": {"nb_conversions": 16, "nb_visits_converted": 12, "conversion_rate": 4.25, "revenue": 120.5},
        "ecommerceOrder": {
            "nb_conversions": 5,
            "nb_visits_converted": None,
            "conversion_rate": 1.5,
            "revenue": 250.0,
            "revenue_subtotal": 200.0,
            "revenue_tax": 20.0,
            "revenue_shipping": 30.0,
            "revenue_discount": 0.0,
            "items": 9,
            "avg_order_revenue": 50.0,
        },
        "ecommerceAbandonedCart": {"nb_conversions": 2, "conversion_rate": 0.4, "revenue": 80.0},
        "": {"nb_conversions": 21, "nb_visits_converted": 15, "conversion_rate": 5.0, "revenue": 370.5},
    }
    rates = {
        "visitorType==returning,visitorType==returningCustomer": 6.0,
        "visitorType==new": 2.25,
    }

    def goals_get(request) -> pd.DataFrame:
        row = goals.get(request.id_goal)
        return pd.DataFrame([row]) if row is not None else pd.DataFrame()

    def conversion_rate(request) -> pd.DataFrame:
        if request.segment not in rates:
            return pd.DataFrame()
        return pd.DataFrame({"value": [rates[request.segment]]})

    frames: dict[str, Any] = dict(dimension_frames)
    frames["Goals.get"] = goals_get
    frames["Goals.getConversionRate"] = conversion_rate
    return frames


@pytest.fixture()
def report_api(goal_frames: dict[str, Any]) -> FrameReportApi:
    return FrameReportApi(goal_frames, metadata_columns=["code"])
