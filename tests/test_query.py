from __future__ import annotations

import pandas as pd
import pytest

from processed_metrics.core.query import FrameReportApi, ReportRequest
from processed_metrics.core.registry import MetricRegistry


def test_request_params_mirror_report_api_parameters() -> None:
    request = ReportRequest(
        method="Referrers.getKeywords",
        period="day",
        date="2024-01-01",
        id_goal="0",
        filter_sort_column="goal_1_nb_conversions",
        filter_limit=5,
        params={"filter_update_columns_when_show_all_goals": 1},
    )
    assert request.to_params() == {
        "method": "Referrers.getKeywords",
        "format": "original",
        "period": "day",
        "date": "2024-01-01",
        "filter_sort_column": "goal_1_nb_conversions",
        "filter_limit": 5,
        "idGoal": "0",
        "filter_sort_order": "desc",
        "filter_update_columns_when_show_all_goals": 1,
    }


def test_frame_api_sorts_limits_and_keeps_metadata_columns(dimension_frames) -> None:
    api = FrameReportApi(dimension_frames, metadata_columns=["code"])
    table = api.process(
        ReportRequest(
            method="UserCountry.getCountry",
            filter_sort_column="goal_1_nb_conversions",
            filter_limit=3,
        )
    )
    assert [row.get_column("label") for row in table.rows] == ["Germany", "Peru", "Japan"]
    assert table.rows[0].metadata == {"code": "de"}
    assert not table.rows[0].has_column("code")
    assert api.requests[-1].method == "UserCountry.getCountry"


def test_frame_api_evaluates_processed_metrics() -> None:
    frame = pd.DataFrame(
        {
            "label": ["a", "b"],
            "nb_visits": [10, 0],
            "goal_1_nb_conversions": [2, 1],
        }
    )
    registry = MetricRegistry.with_goals(["1"])
    api = FrameReportApi(
        {"Actions.getPageUrls": frame},
        processed_metrics={"Actions.getPageUrls": registry.resolve(["goal_1_conversion_rate"])},
    )
    table = api.process(ReportRequest(method="Actions.getPageUrls"))
    assert [row.get_column("goal_1_conversion_rate") for row in table.rows] == [20, 0]


def test_frame_api_callable_source_and_unknown_method() -> None:
    api = FrameReportApi(
        {"Goals.getConversionRate": lambda request: pd.DataFrame({"value": [len(request.segment or "")]})}
    )
    table = api.process(ReportRequest(method="Goals.getConversionRate", segment="abc"))
    assert table.rows[0].get_column("value") == 3
    with pytest.raises(KeyError, match="Unknown report method"):
        api.process(ReportRequest(method="Nope.get"))


def test_from_directory_reads_csv_per_method(tmp_path) -> None:
    pd.DataFrame({"label": ["x"], "goal_1_nb_conversions": [1]}).to_csv(
        tmp_path / "Referrers.getWebsites.csv", index=False
    )
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    api = FrameReportApi.from_directory(tmp_path)
    assert api.methods() == ["Referrers.getWebsites"]
