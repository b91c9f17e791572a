from __future__ import annotations

import pandas as pd
import pytest

from processed_metrics.core.formatter import (
    format_conversion_rate,
    format_money,
    format_number,
    format_time_metric,
    pretty_time_from_seconds,
)
from processed_metrics.core.table import Row, Table
from processed_metrics.core.types import ABSENT


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "0 s"),
        (2.5, "2.5 s"),
        (0.004, "0.004 s"),
        (192, "3 min 12 s"),
        (3725, "1 hours 2 min"),
        (90061, "1 days 1 hours"),
        (-30, "-30 s"),
    ],
)
def test_pretty_time_sentence(seconds, expected) -> None:
    assert pretty_time_from_seconds(seconds) == expected


def test_pretty_time_clock() -> None:
    assert pretty_time_from_seconds(3725.5, as_sentence=False) == "01:02:05.50"
    assert pretty_time_from_seconds(90061, as_sentence=False) == "1 days 01:01:01"
    assert pretty_time_from_seconds(59.9, as_sentence=False, round_seconds=True) == "00:00:59"


@pytest.mark.parametrize("value", [0, 0.0, None, ABSENT])
def test_time_metric_placeholder_for_empty_html_values(value) -> None:
    assert format_time_metric(value, "html") == "-"


def test_time_metric_machine_context_renders_zero_duration() -> None:
    assert format_time_metric(0, "machine") == "0 s"
    assert format_time_metric(192, "html") == "3 min 12 s"


def test_unknown_render_context_is_rejected() -> None:
    with pytest.raises(ValueError, match="render context"):
        format_time_metric(1, "pdf")


def test_conversion_rate_scalar_and_wrapped_values() -> None:
    assert format_conversion_rate(0.12345) == "0.1%"
    assert format_conversion_rate(Table(rows=[Row(columns={"value": 5.0})])) == "5.0%"
    assert format_conversion_rate(Table()) == "0.0%"
    assert format_conversion_rate(pd.DataFrame({"value": [2.34]})) == "2.3%"
    assert format_conversion_rate(pd.DataFrame()) == "0.0%"
    assert format_conversion_rate(ABSENT) == "0.0%"
    assert format_conversion_rate("7") == "7.0%"


def test_number_and_money_rendering() -> None:
    assert format_number(12.0, 2) == "12"
    assert format_number(0.1234, 2) == "0.12"
    assert format_number(-0.001, 2) == "0"
    assert format_money(50, "html") == "50.00"
    assert format_money(50, "machine") == "50"
    assert format_money(None, "html") == "0.00"
