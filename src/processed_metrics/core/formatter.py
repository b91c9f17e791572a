from __future__ import annotations

import math
from typing import Any

import pandas as pd

from .table import Table
from .types import HTML_CONTEXT, RENDER_CONTEXTS, is_absent
from .utils import round_half_up

SECONDS_PER_DAY = 86400
SECONDS_PER_YEAR = SECONDS_PER_DAY * 365.25
EMPTY_DISPLAY_VALUE = "-"


def check_render_context(context: str) -> str:
    if context not in RENDER_CONTEXTS:
        raise ValueError(f"Unknown render context: {context}")
    return context


def format_number(value: Any, max_fraction_digits: int = 0, min_fraction_digits: int = 0) -> str:
    """Render with at most ``max_fraction_digits``, trimming trailing zeros down to the minimum."""

    number = round_half_up(float(value), max_fraction_digits)
    text = f"{number:.{max_fraction_digits}f}"
    if max_fraction_digits > min_fraction_digits and "." in text:
        head, tail = text.split(".", 1)
        tail = tail.rstrip("0")
        if len(tail) < min_fraction_digits:
            tail = tail.ljust(min_fraction_digits, "0")
        text = f"{head}.{tail}" if tail else head
    if text.startswith("-") and float(text) == 0:
        text = text[1:]
    return text


def _pretty_clock(seconds: float) -> str:
    days = math.floor(seconds / SECONDS_PER_DAY)
    remainder = seconds - days * SECONDS_PER_DAY
    hours = math.floor(remainder / 3600)
    remainder -= hours * 3600
    minutes = math.floor(remainder / 60)
    whole_seconds = math.floor(remainder - minutes * 60)
    clock = f"{hours:02d}:{minutes:02d}:{whole_seconds:02d}"
    if days:
        clock = f"{days} days {clock}"
    centiseconds = int(round(seconds * 100)) % 100
    if centiseconds:
        clock = f"{clock}.{centiseconds:02d}"
    return clock


def _pretty_sentence(seconds: float) -> str:
    years = math.floor(seconds / SECONDS_PER_YEAR)
    minus_years = seconds - years * SECONDS_PER_YEAR
    days = math.floor(minus_years / SECONDS_PER_DAY)
    minus_days = seconds - days * SECONDS_PER_DAY
    hours = math.floor(minus_days / 3600)
    minus_hours = minus_days - hours * 3600
    minutes = math.floor(minus_hours / 60)
    rest = minus_hours - minutes * 60
    precision = 3 if 0 < rest < 0.01 else 2
    rest_text = format_number(rest, precision)

    if years > 0:
        return f"{years} years {days} days"
    if days > 0:
        return f"{days} days {hours} hours"
    if hours > 0:
        return f"{hours} hours {minutes} min"
    if minutes > 0:
        return f"{minutes} min {rest_text} s"
    return f"{rest_text} s"


def pretty_time_from_seconds(
    seconds: Any, as_sentence: bool = True, round_seconds: bool = False
) -> str:
    if seconds is None or is_absent(seconds):
        seconds = 0
    value = float(int(float(seconds))) if round_seconds else float(seconds)
    negative = value < 0
    if negative:
        value = -value
    text = _pretty_sentence(value) if as_sentence else _pretty_clock(value)
    return f"-{text}" if negative else text


def format_time_metric(value: Any, context: str) -> str:
    check_render_context(context)
    if context == HTML_CONTEXT and not value:
        return EMPTY_DISPLAY_VALUE
    return pretty_time_from_seconds(value, as_sentence=True)


def format_money(value: Any, context: str, precision: int = 2) -> str:
    check_render_context(context)
    if not value:
        value = 0
    return format_number(value, precision, min_fraction_digits=precision if context == HTML_CONTEXT else 0)


def unwrap_scalar(value: Any) -> float:
    """Reduce a single-row/single-column table (or DataFrame) to its number."""

    if isinstance(value, Table):
        first = value.first_row()
        if first is None or not first.columns:
            return 0.0
        value = next(iter(first.columns.values()))
    elif isinstance(value, pd.DataFrame):
        if value.empty:
            return 0.0
        value = value.iloc[0, 0]
    if value is None or is_absent(value):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) else number


def format_conversion_rate(value: Any, precision: int = 1) -> str:
    return f"{round_half_up(unwrap_scalar(value), precision):.{precision}f}%"


def format_percent_metric(value: Any, context: str, precision: int = 1) -> str:
    check_render_context(context)
    return format_conversion_rate(value, precision)
