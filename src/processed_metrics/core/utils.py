from __future__ import annotations

import json
import math
import os
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .types import is_absent

_FLOAT_PRECISION = 10
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def round_half_up(value: float, precision: int) -> float:
    """Round away from zero on ties (``round_half_up(0.0005, 3) == 0.001``)."""

    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-int(precision))
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def quotient_safe(dividend: Any, divisor: Any, precision: int = 0) -> float | int:
    """Divide, returning ``0`` instead of failing on a zero or missing divisor.

    Every ratio-type processed metric goes through here so zero handling is
    identical across metrics.
    """

    if divisor is None or is_absent(divisor) or divisor == "-":
        return 0
    if dividend is None or is_absent(dividend) or dividend == "-":
        return 0
    divisor = float(divisor)
    dividend = float(dividend)
    if divisor == 0 or dividend == 0:
        return 0
    return round_half_up(dividend / divisor, precision)


def _canonicalize(value: Any) -> Any:
    if is_absent(value):
        return None
    if isinstance(value, float):
        return round(value, _FLOAT_PRECISION)
    if isinstance(value, dict):
        return {key: _canonicalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonicalize(item) for item in value]
    return value


def json_dumps(data: Any) -> str:
    return json.dumps(_canonicalize(data), ensure_ascii=False, indent=2)


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default


def debug_enabled() -> bool:
    return env_flag("PROCESSED_METRICS_DEBUG")


def default_settings_path() -> str | None:
    raw = os.environ.get("PROCESSED_METRICS_SETTINGS", "").strip()
    return raw or None
