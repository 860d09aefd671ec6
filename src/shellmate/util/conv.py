from __future__ import annotations

import math
from typing import Any

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def coerce_bool(value: Any, *, default: bool = False) -> bool:
    """Coerce a loosely-typed value into a boolean.

    Variable values and settings arrive from YAML or from user input as
    strings like "false"/"0". Unknown strings map to `default` so that
    bool("false") == True never leaks into a rendered command.
    """
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, float):
        if math.isnan(value):
            return bool(default)
        return value != 0.0
    if isinstance(value, str):
        s = value.strip().lower()
        if not s:
            return bool(default)
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        try:
            return int(s) != 0
        except Exception:
            return bool(default)
    return bool(value)


def coerce_int(value: Any, *, default: int = 0, min_value: int | None = None, max_value: int | None = None) -> int:
    try:
        n = int(value)
    except Exception:
        try:
            n = int(float(value))
        except Exception:
            n = int(default)
    if min_value is not None and n < min_value:
        n = min_value
    if max_value is not None and n > max_value:
        n = max_value
    return n


def coerce_float(value: Any, *, default: float = 0.0) -> float:
    try:
        f = float(value)
    except Exception:
        return float(default)
    if math.isnan(f):
        return float(default)
    return f
