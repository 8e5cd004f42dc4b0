"""Clamped numeric conversions between input, form and storage domains."""

from __future__ import annotations

import math
from typing import Optional

BYTE_MIN = 0
BYTE_MAX = 255
STICK_CENTER = 128


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def lossy_int(value: float, low: int, high: int) -> int:
    """Convert to an int in [low, high]: NaN maps to 0, infinities saturate,
    finite floats truncate toward zero."""
    if isinstance(value, float):
        if math.isnan(value):
            value = 0
        elif math.isinf(value):
            return high if value > 0 else low
    return int(clamp(int(value), low, high))


def to_byte(value: float) -> int:
    return lossy_int(value, BYTE_MIN, BYTE_MAX)


def clamp_to_bounds(value, minimum=None, maximum=None):
    if minimum is not None:
        value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def parse_int_text(text: str) -> Optional[int]:
    raw = text.strip()
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        pass
    parsed = parse_float_text(raw)
    if parsed is None:
        return None
    return lossy_int(parsed, -(2**63), 2**63 - 1)


def parse_float_text(text: str) -> Optional[float]:
    raw = text.strip()
    if not raw:
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def axis_to_byte(value: float, invert: bool = False) -> int:
    """Map a pygame axis reading in [-1, 1] onto a stick byte centered on 128."""
    value = clamp(float(value), -1.0, 1.0)
    if invert:
        value = -value
    return to_byte(round(STICK_CENTER + value * 127.5))


def trigger_to_byte(value: float) -> int:
    """Map a pygame trigger axis (-1 released, +1 pressed) onto [0, 255]."""
    value = clamp(float(value), -1.0, 1.0)
    return to_byte(round((value + 1.0) * 0.5 * BYTE_MAX))
