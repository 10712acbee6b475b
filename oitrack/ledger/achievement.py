# oitrack/ledger/achievement.py
"""
Cumulative actual value and achievement rate for one task.

percent metrics are snapshots: the value being edited is the actual value.
count/amount metrics accumulate: the value being edited is added to the
persisted values of every other month of the year.
"""
import math
from typing import Callable, Iterable, Optional, Tuple

from pydantic import BaseModel

from oitrack.ledger.metrics import Metric, normalize_metric

# (actual, target) -> rate, both already known to be > 0
ReverseStrategy = Callable[[float, float], float]

RGB = Tuple[int, int, int]

BLUE: RGB = (59, 130, 246)
YELLOW: RGB = (234, 179, 8)
ORANGE: RGB = (249, 115, 22)
GREEN: RGB = (34, 197, 94)

# (lower bound, upper bound, start colour, end colour)
COLOR_BANDS = (
    (0.0, 70.0, BLUE, YELLOW),
    (70.0, 90.0, YELLOW, ORANGE),
    (90.0, 100.0, ORANGE, GREEN),
)


class MonthValue(BaseModel):
    month: int
    actual_value: Optional[float] = None


class Achievement(BaseModel):
    actual_value: float
    achievement_rate: float


def _num(value) -> float:
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def inverse_ratio(actual: float, target: float) -> float:
    return target / actual * 100


def mirrored_linear(actual: float, target: float) -> float:
    return max(0.0, 200 - actual / target * 100)


DEFAULT_REVERSE: ReverseStrategy = inverse_ratio


def calculate_actual(
    metric,
    current_month_value,
    other_months: Iterable[MonthValue] = (),
) -> float:
    """Cumulative actual value; the caller excludes the edited month from other_months."""
    current = _num(current_month_value)
    if normalize_metric(metric) == Metric.PERCENT:
        return current
    return current + sum(_num(m.actual_value) for m in other_months)


def achievement_rate(
    target_value,
    actual_value,
    reverse_yn: bool = False,
    reverse_strategy: Optional[ReverseStrategy] = None,
) -> float:
    target = _num(target_value)
    actual = _num(actual_value)
    # no target or no data is never rewarded
    if target <= 0 or actual <= 0:
        return 0.0
    if reverse_yn:
        return (reverse_strategy or DEFAULT_REVERSE)(actual, target)
    return actual / target * 100


def calculate_achievement(
    metric,
    target_value,
    current_month_value,
    other_months: Iterable[MonthValue] = (),
    reverse_yn: bool = False,
    reverse_strategy: Optional[ReverseStrategy] = None,
) -> Achievement:
    actual = calculate_actual(metric, current_month_value, other_months)
    return Achievement(
        actual_value=actual,
        achievement_rate=achievement_rate(target_value, actual, reverse_yn, reverse_strategy),
    )


def _lerp(start: RGB, end: RGB, ratio: float) -> RGB:
    return tuple(round(s + (e - s) * ratio) for s, e in zip(start, end))


def color_for(rate) -> RGB:
    """RGB colour for an achievement percentage, clamped to [0, 100]."""
    pct = min(100.0, max(0.0, _num(rate)))
    for low, high, start, end in COLOR_BANDS:
        if pct < high or high == 100.0:
            return _lerp(start, end, (pct - low) / (high - low))
    return GREEN


def color_hex(rate) -> str:
    return "#{:02x}{:02x}{:02x}".format(*color_for(rate))
