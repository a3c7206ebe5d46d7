import math
from typing import List, Sequence, TypeVar

T = TypeVar("T")


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def safe_div(num: float, denom: float, default: float = 0.0) -> float:
    if denom == 0:
        return default
    return num / denom


def finite_or(value: float, default: float = 0.0) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return value


def last_n(seq: Sequence[T], n: int) -> List[T]:
    if n <= 0:
        return []
    return list(seq[-n:])
