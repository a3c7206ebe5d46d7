"""Numeric indicators over dice totals."""

from typing import Optional, Sequence

import numpy as np


def sma(values: Sequence[float], period: int) -> Optional[float]:
    """Simple moving average of the trailing ``period`` values."""
    if period <= 0 or len(values) < period:
        return None
    return float(np.mean(np.asarray(values[-period:], dtype=float)))


def ema(values: Sequence[float], period: int) -> Optional[float]:
    """Exponential moving average seeded with the SMA of the first period."""
    if period <= 0 or len(values) < period:
        return None
    arr = np.asarray(values, dtype=float)
    alpha = 2.0 / (period + 1)
    current = float(np.mean(arr[:period]))
    for value in arr[period:]:
        current = alpha * float(value) + (1 - alpha) * current
    return current


def rsi_centered(values: Sequence[float], period: int = 14, center: float = 10.5) -> Optional[float]:
    """RSI of the last ``period`` values after subtracting ``center``.

    Gains and losses are averaged over the ``period - 1`` differences inside
    the window. A window without losses reads 100, a flat one 50.
    """
    if period < 2 or len(values) < period:
        return None
    window = np.asarray(values[-period:], dtype=float) - center
    delta = np.diff(window)
    avg_gain = float(np.sum(np.where(delta > 0, delta, 0.0))) / (period - 1)
    avg_loss = float(np.sum(np.where(delta < 0, -delta, 0.0))) / (period - 1)
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def autoregressive_next(values: Sequence[float], coefficients: Sequence[float]) -> Optional[float]:
    """One-step AR projection with intercept mean * (1 - sum(coefficients))."""
    order = len(coefficients)
    if order == 0 or len(values) < order:
        return None
    arr = np.asarray(values, dtype=float)
    coef = np.asarray(coefficients, dtype=float)
    lags = arr[::-1][:order]
    intercept = float(arr.mean()) * (1.0 - float(coef.sum()))
    return float(np.dot(coef, lags)) + intercept
