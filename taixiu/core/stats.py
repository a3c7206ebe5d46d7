"""Statistics primitives over outcome and total sequences.

Every function is total: empty or too-short input yields a neutral default
(0, 0.5 or False) rather than NaN or an exception.
"""

import math
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np

from taixiu.core.errors import ContractViolation
from taixiu.core.types import Outcome, Round
from taixiu.core.utils import last_n


def outcomes_of(history: Sequence[Round]) -> List[Outcome]:
    return [r.outcome for r in history]


def totals_of(history: Sequence[Round]) -> List[int]:
    return [r.total for r in history if r.total is not None]


def dice_of(history: Sequence[Round]) -> List[Tuple[int, int, int]]:
    return [r.dice for r in history if r.dice is not None]


def average(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def variance(values: Sequence[float]) -> float:
    """Sample variance (n - 1 denominator)."""
    if len(values) < 2:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float), ddof=1))


def standard_deviation(values: Sequence[float]) -> float:
    return math.sqrt(variance(values))


def frequency(outcomes: Sequence[Outcome], outcome: Outcome = Outcome.HIGH) -> float:
    if not outcomes:
        return 0.0
    return sum(1 for o in outcomes if o is outcome) / len(outcomes)


def entropy(outcomes: Sequence[Outcome]) -> float:
    """Shannon entropy in bits of the High/Low split, within [0, 1]."""
    if not outcomes:
        return 0.0
    p_high = frequency(outcomes, Outcome.HIGH)
    p_low = 1.0 - p_high
    h = -(p_high * math.log2(p_high + 1e-10) + p_low * math.log2(p_low + 1e-10))
    return min(1.0, max(0.0, h))


def autocorrelation(values: Sequence[float], lag: int) -> float:
    """Lag-k autocorrelation normalised by the population variance."""
    n = len(values)
    if lag < 1 or n <= lag:
        return 0.0
    arr = np.asarray(values, dtype=float)
    centered = arr - arr.mean()
    var = float(np.mean(centered ** 2))
    if var == 0:
        return 0.0
    cov = float(np.sum(centered[lag:] * centered[:-lag])) / (n - lag)
    return cov / var


def switch_rate(outcomes: Sequence[Hashable]) -> float:
    if len(outcomes) < 2:
        return 0.5
    switches = sum(1 for a, b in zip(outcomes, outcomes[1:]) if a != b)
    return switches / (len(outcomes) - 1)


def z_score_of_last(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    sd = standard_deviation(values)
    if sd == 0:
        return 0.0
    return (values[-1] - average(values)) / sd


def trailing_streak_length(seq: Sequence[Hashable]) -> int:
    if not seq:
        return 0
    last = seq[-1]
    length = 0
    for item in reversed(seq):
        if item != last:
            break
        length += 1
    return length


def is_monotonic_window(values: Sequence[float], window: int, direction: str = "up") -> bool:
    """Strictly increasing (``up``) or decreasing (``down``) over the trailing window."""
    sub = last_n(values, window)
    if len(sub) < 2:
        return False
    pairs = zip(sub, sub[1:])
    if direction == "up":
        return all(b > a for a, b in pairs)
    if direction == "down":
        return all(b < a for a, b in pairs)
    raise ContractViolation(f"unknown direction: {direction}")


def count_overlapping_pattern(seq: Sequence[Hashable], pattern: Sequence[Hashable]) -> int:
    m = len(pattern)
    if m == 0 or m > len(seq):
        return 0
    pattern = list(pattern)
    seq = list(seq)
    return sum(1 for i in range(len(seq) - m + 1) if seq[i:i + m] == pattern)


def parity_ratio(totals: Sequence[int]) -> float:
    """Fraction of even totals; 0.5 when empty."""
    if not totals:
        return 0.5
    return sum(1 for t in totals if t % 2 == 0) / len(totals)


def run_lengths(seq: Sequence[Hashable]) -> List[Tuple[Hashable, int]]:
    """Run-length encoding; the last run may still be open."""
    runs: List[Tuple[Hashable, int]] = []
    for item in seq:
        if runs and runs[-1][0] == item:
            runs[-1] = (item, runs[-1][1] + 1)
        else:
            runs.append((item, 1))
    return runs


def last_outcome(
    history: Sequence[Round],
    default: Optional[Outcome] = Outcome.HIGH,
) -> Optional[Outcome]:
    if not history:
        return default
    return history[-1].outcome

