from typing import Dict, List, Optional, Sequence

from taixiu.core.config import Config, RiskConfig
from taixiu.core.stats import (
    entropy,
    outcomes_of,
    switch_rate,
    totals_of,
    trailing_streak_length,
    variance,
)
from taixiu.core.types import RiskLevel, Round
from taixiu.core.utils import clamp, last_n

THREE_LEVELS: List[RiskLevel] = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]
FIVE_LEVELS: List[RiskLevel] = [
    RiskLevel.VERY_LOW,
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.VERY_HIGH,
]


def risk_components(
    confidence: float,
    history: Sequence[Round],
    config: RiskConfig,
) -> Dict[str, float]:
    outcomes = outcomes_of(history)
    recent = last_n(outcomes, config.window)
    components = {
        "uncertainty": 1.0 - clamp(confidence, 0.0, 1.0),
        "switching": switch_rate(recent) * config.switch_weight if len(recent) >= 2 else 0.0,
        "streak": 0.0,
        "entropy": 0.0,
        "variance": 0.0,
    }
    if trailing_streak_length(outcomes) >= config.streak_threshold:
        components["streak"] = config.streak_penalty
    if entropy(recent) > config.entropy_threshold:
        components["entropy"] = config.entropy_penalty
    if variance(last_n(totals_of(history), config.window)) > config.variance_threshold:
        components["variance"] = config.variance_penalty
    return components


def risk_score(
    confidence: float,
    history: Sequence[Round],
    config: Optional[RiskConfig] = None,
) -> float:
    return sum(risk_components(confidence, history, config or RiskConfig()).values())


def label_for(score: float, config: RiskConfig) -> RiskLevel:
    if config.scale == "five":
        levels, cuts = FIVE_LEVELS, config.five_level_cuts
    else:
        levels, cuts = THREE_LEVELS, config.three_level_cuts
    for level, cut in zip(levels, cuts):
        if score <= cut:
            return level
    return levels[-1]


def classify_risk(
    confidence: float,
    history: Sequence[Round],
    config: Optional[Config] = None,
) -> RiskLevel:
    """Risk label for acting on a forecast with ``confidence`` given recent volatility."""
    cfg = (config or Config.default()).risk
    return label_for(risk_score(confidence, history or [], cfg), cfg)
