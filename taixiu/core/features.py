"""Fixed, named feature vector for the meta-learner."""

from typing import Dict, List, Mapping, Sequence

from taixiu.core.models import MODEL_CLASSES
from taixiu.core.models.markov import transition_probability
from taixiu.core.stats import (
    autocorrelation,
    average,
    dice_of,
    entropy,
    frequency,
    outcomes_of,
    parity_ratio,
    switch_rate,
    totals_of,
    trailing_streak_length,
)
from taixiu.core.types import ModelOutput, Outcome, Round
from taixiu.core.utils import last_n


def model_feature_key(model_name: str) -> str:
    return f"model_{model_name.lower()}"


FEATURE_KEYS: List[str] = [
    "freq_high_5",
    "freq_high_10",
    "freq_high_20",
    "freq_high_50",
    "avg_total_5",
    "avg_total_10",
    "avg_total_20",
    "streak",
    "switch_12",
    "switch_20",
    "parity_5",
    "parity_10",
    "markov_high",
    *[model_feature_key(cls.name) for cls in MODEL_CLASSES],
    "entropy_10",
    "entropy_20",
    "autocorr_1",
    "autocorr_2",
    "autocorr_3",
    "avg_dice_5",
    "avg_dice_10",
    "high_dice_5",
    "high_dice_10",
]


def _dice_features(history: Sequence[Round], window: int) -> Dict[str, float]:
    rolls = dice_of(last_n(history, window))
    faces = [face for roll in rolls for face in roll]
    if not faces:
        return {f"avg_dice_{window}": 1.0, f"high_dice_{window}": 0.0}
    return {
        f"avg_dice_{window}": average(faces) / 3.5,
        f"high_dice_{window}": sum(1 for f in faces if f >= 4) / len(faces),
    }


def extract_features(
    history: Sequence[Round],
    outputs: Mapping[str, ModelOutput],
) -> Dict[str, float]:
    """Build the meta-learner input from a history prefix and model outputs.

    Model features carry each sub-predictor's probability of High; models
    missing from ``outputs`` read as a neutral 0.5.
    """
    outcomes = outcomes_of(history)
    totals = totals_of(history)

    features: Dict[str, float] = {}
    for window in (5, 10, 20, 50):
        features[f"freq_high_{window}"] = frequency(last_n(outcomes, window), Outcome.HIGH)
    for window in (5, 10, 20):
        recent = last_n(totals, window)
        features[f"avg_total_{window}"] = average(recent) / 18 if recent else 0.5
    features["streak"] = min(1.0, trailing_streak_length(outcomes) / 15)
    for window in (12, 20):
        features[f"switch_{window}"] = switch_rate(last_n(outcomes, window))
    for window in (5, 10):
        features[f"parity_{window}"] = parity_ratio(last_n(totals, window))
    features["markov_high"] = transition_probability(last_n(outcomes, 200), 1)

    for cls in MODEL_CLASSES:
        output = outputs.get(cls.name)
        features[model_feature_key(cls.name)] = output.prob_high if output else 0.5

    for window in (10, 20):
        features[f"entropy_{window}"] = entropy(last_n(outcomes, window))
    recent_totals = last_n(totals, 20)
    for lag in (1, 2, 3):
        features[f"autocorr_{lag}"] = autocorrelation(recent_totals, lag)
    for window in (5, 10):
        features.update(_dice_features(history, window))

    return features
