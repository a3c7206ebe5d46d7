from typing import Dict, Mapping, Optional

META_MODEL = "LOGISTIC_META"

DEFAULT_VOTE_WEIGHTS: Dict[str, float] = {
    "FREQUENCY_RULES": 0.20,
    "MARKOV_CHAIN": 0.15,
    "RECENT_MOTIF": 0.20,
    "STREAK_BREAK": 0.15,
    "AUTOREGRESSIVE": 0.10,
    "MA_CROSSOVER": 0.10,
    "RSI_OSCILLATOR": 0.10,
    "BRIDGE_MOTIF": 0.15,
    META_MODEL: 0.40,
}


class WeightManager:
    def __init__(self, overrides: Optional[Mapping[str, float]] = None) -> None:
        self._overrides = dict(overrides or {})

    def get_model_weights(self) -> Dict[str, float]:
        merged = dict(DEFAULT_VOTE_WEIGHTS)
        merged.update(self._overrides)
        return merged

    def set_model_weights(self, weights: Mapping[str, float]) -> None:
        self._overrides.update(weights)

