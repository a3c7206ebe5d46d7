"""Online logistic regression over the meta feature vector.

Key pieces:
- OnlineLogisticMeta: L2-regularised SGD on log-loss, one step per revealed round
- warm_up: one-time walk-forward replay once enough history has accumulated
- catch_up: incremental updates for rounds revealed since the last call

The learner does not know how features are built; callers pass a
``featurizer`` mapping a history prefix to its feature dict.
"""

import math
from bisect import bisect_right
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from taixiu.core.config import MetaConfig
from taixiu.core.features import FEATURE_KEYS
from taixiu.core.log import get_logger
from taixiu.core.types import MetaState, Outcome, Round
from taixiu.core.utils import finite_or

logger = get_logger(__name__)

Featurizer = Callable[[Sequence[Round]], Mapping[str, float]]


def sigmoid(z: float) -> float:
    z = max(-35.0, min(35.0, z))
    return 1.0 / (1.0 + math.exp(-z))


class OnlineLogisticMeta:
    """Logistic meta-learner predicting P(High) for the next round."""

    def __init__(
        self,
        config: Optional[MetaConfig] = None,
        keys: Optional[List[str]] = None,
    ) -> None:
        self._cfg = config or MetaConfig()
        self._keys = list(keys or FEATURE_KEYS)
        rng = np.random.default_rng(self._cfg.seed)
        scale = self._cfg.init_scale
        self._w = rng.uniform(-scale, scale, size=len(self._keys))
        self._b = 0.0
        self._warmed = False
        # Round.index of the newest round used as a training label
        self._last_index: Optional[int] = None
        self.updates = 0

    @property
    def warmed(self) -> bool:
        return self._warmed

    @property
    def last_trained_index(self) -> Optional[int]:
        return self._last_index

    @property
    def state(self) -> MetaState:
        return MetaState(
            weights={k: float(w) for k, w in zip(self._keys, self._w)},
            bias=float(self._b),
            warmed=self._warmed,
        )

    def _vector(self, features: Mapping[str, float]) -> np.ndarray:
        return np.array([finite_or(features.get(k, 0.0)) for k in self._keys], dtype=float)

    def predict_probability(self, features: Mapping[str, float]) -> float:
        x = self._vector(features)
        return sigmoid(float(np.dot(self._w, x)) + self._b)

    def update(self, features: Mapping[str, float], label: Outcome) -> None:
        x = self._vector(features)
        y = 1.0 if label is Outcome.HIGH else 0.0
        err = sigmoid(float(np.dot(self._w, x)) + self._b) - y
        lr = self._cfg.learning_rate
        self._w -= lr * (err * x + self._cfg.l2 * self._w)
        self._b -= lr * err
        self.updates += 1

    def _train_range(self, history: Sequence[Round], start: int, featurizer: Featurizer) -> int:
        steps = 0
        for i in range(start, len(history) - 1):
            self.update(featurizer(history[: i + 1]), history[i + 1].outcome)
            steps += 1
        if len(history) > 1:
            newest = history[-1].index
            self._last_index = newest if self._last_index is None else max(self._last_index, newest)
        return steps

    def warm_up(self, history: Sequence[Round], featurizer: Featurizer) -> bool:
        """Walk-forward replay, at most once, when history is long enough."""
        if self._warmed or len(history) <= self._cfg.min_history:
            return False
        if len(history) < self._cfg.warm_offset + 10:
            return False
        steps = self._train_range(history, self._cfg.warm_offset, featurizer)
        self._warmed = True
        logger.debug("Meta-learner warmed up", steps=steps, history=len(history))
        return True

    def catch_up(self, history: Sequence[Round], featurizer: Featurizer) -> int:
        """Incremental updates for rounds revealed since the last call."""
        if not self._warmed or len(history) < 2:
            return 0
        if self._last_index is None:
            return self._train_range(history, 0, featurizer)
        # history is sorted by index; the window may have slid since the last call
        first_new = bisect_right([r.index for r in history], self._last_index)
        if first_new >= len(history):
            return 0
        return self._train_range(history, max(first_new - 1, 0), featurizer)

    def observe(self, history: Sequence[Round], featurizer: Featurizer) -> None:
        if not self.warm_up(history, featurizer):
            self.catch_up(history, featurizer)