from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from taixiu.core.config import Config
from taixiu.core.models.base import BaseModel
from taixiu.core.stats import outcomes_of
from taixiu.core.types import ModelOutput, Outcome, Reason, ReasonCode, Round
from taixiu.core.utils import last_n, safe_div

Context = Tuple[Outcome, ...]


class TransitionTable:
    """Counts of the next outcome keyed by the preceding ``order`` outcomes."""

    def __init__(self, outcomes: Sequence[Outcome], order: int) -> None:
        self.order = order
        self._counts: Dict[Context, Dict[Outcome, int]] = defaultdict(
            lambda: {Outcome.HIGH: 0, Outcome.LOW: 0}
        )
        for i in range(order, len(outcomes)):
            context = tuple(outcomes[i - order:i])
            self._counts[context][outcomes[i]] += 1

    def support(self, context: Context) -> int:
        if context not in self._counts:
            return 0
        counts = self._counts[context]
        return counts[Outcome.HIGH] + counts[Outcome.LOW]

    def probability_high(self, context: Context, alpha: float = 1.0) -> float:
        counts = self._counts.get(context, {Outcome.HIGH: 0, Outcome.LOW: 0})
        high = counts[Outcome.HIGH] + alpha
        low = counts[Outcome.LOW] + alpha
        return safe_div(high, high + low, 0.5)


def transition_probability(outcomes: Sequence[Outcome], order: int, alpha: float = 1.0) -> float:
    """P(High | last ``order`` outcomes) estimated from ``outcomes`` itself."""
    if order < 1 or len(outcomes) <= order:
        return 0.5
    table = TransitionTable(outcomes, order)
    return table.probability_high(tuple(outcomes[-order:]), alpha)


class MarkovChain(BaseModel):
    """Variable-order Markov chain over the recent outcome window.

    The highest order whose current context has been observed at least
    ``min_support`` times is used, falling back towards order 1.
    """

    name = "MARKOV_CHAIN"
    min_history = 2

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self._cfg = config.markov

    def select_order(self, outcomes: List[Outcome]) -> Tuple[int, Optional[TransitionTable]]:
        for order in range(self._cfg.max_order, 0, -1):
            if len(outcomes) <= order:
                continue
            table = TransitionTable(outcomes, order)
            if table.support(tuple(outcomes[-order:])) >= self._cfg.min_support or order == 1:
                return order, table
        return 0, None

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        outcomes = last_n(outcomes_of(history), self._cfg.window)
        if len(outcomes) < self.min_history:
            return self._fallback(history)

        order, table = self.select_order(outcomes)
        if table is None:
            return self._fallback(history)

        context = tuple(outcomes[-order:])
        p_high = table.probability_high(context, self._cfg.alpha)
        predicted = Outcome.HIGH if p_high >= 0.5 else Outcome.LOW
        p_max = max(p_high, 1.0 - p_high)
        confidence = min(self._cfg.confidence_cap, 0.65 + (p_max - 0.4) * 0.8)

        reason = Reason(
            ReasonCode.MARKOV,
            {
                "side": predicted,
                "order": order,
                "context": "".join(o.symbol for o in context),
                "probability": round(p_max, 3),
            },
        )
        return self._output(
            predicted,
            confidence,
            (reason,),
            order=order,
            p_high=p_high,
            support=table.support(context),
        )
