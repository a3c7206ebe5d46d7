from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from taixiu.core.config import Config
from taixiu.core.models.base import BaseModel
from taixiu.core.stats import outcomes_of, run_lengths
from taixiu.core.types import ModelOutput, MotifSignal, Outcome, Reason, ReasonCode, Round
from taixiu.core.utils import clamp, last_n, safe_div


def min_repeats(length: int) -> int:
    """Repeats a motif of ``length`` needs before it is trusted."""
    return max(2, 8 - length)


class RecentMotifRepeat(BaseModel):
    """Most frequent recent substring and the symbol that tends to follow it.

    Longer motifs are tried first. When nothing repeats often enough the model
    falls back to a recency-weighted vote.
    """

    name = "RECENT_MOTIF"

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self._cfg = config.motif
        self.min_history = self._cfg.min_length + 1

    def find_motif(self, outcomes: List[Outcome]) -> Optional[Tuple[Tuple[Outcome, ...], int]]:
        for length in range(self._cfg.max_length, self._cfg.min_length - 1, -1):
            if length >= len(outcomes):
                continue
            counts = Counter(
                tuple(outcomes[i:i + length]) for i in range(len(outcomes) - length + 1)
            )
            motif, count = counts.most_common(1)[0]
            if count >= min_repeats(length):
                return motif, count
        return None

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        outcomes = last_n(outcomes_of(history), self._cfg.window)
        if len(outcomes) < self.min_history:
            return self._fallback(history)

        found = self.find_motif(outcomes)
        if found is None:
            return self._recency_vote(outcomes)

        motif, count = found
        length = len(motif)
        followers = [
            outcomes[i + length]
            for i in range(len(outcomes) - length)
            if tuple(outcomes[i:i + length]) == motif
        ]
        if not followers:
            return self._recency_vote(outcomes)

        highs = sum(1 for o in followers if o is Outcome.HIGH)
        lows = len(followers) - highs
        if highs == lows:
            predicted = motif[0]
        else:
            predicted = Outcome.HIGH if highs > lows else Outcome.LOW
        share = max(highs, lows) / len(followers)

        base = min(0.9, 0.66 + 0.02 * length)
        confidence = base + min(0.15, (count - min_repeats(length)) * 0.04)
        # mixed followers pull the confidence back towards a coin flip
        confidence = 0.5 + (confidence - 0.5) * (2 * share - 1)

        reason = Reason(
            ReasonCode.MOTIF_REPEAT,
            {
                "side": predicted,
                "motif": "".join(o.symbol for o in motif),
                "count": count,
                "window": len(outcomes),
            },
        )
        return self._output(
            predicted,
            clamp(confidence, 0.5, self._cfg.confidence_cap),
            (reason,),
            motif_length=length,
            repeats=count,
            follower_share=share,
        )

    def _recency_vote(self, outcomes: List[Outcome]) -> ModelOutput:
        scores = {Outcome.HIGH: 0.0, Outcome.LOW: 0.0}
        for i, outcome in enumerate(outcomes):
            scores[outcome] += self._cfg.recency_decay ** i
        high, low = scores[Outcome.HIGH], scores[Outcome.LOW]
        predicted = Outcome.HIGH if high >= low else Outcome.LOW
        dominance = safe_div(abs(high - low), high + low)
        confidence = 0.65 + min(0.25, dominance * 0.8)
        reason = Reason(
            ReasonCode.RECENCY_WEIGHTED, {"side": predicted, "dominance": round(dominance, 3)}
        )
        return self._output(predicted, confidence, (reason,), dominance=dominance)


@dataclass(frozen=True)
class Bridge:
    """A periodic run-length rhythm.

    ``cycle`` lists run lengths oldest first; the run in progress is expected
    to have length ``cycle[0]`` once the completed runs end with ``cycle[-1]``.
    """

    name: str
    cycle: Tuple[int, ...]
    label: str

    @property
    def min_matches(self) -> int:
        return max(3, 2 * len(self.cycle))

    def matched_runs(self, completed: Sequence[int]) -> int:
        k = len(self.cycle)
        count = 0
        for j, length in enumerate(reversed(completed)):
            if length != self.cycle[(k - 1 - j) % k]:
                break
            count += 1
        return count


BRIDGES: Tuple[Bridge, ...] = (
    Bridge("1-1", (1,), "strict alternation"),
    Bridge("2-2", (2,), "paired alternation"),
    Bridge("3-3", (3,), "triple blocks"),
    Bridge("1-2", (1, 2), "one-two rhythm"),
    Bridge("2-1", (2, 1), "two-one rhythm"),
    Bridge("1-3", (1, 3), "one-three rhythm"),
    Bridge("3-1", (3, 1), "three-one rhythm"),
    Bridge("2-3", (2, 3), "two-three rhythm"),
    Bridge("3-2", (3, 2), "three-two rhythm"),
)

LONG_STREAK = "long-streak"


class BridgeMotifDetector(BaseModel):
    """Named bridge ("cầu") detection over the trailing run structure."""

    name = "BRIDGE_MOTIF"
    min_history = 2

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self._cfg = config.bridge

    def detect(self, history: Sequence[Round], window: Optional[int] = None) -> MotifSignal:
        window = self._cfg.window if window is None else window
        outcomes = outcomes_of(history)
        recent = last_n(outcomes, window)
        if len(recent) < self.min_history:
            return self._no_bridge(history)

        runs = run_lengths(recent)
        last, current = runs[-1]
        completed = [n for _, n in runs[:-1]]
        # the oldest run may be cut by the window edge
        if len(outcomes) > len(recent) and completed:
            completed = completed[1:]

        candidates = []
        for bridge in BRIDGES:
            count = bridge.matched_runs(completed)
            expected = bridge.cycle[0]
            if count < bridge.min_matches or current > expected:
                continue
            predicted = last if current < expected else last.opposite
            candidates.append((count, bridge.name, bridge.label, predicted))

        if current >= self._cfg.long_streak_min:
            candidates.append((current, LONG_STREAK, "long streak", last))

        if not candidates:
            return self._no_bridge(history)

        count, name, label, predicted = max(candidates, key=lambda c: c[0])
        confidence = self._cfg.base_confidence + min(
            self._cfg.count_bonus_cap, self._cfg.count_step * count
        )
        if name == LONG_STREAK:
            reason = Reason(ReasonCode.LONG_STREAK_BRIDGE, {"side": predicted, "length": count})
        else:
            reason = Reason(
                ReasonCode.BRIDGE,
                {"side": predicted, "bridge": name, "label": label, "count": count},
            )
        return MotifSignal(
            motif_name=name,
            predicted=predicted,
            confidence=clamp(confidence, 0.5, 0.95),
            reasons=(reason,),
        )

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        signal = self.detect(history)
        return self._output(
            signal.predicted,
            signal.confidence,
            signal.reasons,
            bridge=signal.motif_name,
        )

    def _no_bridge(self, history: Sequence[Round]) -> MotifSignal:
        predicted = history[-1].outcome if history else Outcome.HIGH
        code = ReasonCode.NO_BRIDGE if len(history) >= self.min_history else ReasonCode.INSUFFICIENT_DATA
        params = {"side": predicted}
        if code is ReasonCode.INSUFFICIENT_DATA:
            params = {"available": len(history), "required": self.min_history}
        return MotifSignal(
            motif_name=None,
            predicted=predicted,
            confidence=0.5,
            reasons=(Reason(code, params),),
        )
