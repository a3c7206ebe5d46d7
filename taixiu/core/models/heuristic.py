from typing import Dict, List, Sequence, Tuple

from taixiu.core.config import Config
from taixiu.core.models.base import BaseModel
from taixiu.core.stats import (
    average,
    count_overlapping_pattern,
    dice_of,
    entropy,
    is_monotonic_window,
    outcomes_of,
    parity_ratio,
    run_lengths,
    switch_rate,
    totals_of,
    trailing_streak_length,
    z_score_of_last,
)
from taixiu.core.types import ModelOutput, Outcome, Reason, ReasonCode, Round
from taixiu.core.utils import clamp, last_n, safe_div

H = Outcome.HIGH
L = Outcome.LOW

RULE_WEIGHTS: Dict[str, float] = {
    "window_3": 3.5,
    "window_5": 4.0,
    "window_10": 5.0,
    "window_20": 2.0,
    "zigzag_5": 3.0,
    "zigzag_10": 4.0,
    "average_5": 3.0,
    "average_10": 3.5,
    "trend_5": 2.5,
    "trend_10": 3.0,
    "extreme_total": 4.5,
    "one_sided_totals": 4.0,
    "parity": 2.5,
    "dice_average": 3.5,
    "dice_faces": 3.0,
    "streak_reversal": 4.0,
    "streak_continuation": 2.5,
    "streak_certain_reversal": 5.0,
    "literal_motif": 2.0,
    "low_entropy": 3.0,
    "total_zscore": 2.0,
}

# (window, votes needed for a majority)
MAJORITY_WINDOWS: Tuple[Tuple[int, int], ...] = ((5, 4), (10, 7), (20, 13))

LITERAL_MOTIFS: Tuple[Tuple[Tuple[Outcome, ...], Outcome], ...] = (
    ((H, H, L, L), H),
    ((L, H, H, L), L),
)


class _Scoreboard:
    def __init__(self, weights: Dict[str, float]) -> None:
        self._weights = weights
        self.scores: Dict[Outcome, float] = {H: 0.0, L: 0.0}
        self.reasons: List[Reason] = []

    def add(self, rule: str, side: Outcome, code: ReasonCode, **params) -> None:
        self.scores[side] += self._weights.get(rule, 0.0)
        self.reasons.append(Reason(code, {"side": side, **params}))


class FrequencyRules(BaseModel):
    """Weighted heuristic scoring over recent outcomes, totals and dice.

    Each rule that fires adds its weight to one side; the side with the larger
    score wins when the margin is decisive. Otherwise the recent average total
    breaks the tie, and as a last resort the model alternates from the last
    outcome.
    """

    name = "FREQUENCY_RULES"
    min_history = 3

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self._weights = dict(RULE_WEIGHTS)
        self._weights.update(config.rules.weights)

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        if len(history) < self.min_history:
            return self._fallback(history)

        cfg = self._config.rules
        board = _Scoreboard(self._weights)
        outcomes = outcomes_of(history)
        totals = totals_of(history)
        last = outcomes[-1]

        self._window_rules(board, outcomes)
        self._total_rules(board, totals)
        self._dice_rules(board, history)
        self._streak_rules(board, outcomes)

        margin = abs(board.scores[H] - board.scores[L])
        last10_totals = last_n(totals, 10)
        if margin > cfg.margin_threshold:
            predicted = H if board.scores[H] > board.scores[L] else L
            confidence = cfg.base_confidence + min(cfg.margin_bonus_cap, margin * cfg.margin_step)
            decision = Reason(
                ReasonCode.SCORE_MARGIN,
                {"side": predicted, "high": board.scores[H], "low": board.scores[L]},
            )
        elif last10_totals and average(last10_totals) >= 11:
            predicted, confidence = H, cfg.tiebreak_confidence
            decision = Reason(ReasonCode.AVERAGE_TIEBREAK, {"side": H, "average": average(last10_totals)})
        elif last10_totals and average(last10_totals) <= 10:
            predicted, confidence = L, cfg.tiebreak_confidence
            decision = Reason(ReasonCode.AVERAGE_TIEBREAK, {"side": L, "average": average(last10_totals)})
        else:
            predicted, confidence = last.opposite, cfg.alternate_confidence
            decision = Reason(ReasonCode.ALTERNATE_LAST, {"side": predicted})

        supporting = [r for r in board.reasons if r.params.get("side") is predicted]
        return self._output(
            predicted,
            min(cfg.confidence_cap, confidence),
            tuple(supporting) + (decision,),
            score_high=board.scores[H],
            score_low=board.scores[L],
        )

    def _window_rules(self, board: _Scoreboard, outcomes: List[Outcome]) -> None:
        last = outcomes[-1]

        last3 = last_n(outcomes, 3)
        if len(last3) == 3 and trailing_streak_length(last3) == 3:
            board.add("window_3", last.opposite, ReasonCode.THREE_IN_A_ROW)

        for window, needed in MAJORITY_WINDOWS:
            recent = last_n(outcomes, window)
            if len(recent) < window:
                continue
            highs = sum(1 for o in recent if o is H)
            lows = window - highs
            if highs >= needed:
                board.add(f"window_{window}", H, ReasonCode.WINDOW_MAJORITY, window=window, count=highs)
            elif lows >= needed:
                board.add(f"window_{window}", L, ReasonCode.WINDOW_MAJORITY, window=window, count=lows)

        for window in (5, 10):
            recent = last_n(outcomes, window)
            if len(recent) == window and switch_rate(recent) == 1.0:
                board.add(f"zigzag_{window}", last.opposite, ReasonCode.ZIGZAG, window=window)

        recent20 = last_n(outcomes, 20)
        for motif, side in LITERAL_MOTIFS:
            count = count_overlapping_pattern(recent20, motif)
            if count >= 2:
                label = "".join(o.symbol for o in motif)
                board.add("literal_motif", side, ReasonCode.LITERAL_MOTIF, motif=label, count=count)

        recent10 = last_n(outcomes, 10)
        if len(recent10) == 10:
            h = entropy(recent10)
            if h < 0.5:
                board.add("low_entropy", last.opposite, ReasonCode.LOW_ENTROPY, entropy=round(h, 3))

    def _total_rules(self, board: _Scoreboard, totals: List[int]) -> None:
        if not totals:
            return

        for window, high_at, low_at in ((10, 11.5, 9.5), (5, 12.0, 9.0)):
            recent = last_n(totals, window)
            if len(recent) < window:
                continue
            avg = average(recent)
            if avg >= high_at:
                board.add(f"average_{window}", H, ReasonCode.AVERAGE_TOTAL, window=window, average=avg)
            elif avg <= low_at:
                board.add(f"average_{window}", L, ReasonCode.AVERAGE_TOTAL, window=window, average=avg)

        for rule, source, window in (("trend_5", 5, 3), ("trend_10", 10, 5)):
            recent = last_n(totals, source)
            if len(recent) < window:
                continue
            if is_monotonic_window(recent, window, "up"):
                board.add(rule, H, ReasonCode.TOTALS_TREND, window=window, direction="up")
            elif is_monotonic_window(recent, window, "down"):
                board.add(rule, L, ReasonCode.TOTALS_TREND, window=window, direction="down")

        last_total = totals[-1]
        if last_total >= 17:
            board.add("extreme_total", H, ReasonCode.EXTREME_TOTAL, total=last_total)
        elif last_total <= 4:
            board.add("extreme_total", L, ReasonCode.EXTREME_TOTAL, total=last_total)

        recent10 = last_n(totals, 10)
        if len(recent10) == 10:
            if all(t >= 11 for t in recent10):
                board.add("one_sided_totals", H, ReasonCode.TOTALS_ONE_SIDED, window=10)
            elif all(t <= 10 for t in recent10):
                board.add("one_sided_totals", L, ReasonCode.TOTALS_ONE_SIDED, window=10)

            even = parity_ratio(recent10)
            if even >= 0.7:
                board.add("parity", L, ReasonCode.PARITY_BIAS, ratio=even)
            elif even <= 0.3:
                board.add("parity", H, ReasonCode.PARITY_BIAS, ratio=even)

            z = z_score_of_last(recent10)
            if z > 1.5:
                board.add("total_zscore", H, ReasonCode.TOTAL_ZSCORE, z=round(z, 3))
            elif z < -1.5:
                board.add("total_zscore", L, ReasonCode.TOTAL_ZSCORE, z=round(z, 3))

    def _dice_rules(self, board: _Scoreboard, history: Sequence[Round]) -> None:
        dice = dice_of(last_n(history, 10))
        if not dice:
            return

        faces = [face for roll in dice for face in roll]
        avg = average(faces)
        if avg >= 3.7:
            board.add("dice_average", H, ReasonCode.DICE_AVERAGE, average=avg)
        elif avg <= 3.3:
            board.add("dice_average", L, ReasonCode.DICE_AVERAGE, average=avg)

        last_roll = history[-1].dice
        if last_roll is not None:
            high_faces = sum(1 for face in last_roll if face >= 4)
            if high_faces == 3:
                board.add("dice_faces", H, ReasonCode.DICE_FACES, high_faces=high_faces)
            elif high_faces == 0:
                board.add("dice_faces", L, ReasonCode.DICE_FACES, high_faces=high_faces)

    def _streak_rules(self, board: _Scoreboard, outcomes: List[Outcome]) -> None:
        last = outcomes[-1]
        streak = trailing_streak_length(outcomes)
        if 5 <= streak <= 7:
            board.add("streak_reversal", last.opposite, ReasonCode.STREAK_REVERSAL, length=streak)
        if streak >= 8:
            board.add("streak_continuation", last, ReasonCode.STREAK_CONTINUATION, length=streak)
        if streak >= 10:
            board.add(
                "streak_certain_reversal", last.opposite, ReasonCode.STREAK_REVERSAL, length=streak
            )


def streak_prior(length: int, prior: Dict[int, float], default: float) -> float:
    for threshold in sorted(prior, reverse=True):
        if length >= threshold:
            return prior[threshold]
    return default


def break_statistics(outcomes: Sequence[Outcome], length: int) -> Tuple[int, int]:
    """Completed runs that stopped at exactly ``length`` vs ran past it.

    The trailing run is still open and is excluded.
    """
    completed = run_lengths(outcomes)[:-1]
    breaks = sum(1 for _, n in completed if n == length)
    continued = sum(1 for _, n in completed if n > length)
    return breaks, continued


class StreakBreakFilter(BaseModel):
    """Estimate whether the current streak breaks on the next round.

    The empirical break rate for streaks of the current length is shrunk
    towards a prior keyed by streak length, with weight n / (n + strength).
    """

    name = "STREAK_BREAK"
    min_history = 1

    def break_probability(self, history: Sequence[Round]) -> Tuple[float, int, int]:
        cfg = self._config.streak
        outcomes = outcomes_of(history)
        streak = trailing_streak_length(outcomes)
        prior = streak_prior(streak, cfg.prior, cfg.default_prior)

        breaks, continued = break_statistics(outcomes, streak)
        samples = breaks + continued
        weight = safe_div(samples, samples + cfg.prior_strength)
        empirical = safe_div(breaks, samples, prior)
        probability = weight * empirical + (1.0 - weight) * prior

        if entropy(last_n(outcomes, cfg.entropy_window)) < cfg.low_entropy:
            probability += cfg.low_entropy_boost
        return clamp(probability, 0.0, 0.99), streak, samples

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        if len(history) < self.min_history:
            return self._fallback(history)

        cfg = self._config.streak
        last = history[-1].outcome
        probability, streak, samples = self.break_probability(history)

        if probability >= cfg.break_threshold:
            predicted = last.opposite
            confidence = min(0.98, probability + 0.05)
            code = ReasonCode.STREAK_BREAK
        else:
            predicted = last
            confidence = cfg.hold_confidence
            code = ReasonCode.STREAK_HOLD

        reason = Reason(code, {"side": predicted, "length": streak, "probability": round(probability, 3)})
        return self._output(
            predicted,
            confidence,
            (reason,),
            break_probability=probability,
            streak_length=streak,
            samples=samples,
        )
