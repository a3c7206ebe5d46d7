import math
from typing import Dict, List, Optional, Sequence, Tuple

from taixiu.core.config import BacktestConfig, Config
from taixiu.core.ensemble import EnsembleFuser
from taixiu.core.errors import ContractViolation
from taixiu.core.log import get_logger
from taixiu.core.stats import average, standard_deviation
from taixiu.core.types import BacktestReport, Outcome, Round, StepDetail
from taixiu.core.utils import clamp, safe_div

logger = get_logger(__name__)

CONFIDENCE_BUCKETS: Tuple[Tuple[str, float, float], ...] = (
    ("0.50-0.60", 0.50, 0.60),
    ("0.60-0.70", 0.60, 0.70),
    ("0.70-0.80", 0.70, 0.80),
    ("0.80-0.90", 0.80, 0.90),
    ("0.90-1.00", 0.90, 1.01),
)


def kelly_fraction(probability: float, payout: float) -> float:
    """Kelly fraction for a bet paying ``payout`` per unit staked."""
    if payout <= 0:
        raise ContractViolation(f"payout must be positive, got {payout}")
    p = clamp(probability, 0.01, 0.99)
    q = 1.0 - p
    return (payout * p - q) / payout


def kelly_bet_size(
    probability: float,
    bankroll: float,
    config: Optional[BacktestConfig] = None,
) -> float:
    """Stake for the next round.

    A non-positive Kelly fraction falls back to the base unit. The stake is
    capped at ``max_fraction`` of the bankroll and never exceeds the bankroll.
    """
    cfg = config or BacktestConfig()
    if bankroll <= 0:
        return 0.0
    k = kelly_fraction(probability, cfg.payout)
    if k <= 0:
        return float(min(cfg.base_unit, bankroll))
    bet = max(cfg.min_bet, round(bankroll * min(cfg.max_fraction, k)))
    return float(min(bet, bankroll))


class BacktestStats:
    def __init__(self, config: BacktestConfig) -> None:
        self._cfg = config
        self.bankroll = config.initial_bankroll
        self.peak = config.initial_bankroll
        self.max_drawdown = 0.0
        self.total = 0
        self.correct = 0
        self.returns: List[float] = []
        self.brier_sum = 0.0
        self.win_streak = 0
        self.loss_streak = 0
        self.max_win_streak = 0
        self.max_loss_streak = 0
        self.confidence_buckets: Dict[str, List[int]] = {
            name: [0, 0] for name, _, _ in CONFIDENCE_BUCKETS
        }
        self.details: List[StepDetail] = []

    def record(
        self,
        index: int,
        predicted: Outcome,
        actual: Outcome,
        confidence: float,
        probability_high: float,
    ) -> StepDetail:
        hit = predicted is actual
        before = self.bankroll
        bet = kelly_bet_size(confidence, before, self._cfg)
        if hit:
            self.bankroll += bet * self._cfg.payout
            step_return = safe_div(bet * self._cfg.payout, before)
        else:
            self.bankroll -= bet
            step_return = -safe_div(bet, before)
        self.returns.append(step_return)

        self.peak = max(self.peak, self.bankroll)
        drawdown = safe_div(self.peak - self.bankroll, self.peak)
        self.max_drawdown = max(self.max_drawdown, drawdown)

        self.total += 1
        if hit:
            self.correct += 1
            self.win_streak += 1
            self.loss_streak = 0
            self.max_win_streak = max(self.max_win_streak, self.win_streak)
        else:
            self.loss_streak += 1
            self.win_streak = 0
            self.max_loss_streak = max(self.max_loss_streak, self.loss_streak)

        y = 1.0 if actual is Outcome.HIGH else 0.0
        self.brier_sum += (probability_high - y) ** 2

        for name, low, high in CONFIDENCE_BUCKETS:
            if low <= confidence < high:
                self.confidence_buckets[name][1] += 1
                if hit:
                    self.confidence_buckets[name][0] += 1
                break

        detail = StepDetail(
            index=index,
            predicted=predicted,
            actual=actual,
            confidence=confidence,
            bet_size=bet,
            bankroll_after=self.bankroll,
            step_return=step_return,
        )
        self.details.append(detail)
        return detail

    def accuracy(self) -> float:
        return safe_div(self.correct, self.total)

    def sharpe_ratio(self) -> float:
        if len(self.returns) < 2:
            return 0.0
        sd = standard_deviation(self.returns)
        if sd == 0 or math.isnan(sd):
            return 0.0
        return average(self.returns) / sd

    def report(self) -> BacktestReport:
        initial = self._cfg.initial_bankroll
        details = self.details
        if self._cfg.detail_limit is not None:
            details = details[-self._cfg.detail_limit:]
        buckets = {
            name: {"correct": c, "total": t, "accuracy": safe_div(c, t)}
            for name, (c, t) in self.confidence_buckets.items()
            if t
        }
        return BacktestReport(
            sample_size=self.total,
            correct=self.correct,
            accuracy=self.accuracy(),
            final_bankroll=self.bankroll,
            roi=safe_div(self.bankroll - initial, initial),
            max_drawdown=self.max_drawdown,
            sharpe=self.sharpe_ratio(),
            brier_score=safe_div(self.brier_sum, self.total),
            max_win_streak=self.max_win_streak,
            max_loss_streak=self.max_loss_streak,
            confidence_buckets=buckets,
            per_step_detail=tuple(details),
        )


def neutral_report() -> BacktestReport:
    return BacktestReport(
        sample_size=0,
        correct=0,
        accuracy=0.0,
        final_bankroll=0.0,
        roi=0.0,
        max_drawdown=0.0,
        sharpe=0.0,
    )


def _check_history(history: Optional[Sequence[Round]]) -> Sequence[Round]:
    if history is None:
        raise ContractViolation("history must not be None")
    return history


def _reject_trained_meta(fuser: EnsembleFuser, first_scored: int) -> None:
    trained = fuser.meta.last_trained_index if fuser.meta is not None else None
    if trained is not None and trained >= first_scored:
        raise ContractViolation(
            f"meta-learner already trained through round {trained}, "
            f"past the first scored round {first_scored}"
        )


def run_backtest(
    history: Sequence[Round],
    lookback: Optional[int] = None,
    config: Optional[Config] = None,
    fuser: Optional[EnsembleFuser] = None,
) -> BacktestReport:
    """Walk-forward evaluation over the trailing ``lookback`` rounds.

    At each cutoff only the prefix up to and including the cutoff is shown to
    the ensemble, and its forecast is scored against the following round.
    A meta-learner carried by ``fuser`` must not have trained on any scored
    round; otherwise the replay would see those outcomes in advance.
    """
    history = _check_history(history)
    config = config or (fuser.config if fuser is not None else Config.default())
    cfg = config.backtest
    lookback = cfg.lookback if lookback is None else lookback
    if lookback < 0:
        raise ContractViolation(f"lookback must be non-negative, got {lookback}")

    n = min(lookback, len(history) - 1)
    if n < cfg.min_sample:
        logger.info("Backtest skipped", sample=max(n, 0), required=cfg.min_sample)
        return neutral_report()

    fuser = fuser or EnsembleFuser(config)
    start = len(history) - 1 - n
    _reject_trained_meta(fuser, history[start + 1].index)
    stats = BacktestStats(cfg)
    for i in range(start, len(history) - 1):
        forecast = fuser.forecast(history[: i + 1])
        actual = history[i + 1]
        stats.record(
            index=actual.index,
            predicted=forecast.predicted,
            actual=actual.outcome,
            confidence=forecast.confidence,
            probability_high=forecast.probability,
        )

    report = stats.report()
    logger.info(
        "Backtest complete",
        sample=report.sample_size,
        accuracy=round(report.accuracy, 4),
        roi=round(report.roi, 4),
        max_drawdown=round(report.max_drawdown, 4),
    )
    return report


def recent_walk_forward(
    history: Sequence[Round],
    count: Optional[int] = None,
    config: Optional[Config] = None,
    fuser: Optional[EnsembleFuser] = None,
) -> List[Dict[str, object]]:
    """Predicted vs actual for each of the last ``count`` rounds."""
    history = _check_history(history)
    config = config or (fuser.config if fuser is not None else Config.default())
    count = config.backtest.recent_count if count is None else count
    if count < 0:
        raise ContractViolation(f"count must be non-negative, got {count}")

    fuser = fuser or EnsembleFuser(config)
    start = max(1, len(history) - count)
    if start < len(history):
        _reject_trained_meta(fuser, history[start].index)
    rows: List[Dict[str, object]] = []
    for i in range(start, len(history)):
        forecast = fuser.forecast(history[:i])
        actual = history[i]
        rows.append(
            {
                "index": actual.index,
                "predicted": forecast.predicted.value,
                "actual": actual.outcome.value,
                "confidence": forecast.confidence,
                "correct": forecast.predicted is actual.outcome,
            }
        )
    return rows
