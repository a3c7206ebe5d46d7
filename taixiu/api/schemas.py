from typing import Dict, List, Optional

from pydantic import BaseModel

from taixiu.core.rationale import outcome_name, render_all, risk_name
from taixiu.core.types import BacktestReport, Forecast, MotifSignal, RiskLevel, Round


class RoundOut(BaseModel):
    index: int
    outcome: str
    total: Optional[int] = None
    dice: Optional[List[int]] = None

    @classmethod
    def from_round(cls, round_: Round, locale: str) -> "RoundOut":
        return cls(
            index=round_.index,
            outcome=outcome_name(round_.outcome, locale),
            total=round_.total,
            dice=list(round_.dice) if round_.dice else None,
        )


class VoteOut(BaseModel):
    source: str
    predicted: str
    weight: float
    confidence: float


class ForecastOut(BaseModel):
    predicted: str
    label: str
    probability_high: float
    confidence: float
    rationale: List[str]
    votes: List[VoteOut]

    @classmethod
    def from_forecast(cls, forecast: Forecast, locale: str) -> "ForecastOut":
        return cls(
            predicted=forecast.predicted.value,
            label=outcome_name(forecast.predicted, locale),
            probability_high=round(forecast.probability, 4),
            confidence=round(forecast.confidence, 4),
            rationale=forecast.render(locale),
            votes=[
                VoteOut(
                    source=v.source,
                    predicted=v.predicted.value,
                    weight=round(v.weight, 4),
                    confidence=round(v.confidence, 4),
                )
                for v in forecast.sub_votes
            ],
        )


class RiskOut(BaseModel):
    level: str
    label: str
    score: float

    @classmethod
    def from_level(cls, level: RiskLevel, score: float, locale: str) -> "RiskOut":
        return cls(level=level.value, label=risk_name(level, locale), score=round(score, 4))


class StepOut(BaseModel):
    index: int
    predicted: str
    actual: str
    confidence: float
    bet_size: float
    bankroll_after: float
    correct: bool


class BacktestOut(BaseModel):
    sample_size: int
    correct: int
    accuracy: float
    final_bankroll: float
    roi: float
    max_drawdown: float
    sharpe: float
    brier_score: float
    max_win_streak: int
    max_loss_streak: int
    confidence_buckets: Dict[str, Dict[str, float]]
    steps: List[StepOut] = []

    @classmethod
    def from_report(cls, report: BacktestReport, with_steps: bool = False) -> "BacktestOut":
        steps = []
        if with_steps:
            steps = [
                StepOut(
                    index=s.index,
                    predicted=s.predicted.value,
                    actual=s.actual.value,
                    confidence=round(s.confidence, 4),
                    bet_size=s.bet_size,
                    bankroll_after=round(s.bankroll_after, 2),
                    correct=s.correct,
                )
                for s in report.per_step_detail
            ]
        return cls(
            sample_size=report.sample_size,
            correct=report.correct,
            accuracy=round(report.accuracy, 4),
            final_bankroll=round(report.final_bankroll, 2),
            roi=round(report.roi, 4),
            max_drawdown=round(report.max_drawdown, 4),
            sharpe=round(report.sharpe, 4),
            brier_score=round(report.brier_score, 4),
            max_win_streak=report.max_win_streak,
            max_loss_streak=report.max_loss_streak,
            confidence_buckets=report.confidence_buckets,
            steps=steps,
        )


class MotifOut(BaseModel):
    motif: Optional[str]
    predicted: str
    label: str
    confidence: float
    rationale: List[str]

    @classmethod
    def from_signal(cls, signal: MotifSignal, locale: str) -> "MotifOut":
        return cls(
            motif=signal.motif_name,
            predicted=signal.predicted.value,
            label=outcome_name(signal.predicted, locale),
            confidence=round(signal.confidence, 4),
            rationale=render_all(signal.reasons, locale),
        )


class RecentStepOut(BaseModel):
    index: int
    predicted: str
    actual: str
    confidence: float
    correct: bool


class ForecastResponse(BaseModel):
    last_round: RoundOut
    next_index: int
    forecast: ForecastOut
    risk: RiskOut
    suggested_bet: float
    backtest: BacktestOut


class FullForecastResponse(ForecastResponse):
    recent: List[RecentStepOut]
    recent_accuracy: float
