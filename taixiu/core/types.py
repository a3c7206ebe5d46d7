from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class Outcome(str, Enum):
    """Binary outcome of a round (Tài / Xỉu)."""

    HIGH = "HIGH"
    LOW = "LOW"

    @property
    def opposite(self) -> "Outcome":
        return Outcome.LOW if self is Outcome.HIGH else Outcome.HIGH

    @property
    def symbol(self) -> str:
        return "H" if self is Outcome.HIGH else "L"

    @classmethod
    def from_total(cls, total: float, midpoint: float = 10.5) -> "Outcome":
        return cls.HIGH if total > midpoint else cls.LOW

    @classmethod
    def from_symbol(cls, symbol: str) -> "Outcome":
        return cls.HIGH if symbol == "H" else cls.LOW


class ReasonCode(str, Enum):
    """Structured rationale tags, rendered to text by ``taixiu.core.rationale``."""

    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    WINDOW_MAJORITY = "WINDOW_MAJORITY"
    THREE_IN_A_ROW = "THREE_IN_A_ROW"
    ZIGZAG = "ZIGZAG"
    AVERAGE_TOTAL = "AVERAGE_TOTAL"
    TOTALS_TREND = "TOTALS_TREND"
    EXTREME_TOTAL = "EXTREME_TOTAL"
    TOTALS_ONE_SIDED = "TOTALS_ONE_SIDED"
    PARITY_BIAS = "PARITY_BIAS"
    DICE_AVERAGE = "DICE_AVERAGE"
    DICE_FACES = "DICE_FACES"
    STREAK_REVERSAL = "STREAK_REVERSAL"
    STREAK_CONTINUATION = "STREAK_CONTINUATION"
    LITERAL_MOTIF = "LITERAL_MOTIF"
    LOW_ENTROPY = "LOW_ENTROPY"
    TOTAL_ZSCORE = "TOTAL_ZSCORE"
    SCORE_MARGIN = "SCORE_MARGIN"
    AVERAGE_TIEBREAK = "AVERAGE_TIEBREAK"
    ALTERNATE_LAST = "ALTERNATE_LAST"
    MARKOV = "MARKOV"
    MOTIF_REPEAT = "MOTIF_REPEAT"
    RECENCY_WEIGHTED = "RECENCY_WEIGHTED"
    STREAK_BREAK = "STREAK_BREAK"
    STREAK_HOLD = "STREAK_HOLD"
    AUTOREGRESSION = "AUTOREGRESSION"
    MA_CROSSOVER = "MA_CROSSOVER"
    RSI_OVERBOUGHT = "RSI_OVERBOUGHT"
    RSI_OVERSOLD = "RSI_OVERSOLD"
    RSI_NEUTRAL = "RSI_NEUTRAL"
    BRIDGE = "BRIDGE"
    LONG_STREAK_BRIDGE = "LONG_STREAK_BRIDGE"
    NO_BRIDGE = "NO_BRIDGE"
    META = "META"
    AGREEMENT = "AGREEMENT"


class RiskLevel(str, Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


@dataclass(frozen=True)
class Reason:
    code: ReasonCode
    params: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        params = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in self.params.items()
        }
        return {"code": self.code.value, "params": params}


@dataclass(frozen=True)
class Round:
    index: int
    outcome: Outcome
    total: Optional[int] = None
    dice: Optional[Tuple[int, int, int]] = None


@dataclass(frozen=True)
class ModelOutput:
    model_name: str
    predicted: Outcome
    confidence: float
    reasons: Tuple[Reason, ...] = ()
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def prob_high(self) -> float:
        if self.predicted is Outcome.HIGH:
            return self.confidence
        return 1.0 - self.confidence


@dataclass(frozen=True)
class SubVote:
    source: str
    predicted: Outcome
    weight: float
    confidence: float


@dataclass(frozen=True)
class Forecast:
    predicted: Outcome
    probability: float
    confidence: float
    reasons: Tuple[Reason, ...]
    sub_votes: Tuple[SubVote, ...] = ()

    @property
    def rationale(self) -> List[str]:
        return self.render("en")

    def render(self, locale: str = "en") -> List[str]:
        from taixiu.core.rationale import render_all

        return render_all(self.reasons, locale)

    def to_dict(self, locale: str = "en") -> Dict[str, Any]:
        return {
            "predicted": self.predicted.value,
            "probability": self.probability,
            "confidence": self.confidence,
            "rationale": self.render(locale),
            "reasons": [r.to_dict() for r in self.reasons],
            "sub_votes": [
                {
                    "source": v.source,
                    "predicted": v.predicted.value,
                    "weight": v.weight,
                    "confidence": v.confidence,
                }
                for v in self.sub_votes
            ],
        }


@dataclass(frozen=True)
class MetaState:
    weights: Dict[str, float]
    bias: float
    warmed: bool


@dataclass(frozen=True)
class MotifSignal:
    motif_name: Optional[str]
    predicted: Outcome
    confidence: float
    reasons: Tuple[Reason, ...] = ()

    @property
    def rationale(self) -> List[str]:
        from taixiu.core.rationale import render_all

        return render_all(self.reasons, "en")


@dataclass(frozen=True)
class StepDetail:
    index: int
    predicted: Outcome
    actual: Outcome
    confidence: float
    bet_size: float
    bankroll_after: float
    step_return: float

    @property
    def correct(self) -> bool:
        return self.predicted is self.actual


@dataclass(frozen=True)
class BacktestReport:
    sample_size: int
    correct: int
    accuracy: float
    final_bankroll: float
    roi: float
    max_drawdown: float
    sharpe: float
    brier_score: float = 0.0
    max_win_streak: int = 0
    max_loss_streak: int = 0
    confidence_buckets: Dict[str, Dict[str, float]] = field(default_factory=dict)
    per_step_detail: Tuple[StepDetail, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["per_step_detail"] = [
            {
                **asdict(step),
                "predicted": step.predicted.value,
                "actual": step.actual.value,
                "correct": step.correct,
            }
            for step in self.per_step_detail
        ]
        return data
