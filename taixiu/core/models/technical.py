from typing import Sequence

from taixiu.core.config import Config
from taixiu.core.indicators import autoregressive_next, ema, rsi_centered, sma
from taixiu.core.models.base import BaseModel
from taixiu.core.stats import totals_of
from taixiu.core.types import ModelOutput, Outcome, Reason, ReasonCode, Round
from taixiu.core.utils import last_n


class AutoregressiveTotal(BaseModel):
    """Projects the next total from the last few with fixed AR coefficients."""

    name = "AUTOREGRESSIVE"
    min_history = 5

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self._cfg = config.technical
        self._midpoint = config.outcome.midpoint
        self.min_history = max(5, len(self._cfg.ar_coefficients))

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        totals = last_n(totals_of(history), self._cfg.ar_window)
        if len(totals) < self.min_history:
            return self._fallback(history)

        projected = autoregressive_next(totals, self._cfg.ar_coefficients)
        if projected is None:
            return self._fallback(history)

        predicted = Outcome.from_total(projected, self._midpoint)
        confidence = 0.65 + min(0.25, abs(projected - self._midpoint) / 7)
        reason = Reason(ReasonCode.AUTOREGRESSION, {"side": predicted, "projected": round(projected, 2)})
        return self._output(predicted, confidence, (reason,), projected=projected)


class MovingAverageCrossover(BaseModel):
    """Short moving average of totals against the long one."""

    name = "MA_CROSSOVER"

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self._cfg = config.technical
        self.min_history = self._cfg.ma_long

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        totals = last_n(totals_of(history), max(self._cfg.ma_window, self._cfg.ma_long))
        if len(totals) < self.min_history:
            return self._fallback(history)

        if self._cfg.use_ema:
            short = ema(totals, self._cfg.ma_short)
        else:
            short = sma(totals, self._cfg.ma_short)
        long = sma(totals, self._cfg.ma_long)
        if short is None or long is None:
            return self._fallback(history)

        predicted = Outcome.HIGH if short > long else Outcome.LOW
        confidence = 0.7 + min(0.2, abs(short - long) / 5)
        reason = Reason(
            ReasonCode.MA_CROSSOVER,
            {"side": predicted, "short": round(short, 2), "long": round(long, 2)},
        )
        return self._output(predicted, confidence, (reason,), short=short, long=long)


class RSIOscillator(BaseModel):
    """RSI of midpoint-centred totals: fade extremes, otherwise hold direction."""

    name = "RSI_OSCILLATOR"

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self._cfg = config.technical
        self._midpoint = config.outcome.midpoint
        self.min_history = self._cfg.rsi_period

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        totals = totals_of(history)
        rsi = rsi_centered(totals, self._cfg.rsi_period, self._midpoint)
        if rsi is None:
            return self._fallback(history)

        if rsi > self._cfg.rsi_overbought:
            predicted, code = Outcome.LOW, ReasonCode.RSI_OVERBOUGHT
        elif rsi < self._cfg.rsi_oversold:
            predicted, code = Outcome.HIGH, ReasonCode.RSI_OVERSOLD
        else:
            predicted, code = history[-1].outcome, ReasonCode.RSI_NEUTRAL

        confidence = 0.7 + min(0.2, abs(rsi - 50) / 50)
        reason = Reason(code, {"side": predicted, "rsi": round(rsi, 1)})
        return self._output(predicted, confidence, (reason,), rsi=rsi)
