"""Public entry points of the forecasting core.

All functions accept a possibly empty history and return their documented
fallback rather than failing; only caller contract violations raise.
"""

from typing import Optional, Sequence

from taixiu.core import backtest as _backtest
from taixiu.core import risk as _risk
from taixiu.core.config import Config
from taixiu.core.ensemble import EnsembleFuser
from taixiu.core.errors import ContractViolation
from taixiu.core.models.patterns import BridgeMotifDetector
from taixiu.core.online import OnlineLogisticMeta
from taixiu.core.types import BacktestReport, Forecast, MotifSignal, RiskLevel, Round


def _require_history(history: Optional[Sequence[Round]]) -> Sequence[Round]:
    if history is None:
        raise ContractViolation("history must not be None")
    return history


def forecast_next(
    history: Sequence[Round],
    config: Optional[Config] = None,
    meta: Optional[OnlineLogisticMeta] = None,
) -> Forecast:
    """Forecast the round following ``history``.

    Pass ``meta`` to reuse a meta-learner across calls; otherwise a fresh one
    is created and discarded.
    """
    history = _require_history(history)
    return EnsembleFuser(config, meta=meta).forecast(history)


def run_backtest(
    history: Sequence[Round],
    lookback: Optional[int] = None,
    config: Optional[Config] = None,
    meta: Optional[OnlineLogisticMeta] = None,
) -> BacktestReport:
    """Walk-forward report; an injected ``meta`` must not have trained on the scored rounds."""
    history = _require_history(history)
    fuser = EnsembleFuser(config, meta=meta)
    return _backtest.run_backtest(history, lookback, fuser.config, fuser)


def classify_risk(
    confidence: float,
    history: Sequence[Round],
    config: Optional[Config] = None,
) -> RiskLevel:
    return _risk.classify_risk(confidence, _require_history(history), config)


def detect_dominant_motif(
    history: Sequence[Round],
    window: Optional[int] = None,
    config: Optional[Config] = None,
) -> MotifSignal:
    """Strongest named bridge in the trailing ``window`` rounds."""
    history = _require_history(history)
    if window is not None and window < 0:
        raise ContractViolation(f"window must be non-negative, got {window}")
    return BridgeMotifDetector(config or Config.default()).detect(history, window)
