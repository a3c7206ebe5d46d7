"""FastAPI server exposing forecasts, backtests and bridge detection."""

import asyncio
import threading
from contextlib import asynccontextmanager, nullcontext
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from taixiu.api.schemas import (
    BacktestOut,
    ForecastOut,
    ForecastResponse,
    FullForecastResponse,
    MotifOut,
    RecentStepOut,
    RiskOut,
    RoundOut,
)
from taixiu.core.backtest import kelly_bet_size, recent_walk_forward, run_backtest
from taixiu.core.config import Config, load_config
from taixiu.core.engine import detect_dominant_motif
from taixiu.core.ensemble import EnsembleFuser
from taixiu.core.errors import ContractViolation, FeedError, InsufficientDataError
from taixiu.core.log import get_logger, setup_logging
from taixiu.core.online import OnlineLogisticMeta
from taixiu.core.risk import label_for, risk_score
from taixiu.core.types import Round
from taixiu.data.feed import HistoryFeed

logger = get_logger(__name__)


class HistoryProvider(Protocol):
    async def fetch_history(self) -> List[Round]: ...

    async def close(self) -> None: ...


def create_app(
    config: Optional[Config] = None,
    provider: Optional[HistoryProvider] = None,
) -> FastAPI:
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(
            level=config.logging.level,
            structured=config.logging.structured,
            log_file=Path(config.logging.log_file) if config.logging.log_file else None,
        )
        logger.info("API server started", feed=config.feed.url, locale=config.api.locale)
        yield
        await app.state.provider.close()

    app = FastAPI(title="Tai Xiu Oracle API", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.provider = provider or HistoryFeed(config.feed, config.outcome.midpoint)
    # shared learner keeps training across requests; otherwise one per request
    app.state.meta = OnlineLogisticMeta(config.meta) if config.meta.shared else None
    # the shared learner is trained from worker threads
    app.state.meta_lock = threading.Lock() if config.meta.shared else nullcontext()

    @app.exception_handler(FeedError)
    async def feed_error_handler(request: Request, exc: FeedError):
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(InsufficientDataError)
    async def insufficient_data_handler(request: Request, exc: InsufficientDataError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(ContractViolation)
    async def contract_handler(request: Request, exc: ContractViolation):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    async def _history() -> List[Round]:
        rounds = await app.state.provider.fetch_history()
        if not rounds:
            raise InsufficientDataError("history feed returned no usable rounds")
        return rounds

    def _fuser() -> EnsembleFuser:
        return EnsembleFuser(config, meta=app.state.meta)

    def _forecast_payload(history: List[Round], lookback: int) -> dict:
        locale = config.api.locale
        with app.state.meta_lock:
            forecast = _fuser().forecast(history)
        score = risk_score(forecast.confidence, history, config.risk)
        report = run_backtest(history, lookback, config)
        return {
            "last_round": RoundOut.from_round(history[-1], locale),
            "next_index": history[-1].index + 1,
            "forecast": ForecastOut.from_forecast(forecast, locale),
            "risk": RiskOut.from_level(label_for(score, config.risk), score, locale),
            "suggested_bet": kelly_bet_size(
                forecast.confidence, config.backtest.initial_bankroll, config.backtest
            ),
            "backtest": BacktestOut.from_report(report),
        }

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now().isoformat()}

    @app.get("/api/forecast", response_model=ForecastResponse)
    async def forecast():
        history = await _history()
        payload = await asyncio.to_thread(_forecast_payload, history, config.backtest.lookback)
        return ForecastResponse(**payload)

    @app.get("/api/forecast/full", response_model=FullForecastResponse)
    async def forecast_full(count: int = Query(default=30, ge=1, le=200)):
        history = await _history()
        payload = await asyncio.to_thread(_forecast_payload, history, 300)
        rows = await asyncio.to_thread(recent_walk_forward, history, count, config)
        recent = [RecentStepOut(**row) for row in rows]
        accuracy = sum(1 for r in recent if r.correct) / len(recent) if recent else 0.0
        return FullForecastResponse(**payload, recent=recent, recent_accuracy=round(accuracy, 4))

    @app.get("/api/backtest", response_model=BacktestOut)
    async def backtest(
        lookback: int = Query(default=200, ge=0),
        steps: bool = False,
    ):
        history = await _history()
        report = await asyncio.to_thread(run_backtest, history, lookback, config)
        return BacktestOut.from_report(report, with_steps=steps)

    @app.get("/api/motif", response_model=MotifOut)
    async def motif(window: Optional[int] = Query(default=None, ge=1)):
        history = await _history()
        signal = await asyncio.to_thread(detect_dominant_motif, history, window, config)
        return MotifOut.from_signal(signal, config.api.locale)

    return app


def main() -> None:
    """Entry point for running the API server."""
    import uvicorn

    config = load_config()
    uvicorn.run(create_app(config), host=config.api.host, port=config.api.port)


if __name__ == "__main__":
    main()
