"""Walk-forward backtest and Kelly sizing."""

import pytest

from taixiu.core.backtest import (
    kelly_bet_size,
    kelly_fraction,
    recent_walk_forward,
    run_backtest,
)
from taixiu.core.config import BacktestConfig, Config, MetaConfig
from taixiu.core.engine import forecast_next
from taixiu.core.engine import run_backtest as engine_backtest
from taixiu.core.ensemble import EnsembleFuser
from taixiu.core.errors import ContractViolation
from taixiu.core.online import OnlineLogisticMeta


def _streak_only():
    return Config.from_dict(
        {"ensemble": {"enabled_models": ["STREAK_BREAK"]}, "meta": {"enabled": False}}
    )


def test_kelly_fallback_to_base_unit():
    assert kelly_fraction(0.5, 0.95) < 0
    assert kelly_bet_size(0.5, 1000) == 1.0
    assert kelly_bet_size(0.3, 1000) == 1.0


def test_kelly_caps_fraction():
    assert kelly_fraction(0.9, 0.95) == pytest.approx((0.95 * 0.9 - 0.1) / 0.95)
    assert kelly_bet_size(0.9, 1000) == 250.0
    assert kelly_bet_size(0.6, 1000) == pytest.approx(round(1000 * (0.95 * 0.6 - 0.4) / 0.95))


def test_bet_never_exceeds_bankroll():
    assert kelly_bet_size(0.9, 0.5) == 0.5
    assert kelly_bet_size(0.9, 0) == 0.0
    cfg = BacktestConfig(base_unit=5)
    assert kelly_bet_size(0.5, 3, cfg) == 3.0


def test_kelly_rejects_bad_payout():
    with pytest.raises(ContractViolation):
        kelly_fraction(0.6, 0.0)


def test_short_history_yields_neutral_report(make_history):
    report = run_backtest(make_history("HL" * 7))
    assert report.sample_size == 0
    assert report.accuracy == 0.0
    assert report.final_bankroll == 0.0
    assert report.per_step_detail == ()


def test_lookback_below_minimum_sample(random_history):
    report = run_backtest(random_history, lookback=10)
    assert report.sample_size == 0


def test_contract_violations(random_history):
    with pytest.raises(ContractViolation):
        run_backtest(random_history, lookback=-1)
    with pytest.raises(ContractViolation):
        run_backtest(None)
    with pytest.raises(ValueError):
        engine_backtest(random_history, lookback=-5)


def test_step_log_reproduces_accuracy(random_history):
    report = run_backtest(random_history, lookback=50)
    assert report.sample_size == 50
    steps = report.per_step_detail
    assert len(steps) == report.sample_size
    hits = sum(1 for step in steps if step.predicted is step.actual)
    assert hits == report.correct
    assert hits / len(steps) == report.accuracy
    assert steps[-1].index == random_history[-1].index
    assert steps[-1].bankroll_after == report.final_bankroll


def test_report_metrics_are_consistent(random_history):
    report = run_backtest(random_history, lookback=40)
    assert 0.0 <= report.max_drawdown <= 1.0
    assert 0.0 <= report.brier_score <= 1.0
    assert report.roi == pytest.approx((report.final_bankroll - 1000) / 1000)
    assert sum(b["total"] for b in report.confidence_buckets.values()) == report.sample_size
    data = report.to_dict()
    assert data["per_step_detail"][0]["predicted"] in ("HIGH", "LOW")


def test_streak_only_backtest_learns_blocks_of_four(make_history):
    history = make_history("HHHHLLLL" * 13)
    report = run_backtest(history, lookback=60, config=_streak_only())
    assert report.sample_size == 60
    assert report.accuracy == 1.0
    assert report.max_loss_streak == 0
    assert report.roi > 0


def test_engine_backtest_accepts_shared_meta(random_history):
    meta = OnlineLogisticMeta(Config().meta)
    report = engine_backtest(random_history, lookback=30, meta=meta)
    assert report.sample_size == 30


def test_backtest_rejects_meta_trained_on_scored_rounds(random_history):
    meta = OnlineLogisticMeta(MetaConfig(seed=3, min_history=30, warm_offset=10))
    forecast_next(random_history, meta=meta)
    assert meta.last_trained_index == 80
    with pytest.raises(ContractViolation):
        engine_backtest(random_history, lookback=30, meta=meta)
    with pytest.raises(ContractViolation):
        recent_walk_forward(random_history, count=5, fuser=EnsembleFuser(Config(), meta=meta))


def test_backtest_accepts_meta_trained_before_the_window(random_history):
    meta = OnlineLogisticMeta(MetaConfig(seed=3, min_history=30, warm_offset=10))
    forecast_next(random_history[:50], meta=meta)
    assert meta.last_trained_index == 50
    report = engine_backtest(random_history, lookback=29, meta=meta)
    assert report.sample_size == 29
    assert meta.last_trained_index == 79


def test_recent_walk_forward(random_history):
    rows = recent_walk_forward(random_history, count=10)
    assert len(rows) == 10
    assert rows[-1]["index"] == random_history[-1].index
    for row in rows:
        assert row["correct"] == (row["predicted"] == row["actual"])

    assert recent_walk_forward(random_history[:1]) == []
    with pytest.raises(ContractViolation):
        recent_walk_forward(random_history, count=-1)
