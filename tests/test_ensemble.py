"""Vote fusion and the public forecast entry point."""

import pytest

from taixiu.core.config import Config
from taixiu.core.engine import forecast_next
from taixiu.core.ensemble import EnsembleFuser, _Vote
from taixiu.core.errors import ContractViolation
from taixiu.core.online import OnlineLogisticMeta
from taixiu.core.types import Outcome, ReasonCode
from taixiu.core.weights import META_MODEL, WeightManager


def _config(**ensemble):
    return Config.from_dict({"ensemble": ensemble, "meta": {"enabled": False}})


def test_empty_history_falls_back():
    forecast = forecast_next([])
    assert forecast.predicted is Outcome.HIGH
    assert forecast.probability == 0.5
    assert forecast.confidence == 0.6
    assert forecast.sub_votes == ()
    assert forecast.reasons[0].code is ReasonCode.INSUFFICIENT_DATA
    assert forecast.rationale


def test_short_history_follows_last_outcome(make_history):
    forecast = forecast_next(make_history("HHLHL"))
    assert forecast.predicted is Outcome.LOW
    assert forecast.confidence <= 0.6
    assert forecast.probability == pytest.approx(0.4)
    assert "insufficient data" in forecast.rationale[0]


def test_none_history_is_rejected():
    with pytest.raises(ContractViolation):
        forecast_next(None)


def test_alternation_forecast(alternating_history):
    forecast = forecast_next(alternating_history, Config.from_dict({"meta": {"seed": 3}}))
    assert forecast.predicted is Outcome.LOW
    assert forecast.confidence >= 0.7
    assert forecast.probability < 0.5
    text = " ".join(forecast.rationale)
    assert "alternation" in text
    assert "motif" in text
    assert forecast.reasons[-1].code is ReasonCode.AGREEMENT
    assert len(forecast.sub_votes) == 9
    assert forecast.sub_votes[-1].source == META_MODEL


def test_fused_reasons_come_from_agreeing_voters(alternating_history):
    forecast = forecast_next(alternating_history, _config())
    for reason in forecast.reasons[:-1]:
        assert reason.params["side"] is forecast.predicted


def test_enabled_models_restrict_voters(alternating_history):
    forecast = forecast_next(alternating_history, _config(enabled_models=["MARKOV_CHAIN"]))
    assert [vote.source for vote in forecast.sub_votes] == ["MARKOV_CHAIN"]
    assert forecast.predicted is Outcome.LOW
    # a lone voter owns the whole vote mass, so the confidence hits the cap
    assert forecast.confidence == pytest.approx(0.99)


def test_zero_weight_removes_voter(alternating_history):
    weights = WeightManager()
    weights.set_model_weights({"MARKOV_CHAIN": 0.0})
    fuser = EnsembleFuser(_config(), weights=weights)
    sources = [vote.source for vote in fuser.forecast(alternating_history).sub_votes]
    assert "MARKOV_CHAIN" not in sources
    assert len(sources) == 7


def test_no_enabled_voters_falls_back(alternating_history):
    forecast = forecast_next(alternating_history, _config(enabled_models=[]))
    assert forecast.reasons[0].code is ReasonCode.INSUFFICIENT_DATA
    assert forecast.confidence == 0.6


def test_tied_mass_goes_high():
    fuser = EnsembleFuser(_config())
    forecast = fuser._fuse(
        [
            _Vote("A", Outcome.HIGH, 0.7, 1.0, ()),
            _Vote("B", Outcome.LOW, 0.7, 1.0, ()),
        ]
    )
    assert forecast.predicted is Outcome.HIGH
    assert forecast.probability == pytest.approx(0.5)
    assert forecast.confidence == pytest.approx(0.7 + 0.5 * 0.15)


def test_shared_meta_warms_up(make_history):
    history = make_history("HHLHLLHLHHLLLHHLHLHL" * 8)
    meta = OnlineLogisticMeta(Config().meta)
    forecast_next(history, meta=meta)
    assert meta.warmed
    warm_updates = meta.updates
    assert warm_updates == len(history) - 1 - Config().meta.warm_offset

    forecast_next(history + make_history("H", start=len(history) + 1), meta=meta)
    assert meta.updates == warm_updates + 1


def test_shared_meta_keeps_learning_as_the_feed_window_slides(make_history):
    history = make_history("HHLHLLHLHHLLLHHLHLHL" * 10)
    meta = OnlineLogisticMeta(Config().meta)
    forecast_next(history, meta=meta)
    assert meta.updates == 200 - 1 - Config().meta.warm_offset

    window = history[1:] + make_history("H", start=201)
    forecast_next(window, meta=meta)
    assert meta.updates == 200 - Config().meta.warm_offset
    assert meta.last_trained_index == 201


def test_features_are_cached_per_prefix(alternating_history):
    fuser = EnsembleFuser(_config())
    first = fuser.features(alternating_history)
    assert fuser.features(alternating_history) is first
    assert fuser.features(alternating_history[:-1]) is not first
