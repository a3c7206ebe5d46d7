"""Risk classification and rationale rendering."""

import pytest

from taixiu.core.config import Config, RiskConfig
from taixiu.core.engine import classify_risk
from taixiu.core.rationale import outcome_name, render, render_all, risk_name
from taixiu.core.risk import label_for, risk_components, risk_score
from taixiu.core.types import Outcome, Reason, ReasonCode, RiskLevel


def test_calm_history_is_low_risk(make_history):
    history = make_history("HHHHH")
    assert risk_score(0.95, history) == pytest.approx(0.05)
    assert classify_risk(0.95, history) is RiskLevel.LOW

    five = Config.from_dict({"risk": {"scale": "five"}})
    assert classify_risk(0.95, history, five) is RiskLevel.VERY_LOW


def test_volatile_history_adds_penalties(make_history):
    components = risk_components(0.9, make_history("HL" * 10), RiskConfig())
    assert components["switching"] == pytest.approx(0.2)
    assert components["entropy"] == 0.15
    assert components["variance"] == 0.1
    assert components["streak"] == 0.0
    assert classify_risk(0.9, make_history("HL" * 10)) is RiskLevel.HIGH


def test_long_streak_penalty(make_history):
    components = risk_components(0.9, make_history("H" * 8), RiskConfig())
    assert components["streak"] == 0.1


def test_empty_history_uses_confidence_only():
    assert risk_components(0.7, [], RiskConfig())["switching"] == 0.0
    assert classify_risk(0.7, []) is RiskLevel.MEDIUM


def test_label_cut_points():
    three = RiskConfig()
    assert label_for(0.1, three) is RiskLevel.LOW
    assert label_for(0.3, three) is RiskLevel.MEDIUM
    assert label_for(0.9, three) is RiskLevel.HIGH
    five = RiskConfig(scale="five")
    assert label_for(0.2, five) is RiskLevel.LOW
    assert label_for(0.5, five) is RiskLevel.HIGH
    assert label_for(0.8, five) is RiskLevel.VERY_HIGH


def test_render_locales():
    reason = Reason(ReasonCode.STREAK_BREAK, {"side": Outcome.LOW, "length": 6, "probability": 0.8})
    assert render(reason, "en") == "streak of 6 breaks with p=0.8, expecting Low"
    assert render(reason, "vi").endswith("Xỉu")
    # unknown locales fall back to English
    assert render(reason, "fr") == render(reason, "en")


def test_render_tolerates_missing_params():
    text = render(Reason(ReasonCode.MARKOV, {"side": Outcome.HIGH}))
    assert text.startswith("MARKOV")
    assert render_all([]) == []


def test_names():
    assert outcome_name(Outcome.HIGH, "vi") == "Tài"
    assert outcome_name(Outcome.LOW, "xx") == "Low"
    assert risk_name(RiskLevel.MEDIUM, "vi") == "Trung bình"
