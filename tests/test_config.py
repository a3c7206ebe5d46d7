"""Configuration loading."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from taixiu.core.config import ALL_MODELS, Config, load_config
from taixiu.core.log import get_logger, setup_logging
from taixiu.core.types import Outcome

DEFAULT_YAML = Path(__file__).parent.parent / "config" / "default.yaml"


def test_default_yaml_matches_builtin_defaults():
    assert DEFAULT_YAML.exists()
    loaded = Config.from_yaml(DEFAULT_YAML)
    assert loaded.to_dict() == Config.default().to_dict()
    assert load_config().to_dict() == loaded.to_dict()


def test_missing_file_falls_back_to_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")
    assert config.ensemble.enabled_models == ALL_MODELS
    assert config.streak.prior[10] == 0.85


def test_partial_yaml_keeps_other_defaults(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("markov:\n  max_order: 2\nrisk:\n  scale: five\n", encoding="utf-8")
    config = load_config(path)
    assert config.markov.max_order == 2
    assert config.markov.alpha == 1.0
    assert config.risk.scale == "five"
    assert config.backtest.initial_bankroll == 1000


def test_overrides():
    config = Config.default().with_overrides({"ensemble.min_history": 20, "meta.enabled": False})
    assert config.ensemble.min_history == 20
    assert config.meta.enabled is False
    assert Config.default().ensemble.min_history == 12

    with pytest.raises(ValueError):
        Config.default().with_overrides({"nosuch.key": 1})
    with pytest.raises(ValueError):
        Config.default().with_overrides({"ensemble": 1})


def test_out_of_range_values_are_rejected():
    with pytest.raises(ValidationError):
        Config.from_dict({"motif": {"window": 80}})
    with pytest.raises(ValidationError):
        Config.from_dict({"markov": {"max_order": 0}})


def test_structured_logging_writes_enum_values(tmp_path):
    log_file = tmp_path / "logs" / "taixiu.log"
    setup_logging(level="INFO", structured=True, log_file=log_file)
    root = logging.getLogger()
    try:
        get_logger("taixiu.test").info("Forecast ready", side=Outcome.HIGH, label="Tài")
    finally:
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler):
                handler.close()
                root.removeHandler(handler)
    text = log_file.read_text(encoding="utf-8")
    assert '"side": "HIGH"' in text
    assert "Tài" in text


def test_unknown_log_level_is_rejected():
    with pytest.raises(ValueError):
        setup_logging(level="LOUD")
