"""Configuration loading and validation."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field


ALL_MODELS: List[str] = [
    "FREQUENCY_RULES",
    "MARKOV_CHAIN",
    "RECENT_MOTIF",
    "STREAK_BREAK",
    "AUTOREGRESSIVE",
    "MA_CROSSOVER",
    "RSI_OSCILLATOR",
    "BRIDGE_MOTIF",
]


class OutcomeConfig(BaseModel):
    """Mapping from dice totals to outcomes."""
    midpoint: float = 10.5


class RulesConfig(BaseModel):
    """Frequency/streak heuristic rules."""
    margin_threshold: float = 2.0
    base_confidence: float = 0.75
    margin_step: float = 0.05
    margin_bonus_cap: float = 0.2
    tiebreak_confidence: float = 0.7
    alternate_confidence: float = 0.65
    confidence_cap: float = 0.98
    # overrides for individual rule weights, see models.heuristic.RULE_WEIGHTS
    weights: Dict[str, float] = Field(default_factory=dict)


class MarkovConfig(BaseModel):
    """Markov chain over recent outcomes."""
    max_order: int = Field(default=4, ge=1, le=8)
    window: int = 200
    alpha: float = Field(default=1.0, ge=0.0)
    min_support: int = 2
    confidence_cap: float = 0.98


class MotifConfig(BaseModel):
    """Recent motif repetition."""
    window: int = Field(default=30, ge=5, le=50)
    min_length: int = 3
    max_length: int = Field(default=6, ge=3, le=10)
    recency_decay: float = 1.2
    confidence_cap: float = 0.98


class StreakConfig(BaseModel):
    """Streak break filter."""
    prior: Dict[int, float] = Field(
        default_factory=lambda: {10: 0.85, 8: 0.80, 6: 0.75, 4: 0.65, 3: 0.60}
    )
    default_prior: float = 0.5
    prior_strength: float = 5.0
    entropy_window: int = 20
    low_entropy: float = 0.6
    low_entropy_boost: float = 0.1
    break_threshold: float = 0.65
    hold_confidence: float = 0.6


class TechnicalConfig(BaseModel):
    """Autoregression, moving averages and RSI on totals."""
    ar_coefficients: List[float] = Field(default_factory=lambda: [0.5, 0.3, 0.15])
    ar_window: int = 50
    ma_short: int = 5
    ma_long: int = 20
    ma_window: int = 50
    use_ema: bool = False
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0


class BridgeConfig(BaseModel):
    """Bridge (run-length rhythm) detection."""
    window: int = 20
    long_streak_min: int = 4
    base_confidence: float = 0.6
    count_step: float = 0.05
    count_bonus_cap: float = 0.3


class MetaConfig(BaseModel):
    """Online logistic meta-learner."""
    enabled: bool = True
    learning_rate: float = 0.04
    l2: float = 5e-4
    init_scale: float = 0.01
    warm_offset: int = 80
    min_history: int = 150
    seed: Optional[int] = None
    shared: bool = False


class EnsembleConfig(BaseModel):
    """Vote fusion."""
    min_history: int = 12
    fallback_confidence: float = 0.6
    base_confidence: float = 0.7
    margin_weight: float = 0.75
    agreement_weight: float = 0.15
    min_confidence: float = 0.5
    max_confidence: float = 0.99
    enabled_models: List[str] = Field(default_factory=lambda: list(ALL_MODELS))
    weights: Dict[str, float] = Field(default_factory=dict)


class BacktestConfig(BaseModel):
    """Walk-forward backtest and Kelly sizing."""
    lookback: int = 200
    min_sample: int = 21
    initial_bankroll: float = 1000.0
    payout: float = 0.95
    max_fraction: float = 0.25
    base_unit: float = 1.0
    min_bet: float = 1.0
    # None keeps every step so accuracy can be recomputed from the detail
    detail_limit: Optional[int] = None
    recent_count: int = 30


class RiskConfig(BaseModel):
    """Risk classification."""
    scale: str = "three"
    window: int = 20
    switch_weight: float = 0.2
    streak_threshold: int = 7
    streak_penalty: float = 0.1
    entropy_threshold: float = 0.95
    entropy_penalty: float = 0.15
    variance_threshold: float = 10.0
    variance_penalty: float = 0.1
    three_level_cuts: List[float] = Field(default_factory=lambda: [0.25, 0.40])
    five_level_cuts: List[float] = Field(default_factory=lambda: [0.15, 0.25, 0.40, 0.55])


class FeedConfig(BaseModel):
    """Upstream history feed."""
    url: str = "http://localhost:9000/api/history"
    request_timeout: float = 15.0


class ApiConfig(BaseModel):
    """HTTP API."""
    host: str = "0.0.0.0"
    port: int = 8000
    locale: str = "vi"


class LoggingConfig(BaseModel):
    """Logging."""
    level: str = "INFO"
    structured: bool = False
    log_file: Optional[str] = None


@dataclass
class Config:
    """Top-level configuration."""
    outcome: OutcomeConfig = field(default_factory=OutcomeConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    markov: MarkovConfig = field(default_factory=MarkovConfig)
    motif: MotifConfig = field(default_factory=MotifConfig)
    streak: StreakConfig = field(default_factory=StreakConfig)
    technical: TechnicalConfig = field(default_factory=TechnicalConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    meta: MetaConfig = field(default_factory=MetaConfig)
    ensemble: EnsembleConfig = field(default_factory=EnsembleConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Config":
        config = cls()
        for f in fields(cls):
            section = (data or {}).get(f.name)
            if section is None:
                continue
            section_type = type(getattr(config, f.name))
            setattr(config, f.name, section_type(**section))
        return config

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name).model_dump() for f in fields(self)}

    def with_overrides(self, overrides: Dict[str, object]) -> "Config":
        """Copy with dotted ``section.key`` overrides applied."""
        data = self.to_dict()
        for dotted, value in overrides.items():
            section, _, key = dotted.partition(".")
            if section not in data or not key:
                raise ValueError(f"Unknown config key: {dotted}")
            data[section][key] = value
        return type(self).from_dict(data)

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    @classmethod
    def default(cls) -> "Config":
        return cls()


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from a file, or fall back to defaults."""
    if config_path is None:
        config_path = Path(__file__).parent.parent.parent / "config" / "default.yaml"

    if config_path.exists():
        return Config.from_yaml(config_path)
    return Config.default()
