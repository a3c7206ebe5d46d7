from typing import Dict, List

from taixiu.core.config import Config
from taixiu.core.models.base import BaseModel
from taixiu.core.models.heuristic import FrequencyRules, StreakBreakFilter
from taixiu.core.models.markov import MarkovChain
from taixiu.core.models.patterns import BridgeMotifDetector, RecentMotifRepeat
from taixiu.core.models.technical import AutoregressiveTotal, MovingAverageCrossover, RSIOscillator

MODEL_CLASSES = (
    FrequencyRules,
    MarkovChain,
    RecentMotifRepeat,
    StreakBreakFilter,
    AutoregressiveTotal,
    MovingAverageCrossover,
    RSIOscillator,
    BridgeMotifDetector,
)


def build_models(config: Config) -> List[BaseModel]:
    """Instantiate the full sub-predictor catalogue in vote order."""
    return [cls(config) for cls in MODEL_CLASSES]


def models_by_name(config: Config) -> Dict[str, BaseModel]:
    return {model.name: model for model in build_models(config)}


__all__ = [
    "AutoregressiveTotal",
    "BaseModel",
    "BridgeMotifDetector",
    "FrequencyRules",
    "MarkovChain",
    "MovingAverageCrossover",
    "RSIOscillator",
    "RecentMotifRepeat",
    "StreakBreakFilter",
    "build_models",
    "models_by_name",
]
