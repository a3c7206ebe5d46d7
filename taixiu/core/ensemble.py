from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from taixiu.core.config import Config
from taixiu.core.features import extract_features
from taixiu.core.log import get_logger
from taixiu.core.models import BaseModel, build_models
from taixiu.core.online import OnlineLogisticMeta
from taixiu.core.types import Forecast, ModelOutput, Outcome, Reason, ReasonCode, Round, SubVote
from taixiu.core.utils import clamp, safe_div
from taixiu.core.weights import META_MODEL, WeightManager

logger = get_logger(__name__)


class _Vote(NamedTuple):
    source: str
    predicted: Outcome
    confidence: float
    weight: float
    reasons: Tuple[Reason, ...]


class EnsembleFuser:
    """Combines sub-predictor votes and the meta-learner into one forecast.

    Each voter contributes ``confidence * weight`` to its side. The fused
    confidence blends the winning share of the vote mass with the fraction of
    voters that agree with the winner.

    The meta-learner is injected so the caller decides its lifetime: pass one
    instance across calls to keep learning, or leave it out to get a fresh
    learner per fuser.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        meta: Optional[OnlineLogisticMeta] = None,
        weights: Optional[WeightManager] = None,
    ) -> None:
        self._config = config or Config.default()
        self._models: List[BaseModel] = build_models(self._config)
        self._weights = weights or WeightManager(self._config.ensemble.weights)
        if self._config.meta.enabled:
            self._meta: Optional[OnlineLogisticMeta] = meta or OnlineLogisticMeta(self._config.meta)
        else:
            self._meta = None
        self._feature_cache: Optional[Tuple[Tuple[int, int], Dict[str, float]]] = None

    @property
    def config(self) -> Config:
        return self._config

    @property
    def meta(self) -> Optional[OnlineLogisticMeta]:
        return self._meta

    def run_models(self, history: Sequence[Round]) -> Dict[str, ModelOutput]:
        return {model.name: model.predict(history) for model in self._models}

    def features(
        self,
        history: Sequence[Round],
        outputs: Optional[Dict[str, ModelOutput]] = None,
    ) -> Dict[str, float]:
        key = (len(history), history[-1].index if history else -1)
        if self._feature_cache is not None and self._feature_cache[0] == key:
            return self._feature_cache[1]
        if outputs is None:
            outputs = self.run_models(history)
        features = extract_features(history, outputs)
        self._feature_cache = (key, features)
        return features

    def forecast(self, history: Sequence[Round]) -> Forecast:
        cfg = self._config.ensemble
        if len(history) < cfg.min_history:
            return self._fallback(history)

        outputs = self.run_models(history)
        weights = self._weights.get_model_weights()
        enabled = set(cfg.enabled_models)

        votes: List[_Vote] = []
        for model in self._models:
            weight = float(weights.get(model.name, 0.0))
            if model.name not in enabled or weight <= 0:
                continue
            out = outputs[model.name]
            votes.append(_Vote(model.name, out.predicted, out.confidence, weight, out.reasons))

        if self._meta is not None:
            # train on the rounds revealed so far before featurizing this prefix
            self._meta.observe(history, self.features)
            p_high = self._meta.predict_probability(self.features(history, outputs))
            predicted = Outcome.HIGH if p_high >= 0.5 else Outcome.LOW
            reason = Reason(ReasonCode.META, {"side": predicted, "probability": round(p_high, 3)})
            votes.append(
                _Vote(
                    META_MODEL,
                    predicted,
                    max(p_high, 1.0 - p_high),
                    float(weights.get(META_MODEL, 0.0)),
                    (reason,),
                )
            )

        if not votes:
            return self._fallback(history)
        return self._fuse(votes)

    def _fuse(self, votes: List[_Vote]) -> Forecast:
        cfg = self._config.ensemble
        mass = {Outcome.HIGH: 0.0, Outcome.LOW: 0.0}
        for vote in votes:
            mass[vote.predicted] += vote.confidence * vote.weight

        total = mass[Outcome.HIGH] + mass[Outcome.LOW]
        predicted = Outcome.HIGH if mass[Outcome.HIGH] >= mass[Outcome.LOW] else Outcome.LOW
        raw = safe_div(mass[predicted], total, 0.5)
        agreeing = [v for v in votes if v.predicted is predicted]
        agreement = len(agreeing) / len(votes)

        confidence = clamp(
            cfg.base_confidence + (raw - 0.5) * cfg.margin_weight + agreement * cfg.agreement_weight,
            cfg.min_confidence,
            cfg.max_confidence,
        )

        reasons: List[Reason] = [
            reason
            for vote in agreeing
            for reason in vote.reasons
            if reason.code is not ReasonCode.INSUFFICIENT_DATA
        ]
        reasons.append(
            Reason(
                ReasonCode.AGREEMENT,
                {"percent": round(agreement * 100), "agreeing": len(agreeing), "voters": len(votes)},
            )
        )

        logger.debug(
            "Ensemble vote",
            predicted=predicted.value,
            confidence=round(confidence, 4),
            agreement=round(agreement, 3),
            voters=len(votes),
        )
        return Forecast(
            predicted=predicted,
            probability=safe_div(mass[Outcome.HIGH], total, 0.5),
            confidence=confidence,
            reasons=tuple(reasons),
            sub_votes=tuple(
                SubVote(v.source, v.predicted, v.confidence * v.weight, v.confidence) for v in votes
            ),
        )

    def _fallback(self, history: Sequence[Round]) -> Forecast:
        cfg = self._config.ensemble
        if history:
            predicted = history[-1].outcome
            lean = cfg.fallback_confidence - 0.5
            probability = 0.5 + lean if predicted is Outcome.HIGH else 0.5 - lean
        else:
            predicted = Outcome.HIGH
            probability = 0.5
        reason = Reason(
            ReasonCode.INSUFFICIENT_DATA,
            {"available": len(history), "required": cfg.min_history},
        )
        return Forecast(
            predicted=predicted,
            probability=probability,
            confidence=cfg.fallback_confidence,
            reasons=(reason,),
        )
