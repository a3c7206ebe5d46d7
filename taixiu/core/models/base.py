from typing import Sequence, Tuple

from taixiu.core.config import Config
from taixiu.core.stats import last_outcome
from taixiu.core.types import ModelOutput, Reason, ReasonCode, Round


class BaseModel:
    name: str
    # rounds needed before the model produces a real opinion
    min_history: int = 1

    def __init__(self, config: Config) -> None:
        self._config = config

    def predict(self, history: Sequence[Round]) -> ModelOutput:
        raise NotImplementedError

    def _fallback(self, history: Sequence[Round], required: int = 0) -> ModelOutput:
        predicted = last_outcome(history)
        reason = Reason(
            ReasonCode.INSUFFICIENT_DATA,
            {"available": len(history), "required": required or self.min_history},
        )
        return ModelOutput(
            model_name=self.name,
            predicted=predicted,
            confidence=0.5,
            reasons=(reason,),
            metrics={"fallback": True},
        )

    def _output(
        self,
        predicted,
        confidence: float,
        reasons: Tuple[Reason, ...],
        **metrics,
    ) -> ModelOutput:
        return ModelOutput(
            model_name=self.name,
            predicted=predicted,
            confidence=float(confidence),
            reasons=tuple(reasons),
            metrics=metrics,
        )
