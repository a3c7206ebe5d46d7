"""Normalise raw feed rows into ``Round`` records."""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from taixiu.core.log import get_logger
from taixiu.core.types import Outcome, Round

logger = get_logger(__name__)

HIGH_LABELS = frozenset({"t", "tai", "tài", "high", "h", "big"})
LOW_LABELS = frozenset({"x", "xiu", "xỉu", "low", "l", "small"})


def normalize_outcome(value: Any, midpoint: float = 10.5) -> Optional[Outcome]:
    """Map a textual label or a numeric total to an outcome, or ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Outcome):
        return value
    if isinstance(value, (int, float)):
        return Outcome.from_total(value, midpoint)
    text = str(value).strip().lower()
    if text in HIGH_LABELS:
        return Outcome.HIGH
    if text in LOW_LABELS:
        return Outcome.LOW
    try:
        return Outcome.from_total(float(text), midpoint)
    except ValueError:
        return None


class RawRound(BaseModel):
    """One upstream row; accepts the feed's Vietnamese field names and English ones."""

    model_config = ConfigDict(extra="ignore")

    index: int = Field(validation_alias=AliasChoices("Phien", "phien", "index", "session", "id"))
    die1: Optional[int] = Field(
        default=None, ge=1, le=6, validation_alias=AliasChoices("Xuc_xac_1", "xuc_xac_1", "die1")
    )
    die2: Optional[int] = Field(
        default=None, ge=1, le=6, validation_alias=AliasChoices("Xuc_xac_2", "xuc_xac_2", "die2")
    )
    die3: Optional[int] = Field(
        default=None, ge=1, le=6, validation_alias=AliasChoices("Xuc_xac_3", "xuc_xac_3", "die3")
    )
    total: Optional[int] = Field(
        default=None, ge=3, le=18, validation_alias=AliasChoices("Tong", "tong", "total", "sum")
    )
    result: Optional[Any] = Field(
        default=None, validation_alias=AliasChoices("Ket_qua", "ket_qua", "result", "outcome")
    )

    @model_validator(mode="before")
    @classmethod
    def _split_dice(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and isinstance(data.get("dice"), (list, tuple)):
            dice = list(data["dice"])
            if len(dice) != 3:
                raise ValueError("dice must have exactly three faces")
            data = {**data, "die1": dice[0], "die2": dice[1], "die3": dice[2]}
        return data

    @model_validator(mode="after")
    def _check_total(self) -> "RawRound":
        faces = [self.die1, self.die2, self.die3]
        if any(f is not None for f in faces) and not all(f is not None for f in faces):
            raise ValueError("incomplete dice")
        if all(f is not None for f in faces):
            dice_sum = sum(faces)
            if self.total is None:
                self.total = dice_sum
            elif self.total != dice_sum:
                raise ValueError(f"total {self.total} does not match dice sum {dice_sum}")
        return self

    def to_round(self, midpoint: float = 10.5) -> Optional[Round]:
        outcome = normalize_outcome(self.result, midpoint)
        if outcome is None and self.total is not None:
            outcome = Outcome.from_total(self.total, midpoint)
        if outcome is None:
            return None
        dice = None
        if self.die1 is not None:
            dice = (self.die1, self.die2, self.die3)
        return Round(index=self.index, outcome=outcome, total=self.total, dice=dice)


def shape_history(rows: Iterable[Mapping[str, Any]], midpoint: float = 10.5) -> List[Round]:
    """Validate rows, drop malformed ones, de-duplicate by index and sort ascending."""
    by_index: Dict[int, Round] = {}
    skipped = 0
    for row in rows:
        try:
            parsed = RawRound.model_validate(row)
        except ValidationError:
            skipped += 1
            continue
        round_ = parsed.to_round(midpoint)
        if round_ is None:
            skipped += 1
            continue
        by_index[round_.index] = round_

    if skipped:
        logger.debug("Dropped malformed rows", skipped=skipped, kept=len(by_index))
    return [by_index[i] for i in sorted(by_index)]


def extract_rows(payload: Any) -> List[Mapping[str, Any]]:
    """Pull the row list out of a feed payload (bare list or wrapped object)."""
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, Mapping)]
    if isinstance(payload, Mapping):
        for key in ("data", "history", "list", "items", "result"):
            if isinstance(payload.get(key), list):
                return extract_rows(payload[key])
    return []
