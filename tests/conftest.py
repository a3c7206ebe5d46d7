"""Shared history builders."""

import random

import pytest

from taixiu.core.types import Outcome, Round

HIGH_ROLL = (6, 6, 2)
LOW_ROLL = (1, 2, 4)


def build_history(symbols, start=1):
    """Rounds from a string of H/L symbols, with fixed dice per side."""
    rounds = []
    for offset, symbol in enumerate(symbols):
        outcome = Outcome.from_symbol(symbol)
        dice = HIGH_ROLL if outcome is Outcome.HIGH else LOW_ROLL
        rounds.append(Round(index=start + offset, outcome=outcome, total=sum(dice), dice=dice))
    return rounds


@pytest.fixture
def make_history():
    return build_history


@pytest.fixture
def alternating_history():
    """120 strictly alternating rounds ending in High."""
    return build_history("LH" * 60)


@pytest.fixture
def random_history():
    rng = random.Random(7)
    rounds = []
    for index in range(1, 81):
        dice = tuple(rng.randint(1, 6) for _ in range(3))
        total = sum(dice)
        rounds.append(Round(index=index, outcome=Outcome.from_total(total), total=total, dice=dice))
    return rounds
