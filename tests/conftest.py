"""Shared fixtures for the fair dice tests."""

import pytest

from fair_dice import Die, DiceSet, EntropySource


class FixedEntropy(EntropySource):
    """Entropy source that always draws the same secret, for scripted games."""

    def __init__(self, secret: int = 0):
        super().__init__()
        self.secret = secret

    def randint(self, low: int, high: int) -> int:
        return min(max(self.secret, low), high)

    def choice(self, seq):
        return seq[0]


@pytest.fixture
def classic_dice() -> DiceSet:
    return DiceSet.from_args(["2,2,4,4,9,9", "1,1,6,6,8,8", "3,3,5,5,7,7"])


@pytest.fixture
def die_a(classic_dice) -> Die:
    return classic_dice[0]


@pytest.fixture
def die_b(classic_dice) -> Die:
    return classic_dice[1]


@pytest.fixture
def die_c(classic_dice) -> Die:
    return classic_dice[2]


@pytest.fixture
def fixed_entropy():
    return FixedEntropy
