"""
Spinning game: a single uniform draw against a fixed win probability.

This is not a provably fair game. The draw only has to be uniform and
independent between calls, so the default source is the OS-backed
``secrets.SystemRandom``, which keeps no shared state to synchronize.
"""

import secrets
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from .config import Settings
from .models import GameOutcome

Draw = Callable[[], float]

_system_random = secrets.SystemRandom()


def system_draw() -> float:
    return _system_random.random()


@dataclass(frozen=True)
class SpinResult:
    outcome: GameOutcome
    multiplier: int
    payout: Decimal

    @property
    def won(self) -> bool:
        return self.outcome == GameOutcome.WIN


def spin(stake: Decimal, settings: Settings, draw: Draw = system_draw) -> SpinResult:
    roll = draw()
    if not 0 <= roll < 1:
        raise ValueError(f"Draw must be in [0, 1), got {roll}")
    if roll < settings.win_probability:
        multiplier = settings.win_multiplier
        return SpinResult(GameOutcome.WIN, multiplier, stake * multiplier)
    return SpinResult(GameOutcome.LOSS, 0, Decimal("0.00"))
