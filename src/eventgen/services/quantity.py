"""Spawn-quantity formulas.

A batch's goal is computed once from ``(minimum, maximum, kill count)``.
The formula set is closed; each member carries the label designers pick in
the editor so saved configurations keep working.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from eventgen.world.scope import RegionSetShape, Shape

LOG = logging.getLogger(__name__)


class Formula(Enum):
    MAXIMUM = "Maximum"
    UNIFORM_RANDOM = "Random number between Minimum and Maximum"
    AVERAGE_OF_2 = "Average of 2 random numbers between Minimum and Maximum"
    AVERAGE_OF_3 = "Average of 3 random numbers between Minimum and Maximum"
    MAX_MINUS_SLAIN = "Max - Slain"
    MAX_MINUS_SLAIN_DIV_2 = "Max - Slain / 2"
    MAX_MINUS_SLAIN_DIV_3 = "Max - Slain / 3"
    MAX_MINUS_SLAIN_DIV_4 = "Max - Slain / 4"
    MAX_MINUS_SLAIN_DIV_5 = "Max - Slain / 5"
    MAX_MINUS_SLAIN_DIV_6 = "Max - Slain / 6"
    MAX_MINUS_SLAIN_DIV_7 = "Max - Slain / 7"
    MAX_MINUS_SLAIN_DIV_8 = "Max - Slain / 8"
    MAX_MINUS_SLAIN_DIV_9 = "Max - Slain / 9"
    MAX_MINUS_SLAIN_DIV_10 = "Max - Slain / 10"

    @property
    def label(self) -> str:
        return self.value

    @property
    def rolls(self) -> int:
        """Number of uniform samples averaged; 0 for non-random formulas."""
        if self is Formula.UNIFORM_RANDOM:
            return 1
        if self is Formula.AVERAGE_OF_2:
            return 2
        if self is Formula.AVERAGE_OF_3:
            return 3
        return 0

    @property
    def divisor(self) -> int:
        """Kill-count divisor for the Max-minus-slain family; 0 otherwise."""
        if self is Formula.MAX_MINUS_SLAIN:
            return 1
        if self.name.startswith("MAX_MINUS_SLAIN_DIV_"):
            return int(self.name.rsplit("_", 1)[1])
        return 0

    @classmethod
    def parse(cls, token: object, *, strict: bool = False) -> Optional["Formula"]:
        """Resolve an editor label or enum name to a :class:`Formula`.

        Unknown tokens return ``None``, or raise ``ValueError`` when *strict*.
        """
        if isinstance(token, Formula):
            return token
        text = str(token or "").strip()
        if text:
            folded = " ".join(text.split()).lower()
            for member in cls:
                if folded == member.value.lower() or folded == member.name.lower():
                    return member
        if strict:
            raise ValueError(f"Unknown quantity formula: {token!r}")
        return None


@dataclass(frozen=True)
class QuantitySpec:
    minimum: int = 1
    maximum: int = 1
    formula: Formula = Formula.MAXIMUM
    qualifying_name: str = ""

    def normalized(self) -> "QuantitySpec":
        """Return a copy whose minimum never exceeds its maximum."""
        minimum = max(0, int(self.minimum))
        maximum = max(0, int(self.maximum))
        if minimum > maximum:
            minimum = maximum
        if minimum == self.minimum and maximum == self.maximum:
            return self
        return replace(self, minimum=minimum, maximum=maximum)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def uniform_roll(minimum: int, maximum: int, rng: random.Random) -> int:
    # Upper bound is exclusive: maximum itself is never rolled unless min == max.
    return int(math.floor(rng.random() * (maximum - minimum))) + minimum


def average_of_rolls(rolls: int, minimum: int, maximum: int, rng: random.Random) -> int:
    total = 0
    for _ in range(rolls):
        total += uniform_roll(minimum, maximum, rng)
    return _round_half_up(total / rolls)


def resolve_goal(spec: QuantitySpec, kill_count: int, rng: random.Random) -> int:
    """Return the number of units to attempt for one batch."""

    spec = spec.normalized()
    minimum, maximum = spec.minimum, spec.maximum
    formula = spec.formula

    if formula is Formula.UNIFORM_RANDOM:
        goal = uniform_roll(minimum, maximum, rng)
    elif formula.rolls > 1:
        goal = average_of_rolls(formula.rolls, minimum, maximum, rng)
    elif formula.divisor:
        goal = maximum - (max(0, int(kill_count)) // formula.divisor)
    else:
        goal = maximum

    if goal < minimum:
        goal = minimum
    LOG.debug(
        "quantity goal=%s formula=%s min=%s max=%s slain=%s",
        goal,
        formula.name,
        minimum,
        maximum,
        kill_count,
    )
    return goal


def effective_region(shape: Shape) -> int:
    """Region a batch is attributed to: the sole region of a one-region set, else 0."""

    if isinstance(shape, RegionSetShape) and len(shape.regions) == 1:
        region = int(shape.regions[0])
        return region if region > 0 else 0
    return 0
