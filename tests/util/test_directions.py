from __future__ import annotations

import pytest

from eventgen.util.directions import DOWN, LEFT, RIGHT, UP, orientational_shift, resolve_facing


@pytest.mark.parametrize(
    "direction, expected",
    [
        (DOWN, (-2, 3)),
        (LEFT, (-3, -2)),
        (RIGHT, (3, 2)),
        (UP, (2, -3)),
    ],
)
def test_orientational_shift_rotates_forward_and_rightward(direction, expected) -> None:
    assert orientational_shift(direction, forward=3, rightward=2) == expected


def test_orientational_shift_negative_is_backward() -> None:
    assert orientational_shift(UP, forward=-1) == (0, 1)


def test_unknown_facing_produces_no_shift() -> None:
    assert orientational_shift(5, forward=4, rightward=4) == (0, 0)


def test_resolve_facing_accepts_codes_and_prefixes() -> None:
    assert resolve_facing(8) == UP
    assert resolve_facing("6") == RIGHT
    assert resolve_facing("Dow") == DOWN
    assert resolve_facing("l") == LEFT
    assert resolve_facing("7") is None
    assert resolve_facing(True) is None
    assert resolve_facing("") is None
