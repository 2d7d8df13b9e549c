from __future__ import annotations

from typing import Optional, Tuple

# Facing codes follow the numeric keypad: 2=down, 4=left, 6=right, 8=up.
# x increases to the right; y increases downward (screen space).
DOWN = 2
LEFT = 4
RIGHT = 6
UP = 8

NAMES = {
    DOWN: "down",
    LEFT: "left",
    RIGHT: "right",
    UP: "up",
}

CODES = {name: code for code, name in NAMES.items()}


def resolve_facing(token: object) -> Optional[int]:
    """Resolve *token* to a facing code or ``None``.

    Accepts the numeric codes (as int or string) and any unique prefix of the
    direction names, case-insensitively.
    """
    if isinstance(token, bool):
        return None
    if isinstance(token, int):
        return token if token in NAMES else None
    if not isinstance(token, str):
        return None
    t = token.strip().lower()
    if not t:
        return None
    if t.isdigit():
        code = int(t)
        return code if code in NAMES else None
    matches = [code for name, code in CODES.items() if name.startswith(t)]
    if len(matches) == 1:
        return matches[0]
    return None


def orientational_shift(direction: int, forward: int = 0, rightward: int = 0) -> Tuple[int, int]:
    """Rotate a (forward, rightward) offset into map (dx, dy) for *direction*.

    Negative values shift backward or leftward. An unknown facing code
    produces no shift.
    """
    dx = 0
    dy = 0
    if direction == DOWN:
        dx -= rightward
        dy += forward
    elif direction == LEFT:
        dx -= forward
        dy -= rightward
    elif direction == RIGHT:
        dx += forward
        dy += rightward
    elif direction == UP:
        dx += rightward
        dy -= forward
    return dx, dy
