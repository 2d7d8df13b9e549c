from __future__ import annotations

import hashlib

__all__ = ["parse_int", "derive_seed_value", "coerce_int"]


def parse_int(value: int | str, *, base: int = 0) -> int:
    """Parse *value* into an integer.

    Parameters
    ----------
    value:
        Integer-like input. Strings honour ``base``; the default ``0`` enables
        prefixes such as ``0x`` for hexadecimal seeds.
    base:
        Radix used for parsing.

    Raises
    ------
    ValueError
        If *value* cannot be interpreted as an integer.
    """

    if isinstance(value, bool):
        raise ValueError("Booleans are not integer literals")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported type for integer parsing: {type(value)!r}")
    try:
        return int(value.strip(), base)
    except ValueError as exc:
        raise ValueError(f"Invalid integer literal: {value!r}") from exc


def coerce_int(value: object, *, default: int = 0) -> int:
    """Best-effort integer conversion used when reading plugin-style arguments.

    Empty strings, ``None`` and anything unparsable yield *default*. Floats
    and numeric strings with a fractional part are truncated toward zero.
    """

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _truncate(value, default)
    if isinstance(value, str):
        token = value.strip()
        if not token:
            return default
        try:
            return int(token)
        except ValueError:
            try:
                return _truncate(float(token), default)
            except ValueError:
                return default
    return default


def _truncate(value: float, default: int) -> int:
    # inf raises OverflowError, nan raises ValueError
    try:
        return int(value)
    except (OverflowError, ValueError):
        return default


def derive_seed_value(*parts: object, bits: int = 64) -> int:
    """Return a stable integer derived from *parts*.

    The parts are joined with ``"::"``, hashed with SHA-256 and truncated to
    the requested bit width, which makes the result suitable for seeding
    ``random.Random`` deterministically.
    """

    joined = "::".join("" if part is None else str(part) for part in parts)
    digest = hashlib.sha256(joined.encode("utf-8")).digest()
    width = max(8, bits // 8)
    return int.from_bytes(digest[:width], "big", signed=False)
