from __future__ import annotations

import pytest

from eventgen.util import coerce_int


@pytest.mark.parametrize(
    "raw, expected",
    [("12", 12), (" 7 ", 7), ("3.9", 3), ("-2.5", -2), (4.0, 4), (9, 9)],
)
def test_coerce_int_truncates_numbers(raw, expected) -> None:
    assert coerce_int(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "  ", None, True, "Slime", "1e999", "-1e999", "inf", "nan", float("inf"), float("nan"), [1]],
)
def test_coerce_int_falls_back_to_default(raw) -> None:
    assert coerce_int(raw, default=-1) == -1
