"""
Dart notation parsing.

Notations come straight from on-screen text, so anything unexpected scores
0 instead of raising.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from shared.darts.models import is_blank

MULTIPLIERS = {
    "S": 1,
    "D": 2,
    "T": 3,
}

OUTER_BULL = 25
BULLSEYE = 50

_DIGITS = re.compile(r"\d+")


def dart_to_points(notation: Optional[str]) -> int:
    text = str(notation or "").strip()
    if is_blank(text):
        return 0
    if text == "25":
        return OUTER_BULL
    if text.lower() == "bull":
        return BULLSEYE

    multiplier = MULTIPLIERS.get(text[0])
    if multiplier is not None:
        number = text[1:]
        if _DIGITS.fullmatch(number):
            return int(number) * multiplier
        return 0

    if _DIGITS.fullmatch(text):
        return int(text)

    return 0


def round_total(darts: Iterable[Optional[str]]) -> int:
    return sum(dart_to_points(d) for d in darts)
