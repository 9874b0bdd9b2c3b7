"""
Score decision under double-out rules.

Pure function: the value to enter into the sink for a finished round.
"""

from __future__ import annotations

from typing import Optional, Sequence

from core.scoring.competitor import CompetitorIdentity, Resolved
from core.scoring.notation import BULLSEYE


def is_valid_checkout(total: int, last_dart: Optional[str]) -> bool:
    dart = str(last_dart or "").strip()
    if dart.startswith("D"):
        return True
    return total == BULLSEYE and dart.lower() == "bull"


def decide_score(
    total: int,
    identity: CompetitorIdentity,
    remaining_scores: Sequence[int],
    darts: Sequence[str],
) -> int:
    """
    Return the score to enter for a round.

    Without a resolved competitor slot (or with a slot the sink does not
    show) the raw total is entered and no bust/finish logic applies.
    """
    if not isinstance(identity, Resolved):
        return total

    index = identity.index
    if index < 0 or index >= len(remaining_scores):
        return total

    remaining = remaining_scores[index]

    # bust
    if total > remaining:
        return 0

    # a remainder of 1 cannot be finished on a double
    if remaining - total == 1:
        return 0

    if total == remaining:
        last_dart = darts[2] if len(darts) > 2 else ""
        return total if is_valid_checkout(total, last_dart) else 0

    return total
