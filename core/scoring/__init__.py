"""
Scoring package.

Pure scoring logic for the consumer side: notation parsing, round totals,
competitor identity and the bust/checkout decision. No page access here;
the consumer passes surface readings in.
"""

from .competitor import (
    CompetitorIdentity,
    Resolved,
    Unresolved,
    cached_identity,
    clear_identity,
    resolve_competitor,
)
from .decision import decide_score, is_valid_checkout
from .notation import dart_to_points, round_total

__all__ = [
    "CompetitorIdentity",
    "Resolved",
    "Unresolved",
    "cached_identity",
    "clear_identity",
    "resolve_competitor",
    "decide_score",
    "is_valid_checkout",
    "dart_to_points",
    "round_total",
]
