"""
Competitor identity: which of the two remaining-score slots is ours.

The index is guessed once from the sink's "active turn" cue and then cached
in the shared store for the rest of the session. A cached index is never
re-derived, even if the cue later points elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from shared.logging.logger import get_logger
from shared.storage.events import OWN_COMPETITOR_INDEX_KEY
from shared.storage.shared_store import SharedStore

log = get_logger("core.scoring.competitor")

COMPETITOR_SLOTS = 2


@dataclass(frozen=True)
class Resolved:
    index: int


@dataclass(frozen=True)
class Unresolved:
    reason: str = "no active-turn cue"


CompetitorIdentity = Union[Resolved, Unresolved]


def cached_identity(store: SharedStore) -> Optional[Resolved]:
    raw: Any = store.get(OWN_COMPETITOR_INDEX_KEY)
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return Resolved(int(raw))
    except (TypeError, ValueError):
        log.warning(f"Ignoring malformed cached competitor index: {raw!r}")
        return None


async def resolve_competitor(
    store: SharedStore,
    guess: Callable[[], Awaitable[Optional[int]]],
) -> CompetitorIdentity:
    """
    Return the cached identity, or guess and cache it.

    ``guess`` inspects the sink and returns the slot showing the active-turn
    cue, or None. A failed guess is not cached so the next round retries.
    """
    cached = cached_identity(store)
    if cached is not None:
        return cached

    try:
        index = await guess()
    except Exception as e:
        log.warning(f"Competitor guess failed: {e}")
        return Unresolved(reason=f"guess failed: {e}")

    if index is None:
        log.debug("No active-turn cue found; competitor unresolved")
        return Unresolved()

    if not 0 <= index < COMPETITOR_SLOTS:
        log.warning(f"Active-turn cue in unexpected slot {index}; not caching")
        return Unresolved(reason=f"slot {index} out of range")

    store.set(OWN_COMPETITOR_INDEX_KEY, index)
    log.info(f"Own competitor index set to: {index}")
    return Resolved(index)


def clear_identity(store: SharedStore) -> None:
    """Forget the cached index so a new session guesses again."""
    if store.get(OWN_COMPETITOR_INDEX_KEY) is None:
        return
    store.set(OWN_COMPETITOR_INDEX_KEY, None)
    log.info("Own competitor index cleared for new session")
