"""
Cross-context events over the shared store.

A published event is "something happened at T", never current truth: the
stored value is only the payload of the last event for that key. Subscribers
must not read it back as state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from shared.logging.logger import get_logger
from shared.storage.shared_store import SharedStore, StoreChange, now_ms

log = get_logger("shared.events")

# ----------------------------------------------------------------------
# Well-known keys
# ----------------------------------------------------------------------

LATEST_ROUND_KEY = "latest-round"
OWN_COMPETITOR_INDEX_KEY = "own-competitor-index"
PRODUCER_HEARTBEAT_KEY = "producer-heartbeat"
ENABLE_TRIGGER_KEY = "enable-trigger"
DISABLE_TRIGGER_KEY = "disable-trigger"


@dataclass(frozen=True)
class BridgeEvent:
    key: str
    payload: Any
    origin: Optional[str]
    remote: bool


EventHandler = Callable[[BridgeEvent], Union[None, Awaitable[None]]]


class EventBus:
    """
    Typed publish/subscribe pair on top of SharedStore.
    """

    def __init__(self, store: SharedStore):
        self.store = store

    @property
    def origin(self) -> str:
        return self.store.origin

    def publish(self, key: str, payload: Any) -> None:
        log.debug(f"Publishing event {key}: {payload!r}")
        self.store.set(key, payload)

    def publish_trigger(self, key: str) -> int:
        """Publish a bare timestamp event and return the timestamp (ms)."""
        ts = now_ms()
        self.publish(key, ts)
        return ts

    def subscribe(self, key: str, handler: EventHandler) -> str:
        def _adapter(change: StoreChange):
            if change.new_value is None:
                return None
            event = BridgeEvent(
                key=change.key,
                payload=change.new_value,
                origin=change.origin,
                remote=change.remote,
            )
            return handler(event)

        return self.store.subscribe(key, _adapter)

    def unsubscribe(self, token: str) -> None:
        self.store.unsubscribe(token)
