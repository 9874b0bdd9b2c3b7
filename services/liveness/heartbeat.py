"""
Producer liveness beacon.

The producer writes its current time under ``producer-heartbeat`` on load and
then on a fixed interval for as long as the process runs. There is no
teardown: a stale timestamp is the only failure signal.

The consumer never writes the key. Before enabling it asks LivenessMonitor
whether the latest timestamp is younger than the staleness window.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Dict, Optional

from shared.logging.logger import get_logger
from shared.storage.events import PRODUCER_HEARTBEAT_KEY
from shared.storage.shared_store import SharedStore, now_ms

log = get_logger("liveness.heartbeat")

DEFAULT_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_AGE_SECONDS = 10.0


class LivenessStatus(str, Enum):
    ABSENT = "absent"
    STALE = "stale"
    LIVE = "live"


class LivenessBeacon:
    """
    Producer-side heartbeat writer.

    tick() writes once; run() ticks immediately and then every interval
    until the stop event is set.
    """

    def __init__(self, store: SharedStore, *, interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        self.store = store
        self.interval_seconds = max(0.1, float(interval_seconds or DEFAULT_INTERVAL_SECONDS))
        self._last_tick_ms: Optional[int] = None
        self._ticks = 0

    # --------------------------------------------------
    # State Updates
    # --------------------------------------------------

    def tick(self) -> int:
        ts = now_ms()
        try:
            self.store.set(PRODUCER_HEARTBEAT_KEY, ts)
        except Exception as e:
            log.warning(f"Heartbeat write failed: {e}")
            return ts
        self._last_tick_ms = ts
        self._ticks += 1
        return ts

    async def run(self, stop_event: asyncio.Event) -> None:
        self.tick()
        log.info("AutoDarts heartbeat active")

        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass

                if stop_event.is_set():
                    break

                self.tick()
        except asyncio.CancelledError:
            log.debug("Heartbeat cancelled")
            raise

    # --------------------------------------------------
    # Snapshot
    # --------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "last_tick_ms": self._last_tick_ms,
            "ticks": self._ticks,
            "interval_seconds": self.interval_seconds,
        }


class LivenessMonitor:
    """
    Consumer-side point-in-time check of the producer heartbeat.
    """

    def __init__(self, store: SharedStore, *, max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS):
        self.store = store
        self.max_age_ms = int(float(max_age_seconds or DEFAULT_MAX_AGE_SECONDS) * 1000)

    def age_ms(self, now: Optional[int] = None) -> Optional[int]:
        raw = self.store.get(PRODUCER_HEARTBEAT_KEY)
        if raw is None or isinstance(raw, bool):
            return None
        try:
            ts = int(raw)
        except (TypeError, ValueError):
            log.warning(f"Ignoring malformed heartbeat value: {raw!r}")
            return None
        current = now if now is not None else now_ms()
        return current - ts

    def check(self, now: Optional[int] = None) -> LivenessStatus:
        age = self.age_ms(now)
        if age is None:
            log.info("No AutoDarts heartbeat found")
            return LivenessStatus.ABSENT

        if age < self.max_age_ms:
            log.info(f"AutoDarts heartbeat detected: {age} ms ago")
            return LivenessStatus.LIVE

        log.info(f"AutoDarts heartbeat too old: {age} ms ago")
        return LivenessStatus.STALE

    def is_live(self, now: Optional[int] = None) -> bool:
        return self.check(now) is LivenessStatus.LIVE
