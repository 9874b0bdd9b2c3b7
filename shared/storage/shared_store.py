"""
Cross-process key/value store for the bridge.

Producer and consumer run in separate processes (one browser page each), so
the store is a directory of JSON documents, one per key. Writes are atomic
(temp file + replace). Change notification is delivered by a polling watcher
that compares the per-write sequence id of every subscribed key.

Each record carries the writer's origin id; notifications expose a
``remote`` flag so a context can tell its own writes from a peer's.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import os
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from shared.logging.logger import get_logger

log = get_logger("shared.shared_store")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StoreChange:
    key: str
    old_value: Any
    new_value: Any
    origin: Optional[str]
    remote: bool


StoreHandler = Callable[[StoreChange], Union[None, Awaitable[None]]]


@dataclass
class _Subscription:
    token: str
    key: str
    handler: StoreHandler


def write_atomic(path: Path, payload: Any) -> None:
    serialized = json.dumps(payload, indent=2)
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        "w", dir=path.parent, delete=False, encoding="utf-8", suffix=".tmp"
    ) as tmp:
        tmp.write(serialized)
        tmp.flush()
        os.fsync(tmp.fileno())
        temp_path = Path(tmp.name)

    temp_path.replace(path)


class SharedStore:
    """
    File-backed store visible to every bridge process that points at the
    same directory.

    - set/get are synchronous (small documents, local disk)
    - subscribe() registers a handler; handlers only see changes that
      happen after they subscribed
    - poll_once() / run() drive change notification
    """

    def __init__(
        self,
        root: Path | str,
        *,
        origin: Optional[str] = None,
        poll_interval: float = 0.2,
    ) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.origin = origin or uuid.uuid4().hex
        self.poll_interval = max(0.05, float(poll_interval or 0.2))

        self._subscriptions: Dict[str, _Subscription] = {}

        # key -> (seq, value) last delivered to subscribers
        self._seen: Dict[str, tuple] = {}
        self._running = False

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.root / f"{key}.json"

    def _read_record(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
        except Exception as e:
            log.warning(f"Failed to read store key '{key}': {e}")
            return None
        if not isinstance(record, dict) or "seq" not in record:
            log.warning(f"Store key '{key}' has an invalid record; ignoring")
            return None
        return record

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        record = {
            "value": value,
            "origin": self.origin,
            "written_at": now_ms(),
            "seq": uuid.uuid4().hex,
        }
        write_atomic(self._path(key), record)
        log.debug(f"Store set {key} = {value!r}")

    def get(self, key: str, default: Any = None) -> Any:
        record = self._read_record(key)
        if record is None:
            return default
        return record.get("value", default)

    def subscribe(self, key: str, handler: StoreHandler) -> str:
        self._path(key)

        # first live subscriber for a key takes a fresh baseline
        if not self._has_subscribers(key):
            record = self._read_record(key)
            if record is not None:
                self._seen[key] = (record.get("seq"), record.get("value"))
            else:
                self._seen[key] = (None, None)

        token = uuid.uuid4().hex
        self._subscriptions[token] = _Subscription(token=token, key=key, handler=handler)
        log.debug(f"Subscribed to store key '{key}' (token={token[:8]})")
        return token

    def unsubscribe(self, token: str) -> None:
        sub = self._subscriptions.pop(token, None)
        if sub is None:
            return
        log.debug(f"Unsubscribed from store key '{sub.key}' (token={token[:8]})")
        if not self._has_subscribers(sub.key):
            self._seen.pop(sub.key, None)

    def _has_subscribers(self, key: str) -> bool:
        return any(s.key == key for s in self._subscriptions.values())

    @property
    def subscribed_keys(self) -> List[str]:
        return sorted({s.key for s in self._subscriptions.values()})

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    async def poll_once(self) -> int:
        """
        Check every subscribed key once and dispatch changes.

        Handlers for a key run to completion (awaited in order) before the
        next change is dispatched. Returns the number of changes dispatched.
        """
        dispatched = 0

        for key in self.subscribed_keys:
            # an earlier handler in this pass may have unsubscribed the key
            if not self._has_subscribers(key):
                continue

            record = self._read_record(key)
            if record is None:
                continue

            seq = record.get("seq")
            old_seq, old_value = self._seen.get(key, (None, None))
            if seq == old_seq:
                continue

            new_value = record.get("value")
            self._seen[key] = (seq, new_value)

            origin = record.get("origin")
            change = StoreChange(
                key=key,
                old_value=old_value,
                new_value=new_value,
                origin=origin,
                remote=origin != self.origin,
            )

            handlers = [s.handler for s in list(self._subscriptions.values()) if s.key == key]
            for handler in handlers:
                try:
                    result = handler(change)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    log.error(f"Store handler for '{key}' failed: {e}")

            dispatched += 1

        return dispatched

    async def run(self, stop_event: asyncio.Event) -> None:
        if self._running:
            log.warning("Store watcher already running; ignoring duplicate start")
            return

        self._running = True
        log.info(f"Store watcher started for {self.root}")

        try:
            while not stop_event.is_set():
                await self.poll_once()

                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            log.info(f"Store watcher stopped for {self.root}")
