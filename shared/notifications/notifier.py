"""
User-visible notifications.

Fire-and-forget: a notification never raises into the caller and has no
delivery guarantee. Urgent messages go out at WARNING so they stand out in
the console.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, List

from shared.logging.logger import get_logger

log = get_logger("shared.notifier")

_HISTORY_LIMIT = 50


@dataclass
class Notification:
    title: str
    text: str
    urgent: bool = False
    ts: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )


class Notifier:
    def __init__(self, *, enabled: bool = True):
        self.enabled = enabled
        self._history: Deque[Notification] = deque(maxlen=_HISTORY_LIMIT)

    def notify(self, title: str, text: str, urgent: bool = False) -> None:
        if not self.enabled:
            return

        try:
            note = Notification(title=title, text=text, urgent=urgent)
            self._history.append(note)
            if urgent:
                log.warning(f"[{title}] {text}")
            else:
                log.info(f"[{title}] {text}")
        except Exception as e:  # pragma: no cover - defensive
            log.debug(f"Notification failed: {e}")

    @property
    def history(self) -> List[Notification]:
        return list(self._history)
