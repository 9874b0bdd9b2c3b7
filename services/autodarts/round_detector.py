"""
Round-completion detection on polled AutoDarts text.

AutoDarts shows the current round's darts as transient text that fills in
dart by dart and blanks to "-" once the round is scored. Completion is
inferred from that blanking:

    IDLE        -- any dart shown -->  COLLECTING(snapshot)
    COLLECTING  -- any dart shown -->  COLLECTING(new snapshot)
    COLLECTING  -- all blank      -->  IDLE, emit Round(snapshot)
    IDLE        -- all blank      -->  IDLE

Known gap: a round of three misses never leaves IDLE, so it is never
emitted. The display offers no other turn-end signal to key off.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Tuple

from shared.darts.models import Round, is_blank, pad_darts
from shared.logging.logger import get_logger

log = get_logger("autodarts.round_detector")


class DetectorState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"


class RoundDetector:
    def __init__(self):
        self._state = DetectorState.IDLE
        self._snapshot: Optional[Tuple[str, str, str]] = None
        self._rounds_emitted = 0

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def snapshot(self) -> Optional[Tuple[str, str, str]]:
        return self._snapshot

    @property
    def rounds_emitted(self) -> int:
        return self._rounds_emitted

    def reset(self) -> None:
        self._state = DetectorState.IDLE
        self._snapshot = None

    def observe(self, reading: Iterable[Optional[str]], now: int) -> Optional[Round]:
        """
        Feed one poll reading; return a Round when this reading completes one.
        """
        darts = pad_darts(reading)

        if any(not is_blank(d) for d in darts):
            # The display updates dart by dart, so keep the latest view
            self._snapshot = darts
            self._state = DetectorState.COLLECTING
            return None

        if self._state is not DetectorState.COLLECTING or self._snapshot is None:
            return None

        completed = Round(darts=self._snapshot, ts=int(now))
        self.reset()
        self._rounds_emitted += 1
        return completed
