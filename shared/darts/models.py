"""Round payload schema shared by producer and consumer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

DARTS_PER_ROUND = 3
BLANK_NOTATION = "-"


def is_blank(notation: Optional[str]) -> bool:
    text = str(notation or "").strip()
    return not text or text == BLANK_NOTATION


def pad_darts(darts: Iterable[Optional[str]]) -> Tuple[str, str, str]:
    """
    Normalize a reading to exactly three notations.

    Missing slots and empty text become "-"; extra slots are dropped.
    """
    values = [str(d or "").strip() for d in list(darts)[:DARTS_PER_ROUND]]
    values = [v if v else BLANK_NOTATION for v in values]
    while len(values) < DARTS_PER_ROUND:
        values.append(BLANK_NOTATION)
    return tuple(values)  # type: ignore[return-value]


@dataclass(frozen=True)
class Round:
    darts: Tuple[str, str, str]
    ts: int

    @property
    def last_dart(self) -> str:
        return self.darts[-1]

    def to_payload(self) -> Dict[str, Any]:
        return {"darts": list(self.darts), "ts": self.ts}

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["Round"]:
        """Return None for payloads without a darts list."""
        if not isinstance(payload, dict):
            return None

        darts = payload.get("darts")
        if not isinstance(darts, Sequence) or isinstance(darts, str) or not darts:
            return None

        try:
            ts = int(payload.get("ts") or 0)
        except Exception:
            ts = 0

        return cls(darts=pad_darts(darts), ts=ts)
