from __future__ import annotations

from typing import List

from playwright.async_api import Page

from shared.config.bridge import AutoDartsConfig
from shared.darts.models import DARTS_PER_ROUND
from shared.logging.logger import get_logger

log = get_logger("autodarts.reader")


class AutoDartsReader:
    """
    Reads the current round's dart notations from the AutoDarts board page.

    The darts are rendered as spans sharing one generated CSS class; the dart
    slots start at a fixed offset among those spans.
    """

    def __init__(self, page: Page, cfg: AutoDartsConfig):
        self.page = page
        self.cfg = cfg

    @property
    def selector(self) -> str:
        return f".{self.cfg.dart_span_class}"

    async def read_darts(self) -> List[str]:
        spans = await self.page.query_selector_all(self.selector)

        start = self.cfg.dart_slot_offset
        darts: List[str] = []
        for span in spans[start:start + DARTS_PER_ROUND]:
            text = await span.text_content()
            darts.append((text or "").strip())

        return darts
