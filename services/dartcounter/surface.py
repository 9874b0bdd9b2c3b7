from __future__ import annotations

import re
from typing import List, Optional

from playwright.async_api import ElementHandle, Page

from shared.config.bridge import DartCounterConfig
from shared.logging.logger import get_logger

log = get_logger("dartcounter.surface")

_NUMERIC = re.compile(r"^\d+$")


class DartCounterSurface:
    """
    DOM access to the DartCounter match page.

    READ:  remaining scores, active-turn cue per competitor
    WRITE: the 3-digit score input (fill + Enter)
    """

    def __init__(self, page: Page, cfg: DartCounterConfig):
        self.page = page
        self.cfg = cfg

    # ------------------------------------------------------------

    async def read_remaining_scores(self) -> List[int]:
        elements = await self.page.query_selector_all(self.cfg.remaining_score_selector)
        scores: List[int] = []
        for el in elements:
            text = ((await el.text_content()) or "").strip()
            scores.append(int(text) if _NUMERIC.match(text) else 0)
        return scores

    async def find_active_competitor(self) -> Optional[int]:
        """
        Return the leg-score block index (0 or 1) showing the active-turn
        pulse, or None when no block shows it.
        """
        blocks = await self.page.query_selector_all(self.cfg.leg_score_block_selector)
        for index, block in enumerate(blocks):
            if await block.query_selector(self.cfg.active_turn_selector):
                return index
        return None

    # ------------------------------------------------------------

    async def find_score_input(self) -> Optional[ElementHandle]:
        for selector in self.cfg.score_selectors:
            el = await self.page.query_selector(selector)
            if el:
                return el
        return await self.page.query_selector(self.cfg.fallback_score_selector)

    async def enter_score(self, score_input: ElementHandle, score: int) -> None:
        await score_input.focus()
        await score_input.fill("")
        await score_input.fill(str(score))
        await score_input.press("Enter")
