import asyncio
from typing import Callable, List, Optional, Set

from core.scoring import clear_identity, decide_score, resolve_competitor, round_total
from shared.darts.models import Round
from shared.logging.logger import get_logger
from shared.notifications.notifier import Notifier
from shared.storage.events import LATEST_ROUND_KEY, BridgeEvent, EventBus

log = get_logger("dartcounter.consumer")

DEFAULT_CONFIRM_DELAY_MS = 400


class DartCounterConsumer:
    """
    CONSUMER RUNTIME (DartCounter page)

    RULES:
    - Purely reactive: one round event in, one score entry out
    - A missing score input fails the round, never the bridge
    - The post-entry score read is a log-only confirmation
    """

    def __init__(
        self,
        surface,
        bus: EventBus,
        notifier: Notifier,
        *,
        is_enabled: Callable[[], bool],
        confirm_delay_ms: int = DEFAULT_CONFIRM_DELAY_MS,
    ):
        self.surface = surface
        self.bus = bus
        self.notifier = notifier
        self.is_enabled = is_enabled
        self.confirm_delay = max(0, int(confirm_delay_ms)) / 1000

        self._token: Optional[str] = None
        self._confirm_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------

    @property
    def listening(self) -> bool:
        return self._token is not None

    async def start(self) -> None:
        if self._token is not None:
            return

        log.info("DartCounter consumer starting...")
        self._token = self.bus.subscribe(LATEST_ROUND_KEY, self._on_round_event)

    async def stop(self) -> None:
        if self._token is not None:
            self.bus.unsubscribe(self._token)
            self._token = None
            log.info("DartCounter consumer stopped.")

        pending = [t for t in self._confirm_tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._confirm_tasks.clear()

    def begin_session(self) -> None:
        """Called once per consumer process, before the first enable."""
        clear_identity(self.bus.store)

    # ------------------------------------------------------------

    async def _on_round_event(self, event: BridgeEvent) -> None:
        if not self.is_enabled():
            log.info("Bridge disabled, ignoring round.")
            return

        rnd = Round.from_payload(event.payload)
        if rnd is None:
            log.warning(f"Ignoring round event without darts: {event.payload!r}")
            return

        await self.handle_round(rnd)

    async def handle_round(self, rnd: Round) -> Optional[int]:
        """
        Score one round into DartCounter. Returns the entered value, or None
        when nothing was entered.
        """
        total = round_total(rnd.darts)

        try:
            prev_scores = await self.surface.read_remaining_scores()
        except Exception as e:
            log.warning(f"Failed to read remaining scores: {e}")
            prev_scores = []
        log.info(f"Prev scores: {prev_scores}")

        identity = await resolve_competitor(self.bus.store, self.surface.find_active_competitor)

        score = decide_score(total, identity, prev_scores, rnd.darts)
        log.info(f"Round {list(rnd.darts)} total={total} identity={identity} -> enter {score}")

        try:
            score_input = await self.surface.find_score_input()
        except Exception as e:
            log.warning(f"Score input lookup failed: {e}")
            score_input = None

        if not score_input:
            self.notifier.notify("AD2DC-DartCounter Error", "Score input not found", urgent=True)
            log.error("Score input not found. Check selectors.")
            return None

        try:
            await self.surface.enter_score(score_input, score)
        except Exception as e:
            self.notifier.notify("AD2DC-DartCounter Error", f"Score entry failed: {e}", urgent=True)
            log.error(f"Score entry failed: {e}")
            return None

        log.info(f"Score entered: {score}")
        self._schedule_confirmation()
        return score

    # ------------------------------------------------------------

    def _schedule_confirmation(self) -> None:
        task = asyncio.create_task(self._confirm_scores())
        self._confirm_tasks.add(task)
        task.add_done_callback(self._confirm_tasks.discard)

    async def _confirm_scores(self) -> List[int]:
        await asyncio.sleep(self.confirm_delay)
        try:
            post_scores = await self.surface.read_remaining_scores()
        except Exception as e:
            log.debug(f"Post-entry score read failed: {e}")
            return []
        log.info(f"Post scores: {post_scores}")
        return post_scores
