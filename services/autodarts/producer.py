import asyncio
from typing import Callable, Optional

from services.autodarts.round_detector import RoundDetector
from shared.darts.models import Round
from shared.logging.logger import get_logger
from shared.storage.events import LATEST_ROUND_KEY, EventBus
from shared.storage.shared_store import now_ms

log = get_logger("autodarts.producer")

DEFAULT_POLL_INTERVAL_MS = 500


class AutoDartsProducer:
    """
    PRODUCER RUNTIME (AutoDarts page)

    RULES:
    - Poll loop exists only while the bridge is enabled
    - Each start() uses a fresh detector (no snapshot survives a disable)
    - A round is published at most once
    """

    def __init__(
        self,
        reader,
        bus: EventBus,
        *,
        is_enabled: Callable[[], bool],
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ):
        self.reader = reader
        self.bus = bus
        self.is_enabled = is_enabled
        self.poll_interval = max(50, int(poll_interval_ms or DEFAULT_POLL_INTERVAL_MS)) / 1000

        self.detector = RoundDetector()
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return

        log.info("AutoDarts producer starting...")
        self.detector = RoundDetector()
        self._task = asyncio.create_task(self._poll_loop())
        log.info("AutoDarts producer active.")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return

        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                log.error(f"Producer loop shutdown error: {e}")

        self.detector.reset()
        log.info("AutoDarts producer stopped.")

    # ------------------------------------------------------------

    async def tick(self) -> Optional[Round]:
        if not self.is_enabled():
            return None

        try:
            reading = await self.reader.read_darts()
        except Exception as e:
            log.warning(f"AutoDarts read failed, skipping tick: {e}")
            return None

        log.debug(f"AD current: {reading}")

        completed = self.detector.observe(reading, now_ms())
        if completed is None:
            return None

        payload = completed.to_payload()
        try:
            self.bus.publish(LATEST_ROUND_KEY, payload)
        except Exception as e:
            log.error(f"Failed to publish round {payload}: {e}")
            return None

        log.info(f"Round published: {payload}")
        return completed

    async def _poll_loop(self) -> None:
        try:
            while True:
                await self.tick()
                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            log.debug("Producer poll loop cancelled")
            raise
