"""
Bridge enable/disable state machine.

Each process holds its own enablement. Only transitions travel between
processes, as timestamped trigger events under ``enable-trigger`` /
``disable-trigger``; a late-joining process sees future transitions, never
past state.

    DISABLED --request(True) / remote enable--> ENABLING
    ENABLING --producer, or consumer with live heartbeat--> ENABLED
    ENABLING --consumer, heartbeat absent/stale--> DISABLED (rollback)
    ENABLING/ENABLED --request(False) / remote disable--> DISABLED

Only local requests write triggers. A request matching the current target
is a no-op.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Protocol

from core.context import BridgeContext
from services.liveness.heartbeat import LivenessMonitor
from shared.logging.logger import get_logger
from shared.notifications.notifier import Notifier
from shared.storage.events import (
    DISABLE_TRIGGER_KEY,
    ENABLE_TRIGGER_KEY,
    BridgeEvent,
    EventBus,
)

log = get_logger("core.bridge")

NOTIFY_TITLE = "AD2DC-Bridge"


class BridgeState(str, Enum):
    DISABLED = "disabled"
    ENABLING = "enabling"
    ENABLED = "enabled"


class RoleRuntime(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class ToggleSurface(Protocol):
    async def render(self, enabled: bool) -> None: ...


class BridgeStateMachine:
    def __init__(
        self,
        ctx: BridgeContext,
        bus: EventBus,
        *,
        notifier: Notifier,
        liveness: Optional[LivenessMonitor] = None,
        toggle: Optional[ToggleSurface] = None,
    ):
        self.ctx = ctx
        self.bus = bus
        self.notifier = notifier
        self.liveness = liveness
        self.toggle_surface = toggle

        self.runtime: Optional[RoleRuntime] = None
        self._state = BridgeState.DISABLED
        self._tokens: List[str] = []

        if ctx.is_consumer and liveness is None:
            raise ValueError("Consumer bridge requires a liveness monitor")

    # ------------------------------------------------------------
    # State
    # ------------------------------------------------------------

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is BridgeState.ENABLED

    @property
    def requested(self) -> bool:
        """True when enablement is requested or active (ENABLING or ENABLED)."""
        return self._state is not BridgeState.DISABLED

    def bind_runtime(self, runtime: RoleRuntime) -> None:
        self.runtime = runtime

    # ------------------------------------------------------------
    # Cross-context triggers
    # ------------------------------------------------------------

    def attach(self) -> None:
        if self._tokens:
            return
        self._tokens.append(self.bus.subscribe(ENABLE_TRIGGER_KEY, self._on_enable_trigger))
        self._tokens.append(self.bus.subscribe(DISABLE_TRIGGER_KEY, self._on_disable_trigger))

    def detach(self) -> None:
        for token in self._tokens:
            self.bus.unsubscribe(token)
        self._tokens.clear()

    async def _on_enable_trigger(self, event: BridgeEvent) -> None:
        if not event.remote:
            return
        if self._state is not BridgeState.DISABLED:
            return
        log.info("Bridge enable triggered from another context")
        await self._enable()

    async def _on_disable_trigger(self, event: BridgeEvent) -> None:
        if not event.remote:
            return
        if self._state is BridgeState.DISABLED:
            return
        log.info("Bridge disable triggered from another context")
        await self._disable()

    # ------------------------------------------------------------
    # Local actions
    # ------------------------------------------------------------

    async def request(self, enabled: bool) -> bool:
        """
        Apply a local enable/disable request.

        Returns False when the request was redundant (no trigger written,
        no transition, no notification).
        """
        if bool(enabled) == self.requested:
            return False

        trigger_key = ENABLE_TRIGGER_KEY if enabled else DISABLE_TRIGGER_KEY
        try:
            self.bus.publish_trigger(trigger_key)
        except Exception as e:
            log.warning(f"Failed to publish {trigger_key}: {e}")

        if enabled:
            await self._enable()
        else:
            await self._disable()
        return True

    async def toggle(self) -> bool:
        return await self.request(not self.requested)

    # ------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------

    async def _enable(self) -> None:
        self._state = BridgeState.ENABLING

        if self.ctx.is_consumer:
            if not self.liveness.is_live():
                self._state = BridgeState.DISABLED
                await self._render()
                self.notifier.notify(
                    "AutoDarts not found",
                    "Please open AutoDarts at http://127.0.0.1:3180 or "
                    "http://192.168.x.x:3180 first in a second browser instance.",
                    urgent=True,
                )
                log.info("Bridge enable failed: AutoDarts not ready")
                return

            self._state = BridgeState.ENABLED
            log.info("Bridge state: ON")
            self.notifier.notify(NOTIFY_TITLE, "ready - waiting for darts from AutoDarts")
        else:
            self._state = BridgeState.ENABLED
            log.info("Bridge enabled - AutoDarts producer starting")

        await self._render()

        # a disable may have landed while the toggle was re-rendering
        if self._state is not BridgeState.ENABLED:
            return
        await self._start_runtime()

    async def _disable(self) -> None:
        self._state = BridgeState.DISABLED

        if self.ctx.is_consumer:
            self.notifier.notify(NOTIFY_TITLE, "disabled")

        await self._stop_runtime()
        await self._render()
        log.info("Bridge state: OFF")

    async def shutdown(self) -> None:
        """Stop locally without telling other contexts."""
        self.detach()
        if self._state is not BridgeState.DISABLED:
            self._state = BridgeState.DISABLED
            await self._stop_runtime()

    # ------------------------------------------------------------

    async def _start_runtime(self) -> None:
        if self.runtime is None:
            return
        try:
            await self.runtime.start()
        except Exception as e:
            log.error(f"Failed to start {self.ctx.role.value} runtime: {e}")

    async def _stop_runtime(self) -> None:
        if self.runtime is None:
            return
        try:
            await self.runtime.stop()
        except Exception as e:
            log.warning(f"{self.ctx.role.value} runtime stop error ignored: {e}")

    async def _render(self) -> None:
        if self.toggle_surface is None:
            return
        try:
            await self.toggle_surface.render(self.enabled)
        except Exception as e:
            log.debug(f"Toggle render failed: {e}")
