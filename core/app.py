import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from core.bridge import BridgeStateMachine
from core.context import BridgeContext
from runtime import version as runtime_version
from services.autodarts.producer import AutoDartsProducer
from services.autodarts.reader import AutoDartsReader
from services.browser.browser_client import BrowserClient
from services.browser.toggle_surface import PageToggleSurface
from services.dartcounter.consumer import DartCounterConsumer
from services.dartcounter.surface import DartCounterSurface
from services.liveness.heartbeat import LivenessBeacon, LivenessMonitor
from shared.config.bridge import BridgeConfig, load_bridge_config
from shared.logging.logger import get_logger
from shared.notifications.notifier import Notifier
from shared.storage.events import EventBus
from shared.storage.shared_store import SharedStore

log = get_logger("core.app")


async def main(
    stop_event: asyncio.Event,
    url: str,
    *,
    config_path: Optional[Path] = None,
    start_enabled: bool = False,
):
    # --------------------------------------------------
    # ENV + CONFIG
    # --------------------------------------------------
    load_dotenv()
    log.info("Environment variables loaded")
    log.info(f"{runtime_version.as_string()} booting")

    config: BridgeConfig = load_bridge_config(path=config_path)

    # --------------------------------------------------
    # ROLE (fixed for the process lifetime)
    # --------------------------------------------------
    ctx = BridgeContext.from_url(url)
    log.info(f"Role: {ctx.role.value} (context={ctx.context_id})")

    # --------------------------------------------------
    # CORE SYSTEMS
    # --------------------------------------------------
    store = SharedStore(
        config.store.path,
        origin=ctx.context_id,
        poll_interval=config.store.poll_interval_seconds,
    )
    bus = EventBus(store)
    notifier = Notifier(enabled=config.notify)

    browser = BrowserClient(
        profile_dir=Path(config.browser.profile_dir) / ctx.role.value,
        headless=config.browser.headless,
    )

    tasks: List[asyncio.Task] = []
    bridge: Optional[BridgeStateMachine] = None

    try:
        await browser.start()
        page = await browser.open(url)

        # --------------------------------------------------
        # ROLE RUNTIME
        # --------------------------------------------------
        if ctx.is_producer:
            bridge = BridgeStateMachine(ctx, bus, notifier=notifier)
            bridge.bind_runtime(
                AutoDartsProducer(
                    AutoDartsReader(page, config.autodarts),
                    bus,
                    is_enabled=lambda: bridge.enabled,
                    poll_interval_ms=config.autodarts.poll_interval_ms,
                )
            )

            beacon = LivenessBeacon(store, interval_seconds=config.liveness.interval_seconds)
            tasks.append(asyncio.create_task(beacon.run(stop_event)))
        else:
            toggle = PageToggleSurface(page)
            bridge = BridgeStateMachine(
                ctx,
                bus,
                notifier=notifier,
                liveness=LivenessMonitor(store, max_age_seconds=config.liveness.max_age_seconds),
                toggle=toggle,
            )
            consumer = DartCounterConsumer(
                DartCounterSurface(page, config.dartcounter),
                bus,
                notifier,
                is_enabled=lambda: bridge.enabled,
                confirm_delay_ms=config.dartcounter.confirm_delay_ms,
            )
            consumer.begin_session()
            bridge.bind_runtime(consumer)
            await toggle.install(bridge.toggle)

        bridge.attach()
        tasks.append(asyncio.create_task(store.run(stop_event)))

        if start_enabled:
            await bridge.request(True)

        # --------------------------------------------------
        # BLOCK UNTIL SHUTDOWN SIGNAL
        # --------------------------------------------------
        await stop_event.wait()
        log.info("Shutdown initiated")

    finally:
        # --------------------------------------------------
        # ORDERLY SHUTDOWN (BRIDGE FIRST)
        # --------------------------------------------------
        if bridge is not None:
            try:
                await bridge.shutdown()
            except Exception as e:
                log.warning(f"Bridge shutdown error ignored: {e}")

        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        try:
            await browser.shutdown()
            log.info("Browser shutdown complete")
        except Exception as e:
            log.warning(f"Browser shutdown error ignored: {e}")

        log.info("AD2DC bridge stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        try:
            loop.call_soon_threadsafe(stop_event.set)
        except Exception:
            stop_event.set()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except Exception as e:
        log.debug(f"Signal handlers not installed: {e}")


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Bridge AutoDarts rounds into DartCounter score entry",
    )
    parser.add_argument(
        "--url",
        required=True,
        help="Page this process drives (AutoDarts board manager or app.dartcounter.net)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to bridge.json (default: shared/config/bridge.json)",
    )
    parser.add_argument(
        "--enable",
        action="store_true",
        help="Enable the bridge right after startup",
    )
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    stop_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    _install_signal_handlers(loop, stop_event)

    exit_code = 0
    try:
        loop.run_until_complete(
            main(stop_event, args.url, config_path=args.config, start_enabled=args.enable)
        )

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received, shutdown initiated")
        stop_event.set()

    except RuntimeError as e:
        log.error(f"Startup failed: {e}")
        exit_code = 1

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()

    return exit_code


if __name__ == "__main__":
    sys.exit(run())
