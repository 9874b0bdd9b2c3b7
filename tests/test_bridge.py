import asyncio

import pytest

from conftest import FakeDartCounterSurface, RecordingRuntime, RecordingToggle
from core.bridge import BridgeState, BridgeStateMachine
from core.context import BridgeContext, Role
from services.dartcounter.consumer import DartCounterConsumer
from services.liveness.heartbeat import LivenessMonitor
from shared.notifications.notifier import Notifier
from shared.storage.events import (
    DISABLE_TRIGGER_KEY,
    ENABLE_TRIGGER_KEY,
    LATEST_ROUND_KEY,
    PRODUCER_HEARTBEAT_KEY,
)
from shared.storage.shared_store import now_ms

PRODUCER_URL = "http://127.0.0.1:3180/"
CONSUMER_URL = "https://app.dartcounter.net/"


def _bridge(role, bus, *, notifier=None, toggle=None):
    url = PRODUCER_URL if role is Role.PRODUCER else CONSUMER_URL
    ctx = BridgeContext(role=role, url=url, context_id=bus.origin)
    liveness = LivenessMonitor(bus.store) if role is Role.CONSUMER else None
    bridge = BridgeStateMachine(
        ctx,
        bus,
        notifier=notifier or Notifier(),
        liveness=liveness,
        toggle=toggle,
    )
    runtime = RecordingRuntime()
    bridge.bind_runtime(runtime)
    return bridge, runtime


def test_consumer_requires_liveness(bus) -> None:
    ctx = BridgeContext(role=Role.CONSUMER, url=CONSUMER_URL)
    with pytest.raises(ValueError):
        BridgeStateMachine(ctx, bus, notifier=Notifier())


def test_producer_enable_is_unconditional(bus, store) -> None:
    bridge, runtime = _bridge(Role.PRODUCER, bus)

    assert asyncio.run(bridge.request(True)) is True

    assert bridge.state is BridgeState.ENABLED
    assert runtime.starts == 1
    assert store.get(ENABLE_TRIGGER_KEY) is not None


def test_repeated_enable_writes_one_trigger(bus, peer_bus) -> None:
    bridge, runtime = _bridge(Role.PRODUCER, bus)
    seen = []
    peer_bus.subscribe(ENABLE_TRIGGER_KEY, seen.append)

    async def scenario():
        first = await bridge.request(True)
        await peer_bus.store.poll_once()
        second = await bridge.request(True)
        await peer_bus.store.poll_once()
        return first, second

    assert asyncio.run(scenario()) == (True, False)
    assert len(seen) == 1
    assert runtime.starts == 1


def test_disable_while_disabled_is_noop(bus, store) -> None:
    notifier = Notifier()
    bridge, runtime = _bridge(Role.CONSUMER, bus, notifier=notifier)

    assert asyncio.run(bridge.request(False)) is False

    assert store.get(DISABLE_TRIGGER_KEY) is None
    assert runtime.stops == 0
    assert notifier.history == []


def test_consumer_rolls_back_without_heartbeat(bus) -> None:
    notifier = Notifier()
    toggle = RecordingToggle()
    bridge, runtime = _bridge(Role.CONSUMER, bus, notifier=notifier, toggle=toggle)

    asyncio.run(bridge.request(True))

    assert bridge.state is BridgeState.DISABLED
    assert runtime.starts == 0
    assert toggle.renders[-1] is False

    note = notifier.history[-1]
    assert note.title == "AutoDarts not found"
    assert note.urgent is True


def test_consumer_rolls_back_on_stale_heartbeat(bus, store) -> None:
    store.set(PRODUCER_HEARTBEAT_KEY, now_ms() - 11_000)
    bridge, runtime = _bridge(Role.CONSUMER, bus)

    asyncio.run(bridge.request(True))

    assert bridge.state is BridgeState.DISABLED
    assert runtime.starts == 0


def test_consumer_enables_with_live_heartbeat(bus, peer_store) -> None:
    peer_store.set(PRODUCER_HEARTBEAT_KEY, now_ms())
    notifier = Notifier()
    toggle = RecordingToggle()
    bridge, runtime = _bridge(Role.CONSUMER, bus, notifier=notifier, toggle=toggle)

    asyncio.run(bridge.request(True))

    assert bridge.state is BridgeState.ENABLED
    assert runtime.starts == 1
    assert toggle.renders == [True]
    assert notifier.history[-1].text == "ready - waiting for darts from AutoDarts"


def test_consumer_disable_notifies_and_stops(bus, store) -> None:
    store.set(PRODUCER_HEARTBEAT_KEY, now_ms())
    notifier = Notifier()
    bridge, runtime = _bridge(Role.CONSUMER, bus, notifier=notifier)

    async def scenario():
        await bridge.request(True)
        await bridge.toggle()

    asyncio.run(scenario())

    assert bridge.state is BridgeState.DISABLED
    assert runtime.stops == 1
    assert notifier.history[-1].title == "AD2DC-Bridge"
    assert notifier.history[-1].text == "disabled"
    assert store.get(DISABLE_TRIGGER_KEY) is not None


def test_remote_enable_and_disable(bus, store, peer_bus) -> None:
    bridge, runtime = _bridge(Role.PRODUCER, bus)
    bridge.attach()

    peer_bus.publish_trigger(ENABLE_TRIGGER_KEY)
    asyncio.run(store.poll_once())

    assert bridge.state is BridgeState.ENABLED
    assert runtime.starts == 1
    # the transition came from the peer, nothing was written back
    assert store._read_record(ENABLE_TRIGGER_KEY)["origin"] == "peer"

    peer_bus.publish_trigger(DISABLE_TRIGGER_KEY)
    asyncio.run(store.poll_once())

    assert bridge.state is BridgeState.DISABLED
    assert runtime.stops == 1
    assert store._read_record(DISABLE_TRIGGER_KEY)["origin"] == "peer"


def test_remote_enable_on_consumer_checks_heartbeat(bus, store, peer_bus) -> None:
    notifier = Notifier()
    bridge, runtime = _bridge(Role.CONSUMER, bus, notifier=notifier)
    bridge.attach()

    peer_bus.publish_trigger(ENABLE_TRIGGER_KEY)
    asyncio.run(store.poll_once())

    assert bridge.state is BridgeState.DISABLED
    assert notifier.history[-1].urgent is True


def test_own_trigger_echo_is_ignored(bus, store) -> None:
    bridge, runtime = _bridge(Role.PRODUCER, bus)
    bridge.attach()

    async def scenario():
        await bridge.request(True)
        await store.poll_once()

    asyncio.run(scenario())

    assert bridge.state is BridgeState.ENABLED
    assert runtime.starts == 1


def test_trigger_written_before_attach_is_not_replayed(bus, store, peer_bus) -> None:
    peer_bus.publish_trigger(ENABLE_TRIGGER_KEY)

    bridge, runtime = _bridge(Role.PRODUCER, bus)
    bridge.attach()
    asyncio.run(store.poll_once())

    assert bridge.state is BridgeState.DISABLED
    assert runtime.starts == 0


def test_shutdown_writes_no_trigger(bus, store) -> None:
    bridge, runtime = _bridge(Role.PRODUCER, bus)

    async def scenario():
        await bridge.request(True)
        await bridge.shutdown()

    asyncio.run(scenario())

    assert bridge.state is BridgeState.DISABLED
    assert runtime.stops == 1
    assert store.get(DISABLE_TRIGGER_KEY) is None


def test_round_published_while_disabled_is_not_entered_after_reenable(
    bus, store, peer_bus
) -> None:
    store.set(PRODUCER_HEARTBEAT_KEY, now_ms())
    surface = FakeDartCounterSurface(active=0)
    ctx = BridgeContext(role=Role.CONSUMER, url=CONSUMER_URL, context_id=bus.origin)
    notifier = Notifier()
    bridge = BridgeStateMachine(
        ctx, bus, notifier=notifier, liveness=LivenessMonitor(store)
    )
    bridge.bind_runtime(
        DartCounterConsumer(
            surface,
            bus,
            notifier,
            is_enabled=lambda: bridge.enabled,
            confirm_delay_ms=0,
        )
    )
    bridge.attach()

    async def scenario():
        await bridge.request(True)
        peer_bus.publish(LATEST_ROUND_KEY, {"darts": ["S1", "-", "-"], "ts": 1})
        await store.poll_once()

        peer_bus.publish_trigger(DISABLE_TRIGGER_KEY)
        await store.poll_once()
        assert bridge.state is BridgeState.DISABLED

        peer_bus.publish(LATEST_ROUND_KEY, {"darts": ["T20", "T20", "T20"], "ts": 2})

        store.set(PRODUCER_HEARTBEAT_KEY, now_ms())
        await bridge.request(True)
        await store.poll_once()
        await bridge.shutdown()

    asyncio.run(scenario())

    assert surface.entered == [1]
