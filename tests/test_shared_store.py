import asyncio


def test_set_get_roundtrip_between_contexts(store, peer_store) -> None:
    store.set("own-competitor-index", 1)
    assert peer_store.get("own-competitor-index") == 1
    assert peer_store.get("missing", "fallback") == "fallback"


def test_subscriber_sees_only_later_changes(store, peer_store) -> None:
    peer_store.set("latest-round", {"darts": ["S1", "-", "-"], "ts": 1})

    seen = []
    store.subscribe("latest-round", seen.append)

    assert asyncio.run(store.poll_once()) == 0
    assert seen == []

    peer_store.set("latest-round", {"darts": ["S2", "-", "-"], "ts": 2})
    assert asyncio.run(store.poll_once()) == 1

    assert len(seen) == 1
    change = seen[0]
    assert change.new_value["darts"][0] == "S2"
    assert change.old_value["darts"][0] == "S1"
    assert change.remote is True
    assert change.origin == "peer"


def test_own_writes_are_not_remote(store) -> None:
    seen = []
    store.subscribe("enable-trigger", seen.append)

    store.set("enable-trigger", 123)
    asyncio.run(store.poll_once())

    assert seen[0].remote is False


def test_repeated_identical_value_still_notifies(store, peer_store) -> None:
    seen = []
    store.subscribe("enable-trigger", seen.append)

    peer_store.set("enable-trigger", 5)
    asyncio.run(store.poll_once())
    peer_store.set("enable-trigger", 5)
    asyncio.run(store.poll_once())

    assert len(seen) == 2


def test_async_handler_and_failing_handler(store, peer_store) -> None:
    delivered = []

    def broken(change):
        raise RuntimeError("boom")

    async def handler(change):
        delivered.append(change.new_value)

    store.subscribe("latest-round", broken)
    store.subscribe("latest-round", handler)

    peer_store.set("latest-round", {"darts": ["T20"], "ts": 1})
    asyncio.run(store.poll_once())

    assert delivered == [{"darts": ["T20"], "ts": 1}]


def test_unsubscribe_stops_delivery(store, peer_store) -> None:
    seen = []
    token = store.subscribe("latest-round", seen.append)
    store.unsubscribe(token)

    peer_store.set("latest-round", {"darts": ["T20"], "ts": 1})
    asyncio.run(store.poll_once())

    assert seen == []
    assert store.subscribed_keys == []


def test_corrupt_record_reads_as_missing(store) -> None:
    (store.root / "producer-heartbeat.json").write_text("{not json", encoding="utf-8")
    assert store.get("producer-heartbeat") is None


def test_event_bus_trigger_payload(bus, peer_bus) -> None:
    events = []
    peer_bus.subscribe("disable-trigger", events.append)

    ts = bus.publish_trigger("disable-trigger")
    asyncio.run(peer_bus.store.poll_once())

    assert events[0].payload == ts
    assert events[0].remote is True


def test_run_stops_on_event(store, peer_store) -> None:
    seen = []
    store.subscribe("latest-round", seen.append)

    async def scenario():
        stop = asyncio.Event()
        watcher = asyncio.create_task(store.run(stop))
        peer_store.set("latest-round", {"darts": ["D20"], "ts": 9})
        for _ in range(50):
            if seen:
                break
            await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(watcher, timeout=2)

    asyncio.run(scenario())
    assert len(seen) == 1


def test_key_dropped_mid_poll_is_rebaselined_on_resubscribe(store, peer_store) -> None:
    rounds = []
    round_token = store.subscribe("latest-round", rounds.append)

    def stop_listening(change):
        store.unsubscribe(round_token)

    store.subscribe("disable-trigger", stop_listening)

    peer_store.set("latest-round", {"darts": ["S1"], "ts": 1})
    peer_store.set("disable-trigger", 10)
    asyncio.run(store.poll_once())

    peer_store.set("latest-round", {"darts": ["T20"], "ts": 2})
    store.subscribe("latest-round", rounds.append)
    asyncio.run(store.poll_once())

    assert rounds == []
