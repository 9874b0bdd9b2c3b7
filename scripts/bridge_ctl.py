"""
======================================================================
 AD2DC Bridge — Version v1.1.0 (Build 2026.10)
======================================================================
"""
from __future__ import annotations

"""
Control the bridge from a terminal.

Usage:
    python scripts/bridge_ctl.py enable
    python scripts/bridge_ctl.py disable
    python scripts/bridge_ctl.py status

enable/disable publish a trigger event that every running bridge process
reacts to, exactly like a click on the page toggle. status reads the
producer heartbeat and the cached competitor index without changing
anything.
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from services.liveness.heartbeat import LivenessMonitor
from shared.config.bridge import load_bridge_config
from shared.logging.logger import get_logger
from shared.storage.events import (
    DISABLE_TRIGGER_KEY,
    ENABLE_TRIGGER_KEY,
    LATEST_ROUND_KEY,
    OWN_COMPETITOR_INDEX_KEY,
    EventBus,
)
from shared.storage.shared_store import SharedStore

log = get_logger("scripts.bridge_ctl", runtime="bridge_ctl")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AD2DC bridge control")
    parser.add_argument(
        "command",
        choices=["enable", "disable", "status"],
        help="Trigger to publish, or status to inspect the shared store",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=None,
        help="Shared store directory (default: from bridge.json / AD2DC_STORE_PATH)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    load_dotenv()
    config = load_bridge_config()

    store_path = args.store or Path(config.store.path)
    store = SharedStore(store_path, origin="bridge-ctl")

    if args.command == "status":
        monitor = LivenessMonitor(store, max_age_seconds=config.liveness.max_age_seconds)
        status = monitor.check()
        age = monitor.age_ms()

        print(f"store:            {store_path}")
        print(f"producer:         {status.value}" + (f" ({age} ms ago)" if age is not None else ""))
        index = store.get(OWN_COMPETITOR_INDEX_KEY)
        print(f"competitor index: {index if index is not None else 'unresolved'}")
        print(f"latest round:     {store.get(LATEST_ROUND_KEY, '-')}")
        return 0

    bus = EventBus(store)
    key = ENABLE_TRIGGER_KEY if args.command == "enable" else DISABLE_TRIGGER_KEY
    ts = bus.publish_trigger(key)
    log.info(f"Published {key} at {ts} into {store_path}")
    print(f"Published {key} at {ts}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
