"""
======================================================================
 AD2DC Bridge — Version v1.1.0 (Build 2026.10)
======================================================================
"""
from __future__ import annotations

"""
Configuration validation script.

Validates shared/config/bridge.json (or --path) against the bridge schema.

Design rules:
- No side effects on import
- No runtime startup
- Validation only (no mutation)
"""

import argparse
import json
import sys
from pathlib import Path

from shared.config.bridge import validate_bridge_config


# ------------------------------------------------------------
# Paths
# ------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG = ROOT / "shared" / "config" / "bridge.json"


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Validate bridge.json")
    parser.add_argument("--path", type=Path, default=DEFAULT_CONFIG)
    args = parser.parse_args(argv)

    path: Path = args.path
    if not path.exists():
        _error(f"{path} not found")
        return 1

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        _error(f"{path.name}: invalid JSON ({e})")
        return 1

    if not isinstance(data, dict):
        _error(f"{path.name}: root JSON value must be an object")
        return 1

    problems = validate_bridge_config(path)
    for problem in problems:
        _error(f"{path.name}: {problem}")

    if problems:
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
