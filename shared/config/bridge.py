from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from shared.logging.logger import get_logger

log = get_logger("shared.config.bridge")

_CONFIG_PATH = Path(__file__).parent / "bridge.json"
_SCHEMA_PATH = Path(__file__).parent / "schemas" / "bridge.schema.json"

DEFAULT_SCORE_SELECTORS = [
    'input[placeholder="Geben Sie eine Punktzahl ein und drücken Sie die Eingabetaste"]',
    'input[inputmode="numeric"][maxlength="3"]',
    'input[type="text"][maxlength="3"]',
]


@dataclass
class AutoDartsConfig:
    dart_span_class: str = "css-1ny2kle"
    # The first two spans of that class are not dart slots
    dart_slot_offset: int = 2
    poll_interval_ms: int = 500


@dataclass
class DartCounterConfig:
    score_selectors: List[str] = field(default_factory=lambda: list(DEFAULT_SCORE_SELECTORS))
    fallback_score_selector: str = 'input[maxlength="3"]'
    remaining_score_selector: str = "app-remaining-score"
    leg_score_block_selector: str = r"app-match-leg-scores div.flex.w-1\/2.flex-col"
    active_turn_selector: str = ".animate-pulse"
    confirm_delay_ms: int = 400


@dataclass
class LivenessConfig:
    interval_seconds: float = 5.0
    max_age_seconds: float = 10.0


@dataclass
class StoreConfig:
    path: str = "shared/state/bridge"
    poll_interval_seconds: float = 0.2


@dataclass
class BrowserConfig:
    profile_dir: str = ".browser"
    headless: bool = False


@dataclass
class BridgeConfig:
    autodarts: AutoDartsConfig = field(default_factory=AutoDartsConfig)
    dartcounter: DartCounterConfig = field(default_factory=DartCounterConfig)
    liveness: LivenessConfig = field(default_factory=LivenessConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    notify: bool = True


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        log.warning(f"bridge.json not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except Exception as e:  # pragma: no cover - defensive
        log.warning(f"Failed to load bridge.json ({e}); using defaults")
        return {}


def _validate(payload: Dict[str, Any], schema_path: Path = _SCHEMA_PATH) -> List[str]:
    if not schema_path.exists():
        log.debug(f"Bridge schema not found at {schema_path}; skipping")
        return []

    try:
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
    except Exception as e:  # pragma: no cover - defensive
        log.warning(f"Failed to load bridge schema ({e}); skipping validation")
        return []

    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))

    messages: List[str] = []
    for err in errors:
        loc = "/".join(str(p) for p in err.path)
        log.warning(f"bridge config validation warning at '{loc}': {err.message}")
        messages.append(f"{loc}: {err.message}")
    return messages


def _as_int(raw: Dict[str, Any], key: str, default: int, *, minimum: int = 0) -> int:
    value = raw.get(key, default)
    try:
        value_int = int(value)
    except Exception:
        log.warning(f"{key} must be an integer; defaulting to {default}")
        return default
    if value_int < minimum:
        log.warning(f"{key} must be >= {minimum}; defaulting to {default}")
        return default
    return value_int


def _as_float(raw: Dict[str, Any], key: str, default: float) -> float:
    value = raw.get(key, default)
    try:
        value_float = float(value)
    except Exception:
        log.warning(f"{key} must be a number; defaulting to {default}")
        return default
    if value_float <= 0:
        log.warning(f"{key} must be positive; defaulting to {default}")
        return default
    return value_float


def _as_bool(raw: Dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if isinstance(value, bool):
        return value
    log.warning(f"{key} must be boolean; defaulting to {str(default).lower()}")
    return default


def _load_autodarts(raw: Optional[Dict[str, Any]]) -> AutoDartsConfig:
    if not isinstance(raw, dict):
        return AutoDartsConfig()

    span_class = raw.get("dart_span_class", AutoDartsConfig.dart_span_class)
    if not isinstance(span_class, str) or not span_class.strip():
        log.warning("dart_span_class must be a non-empty string; using default")
        span_class = AutoDartsConfig.dart_span_class

    return AutoDartsConfig(
        dart_span_class=span_class.strip().lstrip("."),
        dart_slot_offset=_as_int(raw, "dart_slot_offset", AutoDartsConfig.dart_slot_offset),
        poll_interval_ms=_as_int(raw, "poll_interval_ms", AutoDartsConfig.poll_interval_ms, minimum=50),
    )


def _load_dartcounter(raw: Optional[Dict[str, Any]]) -> DartCounterConfig:
    if not isinstance(raw, dict):
        return DartCounterConfig()

    cfg = DartCounterConfig()

    selectors = raw.get("score_selectors")
    if isinstance(selectors, list) and all(isinstance(s, str) and s for s in selectors):
        cfg.score_selectors = list(selectors)
    elif selectors is not None:
        log.warning("score_selectors must be a list of selectors; using defaults")

    for key in (
        "fallback_score_selector",
        "remaining_score_selector",
        "leg_score_block_selector",
        "active_turn_selector",
    ):
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and value:
            setattr(cfg, key, value)
        else:
            log.warning(f"{key} must be a non-empty string; using default")

    cfg.confirm_delay_ms = _as_int(raw, "confirm_delay_ms", DartCounterConfig.confirm_delay_ms)
    return cfg


def _load_liveness(raw: Optional[Dict[str, Any]]) -> LivenessConfig:
    if not isinstance(raw, dict):
        return LivenessConfig()

    return LivenessConfig(
        interval_seconds=_as_float(raw, "interval_seconds", LivenessConfig.interval_seconds),
        max_age_seconds=_as_float(raw, "max_age_seconds", LivenessConfig.max_age_seconds),
    )


def _load_store(raw: Optional[Dict[str, Any]]) -> StoreConfig:
    if not isinstance(raw, dict):
        return StoreConfig()

    path = raw.get("path", StoreConfig.path)
    return StoreConfig(
        path=str(path) if path else StoreConfig.path,
        poll_interval_seconds=_as_float(raw, "poll_interval_seconds", StoreConfig.poll_interval_seconds),
    )


def _load_browser(raw: Optional[Dict[str, Any]]) -> BrowserConfig:
    if not isinstance(raw, dict):
        return BrowserConfig()

    profile_dir = raw.get("profile_dir", BrowserConfig.profile_dir)
    return BrowserConfig(
        profile_dir=str(profile_dir) if profile_dir else BrowserConfig.profile_dir,
        headless=_as_bool(raw, "headless", BrowserConfig.headless),
    )


def _apply_env_overrides(cfg: BridgeConfig) -> BridgeConfig:
    store_path = os.getenv("AD2DC_STORE_PATH")
    if store_path:
        cfg.store.path = store_path

    profile_dir = os.getenv("AD2DC_PROFILE_DIR")
    if profile_dir:
        cfg.browser.profile_dir = profile_dir

    headless = os.getenv("AD2DC_HEADLESS")
    if headless is not None:
        cfg.browser.headless = headless.lower() in {"1", "true", "yes", "on"}

    notify = os.getenv("AD2DC_NOTIFY")
    if notify is not None:
        cfg.notify = notify.lower() in {"1", "true", "yes", "on"}

    return cfg


def load_bridge_config(
    raw: Optional[Dict[str, Any]] = None,
    *,
    path: Optional[Path] = None,
    apply_env: bool = True,
) -> BridgeConfig:
    """
    Load bridge.json into typed settings.

    Schema violations and invalid values are warnings only: the affected
    field falls back to its default so the bridge can still start.
    """
    if raw is None:
        raw = _load_json(path or _CONFIG_PATH)

    if not isinstance(raw, dict):
        raw = {}

    _validate(raw)

    notify = _as_bool(raw, "notify", True) if "notify" in raw else True

    cfg = BridgeConfig(
        autodarts=_load_autodarts(raw.get("autodarts")),
        dartcounter=_load_dartcounter(raw.get("dartcounter")),
        liveness=_load_liveness(raw.get("liveness")),
        store=_load_store(raw.get("store")),
        browser=_load_browser(raw.get("browser")),
        notify=notify,
    )

    if apply_env:
        cfg = _apply_env_overrides(cfg)

    return cfg


def validate_bridge_config(path: Optional[Path] = None) -> List[str]:
    """Return schema violations for a bridge.json document (empty when valid)."""
    raw = _load_json(path or _CONFIG_PATH)
    return _validate(raw)
