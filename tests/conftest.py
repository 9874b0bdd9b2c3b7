from typing import List, Optional

import pytest

from shared.storage.events import EventBus
from shared.storage.shared_store import SharedStore


class FakeDartReader:
    """Replays scripted AutoDarts readings, one per read."""

    def __init__(self, readings):
        self.readings = list(readings)
        self.reads = 0

    async def read_darts(self) -> List[str]:
        self.reads += 1
        if not self.readings:
            return ["-", "-", "-"]
        return self.readings.pop(0)


class FakeScoreInput:
    pass


class FakeElement:
    """Stands in for a Playwright ElementHandle."""

    def __init__(self, text: Optional[str] = "", children=None):
        self.text = text
        self.children = dict(children or {})

    async def text_content(self) -> Optional[str]:
        return self.text

    async def query_selector(self, selector: str):
        return self.children.get(selector)


class FakePage:
    """Answers selector queries from a fixed selector -> elements map."""

    def __init__(self, elements=None):
        self.elements = {k: list(v) for k, v in (elements or {}).items()}
        self.queries: List[str] = []

    async def query_selector_all(self, selector: str):
        self.queries.append(selector)
        return list(self.elements.get(selector, []))

    async def query_selector(self, selector: str):
        self.queries.append(selector)
        found = self.elements.get(selector, [])
        return found[0] if found else None


class FakeDartCounterSurface:
    def __init__(self, scores=None, active: Optional[int] = None, has_input: bool = True):
        self.scores = list(scores or [501, 501])
        self.active = active
        self.has_input = has_input
        self.entered: List[int] = []
        self.guesses = 0

    async def read_remaining_scores(self) -> List[int]:
        return list(self.scores)

    async def find_active_competitor(self) -> Optional[int]:
        self.guesses += 1
        return self.active

    async def find_score_input(self):
        return FakeScoreInput() if self.has_input else None

    async def enter_score(self, score_input, score: int) -> None:
        self.entered.append(score)


class RecordingToggle:
    def __init__(self):
        self.renders: List[bool] = []

    async def render(self, enabled: bool) -> None:
        self.renders.append(enabled)


class RecordingRuntime:
    def __init__(self):
        self.starts = 0
        self.stops = 0

    async def start(self) -> None:
        self.starts += 1

    async def stop(self) -> None:
        self.stops += 1


@pytest.fixture
def store(tmp_path):
    return SharedStore(tmp_path / "store", origin="local")


@pytest.fixture
def peer_store(tmp_path):
    """Second context looking at the same store directory."""
    return SharedStore(tmp_path / "store", origin="peer")


@pytest.fixture
def bus(store):
    return EventBus(store)


@pytest.fixture
def peer_bus(peer_store):
    return EventBus(peer_store)
