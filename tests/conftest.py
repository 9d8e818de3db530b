"""Shared fixtures for the expo test suite."""

import copy
import threading
from unittest.mock import patch

import pytest

from expo.state import new_state
from expo.utils.validator import validate_requirements

ARTIFACTS = {
    "concept": {
        "concept": "Water as the thread that ties the old city together",
        "narrative": "Source, canal, harbour, future",
        "key_exhibits": ["Ming dynasty canal map", "Harbour crane model", "Flood gauge"],
        "visitor_flow": "Upstream to downstream",
    },
    "spatial": {
        "layout": "Linear sequence of four halls",
        "visitor_route": ["Entrance", "Source hall", "Canal hall", "Harbour hall", "Exit"],
        "zones": [
            {"name": "Source hall", "area": 300.0, "function": "Introduction"},
            {"name": "Canal hall", "area": 500.0, "function": "Core exhibits"},
        ],
        "accessibility": "Step-free route throughout",
    },
    "visual": {
        "color_scheme": ["#1B4965", "#CAE9FF"],
        "typography": "Source Han Sans",
        "brand_elements": ["Wave motif"],
        "visual_style": "Calm, blue, archival",
    },
    "interactive": {
        "technologies": ["projection", "touchscreen"],
        "interactives": [
            {"name": "Flood table", "description": "Projection-mapped sand table", "type": "projection",
             "cost": 180000.0},
        ],
        "technical_requirements": "Two 4K projectors",
    },
    "budget": {
        "breakdown": [
            {"category": "Construction", "amount": 900000.0, "description": "Walls and floors"},
            {"category": "Interactive", "amount": 180000.0, "description": "Flood table"},
        ],
        "total_cost": 1080000.0,
        "recommendations": ["Reuse display cases from the previous show"],
    },
}


def evaluation(overall: float, target: str = "none", feedback: str = "Looks fine") -> dict:
    """A raw gate reply with every dimension scored at `overall`."""
    return {
        "scores": {stage: overall for stage in ARTIFACTS},
        "overall_score": overall,
        "feedback": feedback,
        "revision_target": target,
    }


class StubProducer:
    """Returns canned artifacts and records every (stage, hint) call."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, str | None]] = []
        self._lock = threading.Lock()

    def produce(self, stage, state, hint=None):
        with self._lock:
            self.calls.append((stage, hint))
        if stage in self.fail_on:
            raise RuntimeError(f"{stage} producer exploded")
        return copy.deepcopy(ARTIFACTS[stage])

    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]


class ScriptedGate:
    """Returns the scripted evaluations in order; the last one repeats."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = 0

    def evaluate(self, state):
        item = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        return item(state) if callable(item) else copy.deepcopy(item)


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def emit(self, event, payload):
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def requirements():
    """Raw requirements as a caller would submit them."""
    return {
        "title": "Rivers of the Old City",
        "theme": "Urban water heritage",
        "target_audience": "Families and school groups",
        "venue_space": {"area": 1200, "height": 6, "layout": "Single floor, open plan"},
        "budget": {"total": 1500000, "currency": "CNY"},
        "duration": {"start_date": "2026-05-01", "end_date": "2026-10-31"},
        "special_requirements": ["Bilingual labels"],
    }


@pytest.fixture
def base_state(requirements):
    """Fresh auto-approve state with no artifacts."""
    return new_state("expo-test", validate_requirements(requirements), True, 3)


@pytest.fixture
def complete_state(base_state):
    """State with every artifact present."""
    base_state["artifacts"] = copy.deepcopy(ARTIFACTS)
    return base_state


@pytest.fixture
def producer():
    return StubProducer()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def mock_config(tmp_path):
    """Patch the config singleton with test-friendly values."""
    test_config = {
        "concept_model": "gemini-test",
        "design_model": "gemini-test-design",
        "budget_model": "gemini-test-budget",
        "supervisor_model": "claude-test",
        "max_iterations": 3,
        "auto_approve": True,
        "default_revision_target": "concept",
        "parallel_workers": 2,
        "state_dir": str(tmp_path / "state"),
        "output_path": str(tmp_path / "output" / "report.md"),
        "notify_url": "",
        "notify_timeout": 5,
    }
    with patch("expo.config._config", test_config):
        yield test_config


@pytest.fixture
def artifacts():
    return copy.deepcopy(ARTIFACTS)


@pytest.fixture
def make_eval():
    """Factory for raw gate replies: make_eval(overall, target="none", feedback=...)."""
    return evaluation


@pytest.fixture
def make_gate():
    """Factory for scripted gates: make_gate(eval1, eval2, ...)."""
    return ScriptedGate


@pytest.fixture
def make_producer():
    """Factory for stub producers that fail on the given stages."""
    return StubProducer
