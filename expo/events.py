"""Fire-and-forget progress events.

Delivery is best-effort: a notifier that raises is logged and ignored, it
never changes the course of a run.
"""

import json
import sys
from datetime import datetime, timezone
from typing import Protocol

import httpx

from expo.config import get_config

STAGE_STARTED = "stage_started"
STAGE_COMPLETED = "stage_completed"
STAGE_FAILED = "stage_failed"
QUALITY_SCORED = "quality_scored"
WAITING_FOR_HUMAN = "waiting_for_human"
ITERATION_ADVANCED = "iteration_advanced"
WORKFLOW_COMPLETED = "workflow_completed"

EVENTS = frozenset({
    STAGE_STARTED,
    STAGE_COMPLETED,
    STAGE_FAILED,
    QUALITY_SCORED,
    WAITING_FOR_HUMAN,
    ITERATION_ADVANCED,
    WORKFLOW_COMPLETED,
})


class Notifier(Protocol):
    def emit(self, event: str, payload: dict) -> None: ...


class NullNotifier:
    """Drops every event."""

    def emit(self, event: str, payload: dict) -> None:
        return None


class StderrNotifier:
    """Prints one line per event to stderr."""

    def emit(self, event: str, payload: dict) -> None:
        details = ", ".join(f"{k}={v}" for k, v in payload.items() if k != "workflow_id")
        print(f"[EXPO] {event}: {details}", file=sys.stderr)


class WebhookNotifier:
    """POSTs each event as JSON to a fixed URL."""

    def __init__(self, url: str, timeout: float = 5.0, client: httpx.Client | None = None):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)

    def emit(self, event: str, payload: dict) -> None:
        body = {
            "type": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": payload,
        }
        response = self._client.post(
            self.url,
            content=json.dumps(body, default=str),
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()


def build_notifier() -> Notifier:
    """Return the notifier selected by config: webhook if notify_url is set, else stderr."""
    config = get_config()
    url = (config.get("notify_url") or "").strip()
    if url:
        return WebhookNotifier(url, timeout=float(config.get("notify_timeout", 5)))
    return StderrNotifier()


def safe_emit(notifier: Notifier, event: str, payload: dict) -> None:
    """Emit an event, logging and discarding any delivery error."""
    try:
        notifier.emit(event, payload)
    except Exception as exc:
        print(f"[EXPO] Warning: could not deliver '{event}' event: {exc!r}", file=sys.stderr)
