"""Tests for expo.events: notifiers and best-effort delivery."""

import json

import httpx

from expo.events import (
    EVENTS,
    STAGE_STARTED,
    NullNotifier,
    StderrNotifier,
    WebhookNotifier,
    build_notifier,
    safe_emit,
)


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestNotifiers:
    def test_event_names(self):
        assert "waiting_for_human" in EVENTS
        assert len(EVENTS) == 7

    def test_null_notifier(self):
        assert NullNotifier().emit(STAGE_STARTED, {"stage": "concept"}) is None

    def test_stderr_notifier(self, capsys):
        StderrNotifier().emit(STAGE_STARTED, {"workflow_id": "expo-1", "stage": "concept"})
        err = capsys.readouterr().err
        assert "[EXPO] stage_started: stage=concept" in err
        assert "expo-1" not in err

    def test_webhook_posts_json(self):
        received = []

        def handler(request):
            received.append(json.loads(request.content))
            return httpx.Response(204)

        notifier = WebhookNotifier("https://hooks.example.test/expo", client=_client(handler))
        notifier.emit(STAGE_STARTED, {"workflow_id": "expo-1", "stage": "visual"})

        assert received[0]["type"] == "stage_started"
        assert received[0]["data"] == {"workflow_id": "expo-1", "stage": "visual"}
        assert "timestamp" in received[0]

    def test_safe_emit_swallows_delivery_errors(self, capsys):
        notifier = WebhookNotifier(
            "https://hooks.example.test/expo",
            client=_client(lambda request: httpx.Response(500)),
        )
        safe_emit(notifier, STAGE_STARTED, {"stage": "concept"})
        assert "could not deliver 'stage_started'" in capsys.readouterr().err


class TestBuildNotifier:
    def test_stderr_by_default(self, mock_config):
        assert isinstance(build_notifier(), StderrNotifier)

    def test_webhook_when_url_configured(self, mock_config):
        mock_config["notify_url"] = "https://hooks.example.test/expo"
        notifier = build_notifier()
        assert isinstance(notifier, WebhookNotifier)
        assert notifier.url == "https://hooks.example.test/expo"
