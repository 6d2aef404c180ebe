import threading
import time
from types import SimpleNamespace

import pytest

from zulip_notify.event_queue.client import EventQueueClient
from zulip_notify.event_queue.models import Site
from zulip_notify.watcher import SiteWatcher


class FakeTransport:
    """Scripted stand-in for ZulipTransport.

    Each request pops the next scripted response; an Exception instance is
    raised instead of returned. Once the script runs out the transport acts
    like an idle long poll and returns empty batches.
    """

    def __init__(self, responses=None, idle_delay=0.01):
        self.responses = list(responses or [])
        self.requests = []
        self.idle_delay = idle_delay
        self.on_exhausted = None
        self.closed = False
        self._lock = threading.Lock()

    def get(self, endpoint, params=None):
        return self._respond("GET", endpoint, params)

    def post(self, endpoint, params=None):
        return self._respond("POST", endpoint, params)

    def close(self):
        self.closed = True

    def _respond(self, method, endpoint, params):
        with self._lock:
            self.requests.append((method, endpoint, dict(params or {})))
            response = self.responses.pop(0) if self.responses else None

        if response is None:
            if self.on_exhausted:
                self.on_exhausted()
            time.sleep(self.idle_delay)
            return {"result": "success", "events": []}
        if isinstance(response, Exception):
            raise response
        return response


class FakeNotifier:
    enabled = True
    command = "fake-notify"

    def __init__(self):
        self.calls = []

    def available(self):
        return True

    def notify(self, summary, body):
        self.calls.append((summary, body))
        return True


@pytest.fixture
def site():
    return Site(name="rust-lang", user="me@example.com", token="secret")


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def lines():
    return []


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def make_watcher(notifier, lines):
    def build(site, transport, on_exit=None):
        client = EventQueueClient(site, transport)
        return SiteWatcher(site, client, notifier=notifier, output=lines.append, on_exit=on_exit)

    return build


def registered(queue_id="Q1", last_event_id=5):
    return {"result": "success", "msg": "", "queue_id": queue_id, "last_event_id": last_event_id}


def polled(*events):
    return {"result": "success", "msg": "", "events": list(events)}


def heartbeat(event_id):
    return {"id": event_id, "type": "heartbeat"}


def message_event(event_id, flags=(), content="hello", recipient="general", sender="Ferris",
                  timestamp=1700000000, kind=None):
    if kind is None:
        kind = "stream" if isinstance(recipient, str) else "private"
    return {
        "id": event_id,
        "type": "message",
        "flags": list(flags),
        "message": {
            "id": 1000 + event_id,
            "content": content,
            "display_recipient": recipient,
            "sender_full_name": sender,
            "timestamp": timestamp,
            "type": kind,
        },
    }


def api_error(code=None, msg="error"):
    body = {"result": "error", "msg": msg}
    if code is not None:
        body["code"] = code
    return body


@pytest.fixture
def payloads():
    """Builders for API response bodies."""
    return SimpleNamespace(
        registered=registered,
        polled=polled,
        heartbeat=heartbeat,
        message=message_event,
        error=api_error,
    )
