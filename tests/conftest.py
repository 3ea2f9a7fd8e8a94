"""
Shared fixtures for the ping API tests.

Unit tests never touch Telegram: the probe client is replaced by
FakeProbeClient, which answers each bot with a canned outcome.
"""

import threading

import pytest

from access_lists import BotAllowList, CredentialStore
from health import create_app
from liveness import ALIVE, LivenessService


class FakeProbeClient:
    """Returns canned outcomes per bot and records every call."""

    def __init__(self, outcomes=None, default=ALIVE):
        self.outcomes = dict(outcomes or {})
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def probe(self, bot_identity):
        with self._lock:
            self.calls.append(bot_identity)
        outcome = self.outcomes.get(bot_identity, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def credentials():
    return CredentialStore(["FirstToken", "SecondToken"])


@pytest.fixture
def allow_list():
    return BotAllowList(["@testbot", "@otherbot", "@thirdbot"])


@pytest.fixture
def probe_client():
    return FakeProbeClient()


@pytest.fixture
def service(credentials, allow_list, probe_client):
    return LivenessService(credentials, allow_list, probe_client)


@pytest.fixture
def client(service):
    app = create_app(service)
    app.config["TESTING"] = True
    return app.test_client()
