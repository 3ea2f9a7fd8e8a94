"""
Startup tests for the entry point.

Module-level configuration is monkeypatched per test; the Telegram client
and the Flask app are replaced so nothing leaves the process.
"""

import logging

import pytest

import telepingbot


class FakeProbeClient:
    instances = []

    def __init__(self, api_id, api_hash, session=None, reply_timeout=None, probe_timeout=None):
        self.api_id = api_id
        self.reply_timeout = reply_timeout
        self.probe_timeout = probe_timeout
        self.started = False
        self.stopped = False
        FakeProbeClient.instances.append(self)

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True


class FailingProbeClient(FakeProbeClient):
    def start(self):
        raise ConnectionError("api_id/api_hash combination is invalid")


class FakeApp:
    def __init__(self, service):
        self.service = service
        self.run_kwargs = None

    def run(self, **kwargs):
        self.run_kwargs = kwargs


@pytest.fixture
def configured(tmp_path, monkeypatch):
    bots = tmp_path / "bots.txt"
    bots.write_text("@testbot\n")
    tokens = tmp_path / "tokens.txt"
    tokens.write_text("FirstToken\n")
    monkeypatch.setattr(telepingbot, "API_ID", "12345")
    monkeypatch.setattr(telepingbot, "API_HASH", "0123456789abcdef")
    monkeypatch.setattr(telepingbot, "PORT", "8080")
    monkeypatch.setattr(telepingbot, "REPLY_TIMEOUT", "2")
    monkeypatch.setattr(telepingbot, "PROBE_TIMEOUT", "15")
    monkeypatch.setattr(telepingbot, "BOTS_FILE", str(bots))
    monkeypatch.setattr(telepingbot, "TOKENS_FILE", str(tokens))
    monkeypatch.setattr(telepingbot, "TelegramProbeClient", FakeProbeClient)
    FakeProbeClient.instances = []
    return tmp_path


def _exits_critically(caplog, expected):
    with caplog.at_level(logging.CRITICAL, logger="telepingbot"):
        with pytest.raises(SystemExit) as excinfo:
            telepingbot.main()
    assert excinfo.value.code == 1
    critical = [r.getMessage() for r in caplog.records if r.levelno == logging.CRITICAL]
    assert any(expected in message for message in critical)


class TestMissingSettings:
    def test_missing_api_hash(self, configured, monkeypatch, caplog):
        monkeypatch.setattr(telepingbot, "API_HASH", None)
        _exits_critically(caplog, "TELEPINGBOT_API_HASH")
        assert FakeProbeClient.instances == []

    def test_missing_api_id(self, configured, monkeypatch, caplog):
        monkeypatch.setattr(telepingbot, "API_ID", "")
        _exits_critically(caplog, "TELEPINGBOT_API_ID")


class TestInvalidNumbers:
    @pytest.mark.parametrize("name, value", [
        ("API_ID", "not-a-number"),
        ("PORT", "eighty"),
        ("REPLY_TIMEOUT", "soon"),
        ("PROBE_TIMEOUT", "1s"),
    ])
    def test_unparsable_value_exits(self, configured, monkeypatch, caplog, name, value):
        monkeypatch.setattr(telepingbot, name, value)
        _exits_critically(caplog, f"TELEPINGBOT_{name}")
        assert FakeProbeClient.instances == []


class TestConfigurationFiles:
    def test_invalid_allow_list_exits(self, configured, monkeypatch, caplog):
        bots = configured / "bad_bots.txt"
        bots.write_text("@testbot\nnosigilbot\n")
        monkeypatch.setattr(telepingbot, "BOTS_FILE", str(bots))
        _exits_critically(caplog, "nosigilbot")
        assert FakeProbeClient.instances == []

    def test_missing_tokens_file_exits(self, configured, monkeypatch, caplog):
        monkeypatch.setattr(telepingbot, "TOKENS_FILE", str(configured / "missing.txt"))
        _exits_critically(caplog, "Could not read configuration file")


class TestTelegramConnection:
    def test_connection_failure_exits_and_stops_client(self, configured, monkeypatch, caplog):
        monkeypatch.setattr(telepingbot, "TelegramProbeClient", FailingProbeClient)
        _exits_critically(caplog, "Could not connect to Telegram")
        client, = FakeProbeClient.instances
        assert client.stopped

    def test_successful_start_serves_and_stops(self, configured, monkeypatch):
        apps = []

        def fake_create_app(service):
            apps.append(FakeApp(service))
            return apps[-1]

        monkeypatch.setattr(telepingbot, "create_app", fake_create_app)
        telepingbot.main()

        client, = FakeProbeClient.instances
        assert client.started and client.stopped
        assert client.api_id == 12345
        assert client.reply_timeout == 2.0
        app, = apps
        assert app.run_kwargs["port"] == 8080
        assert app.service.probe_client is client
        assert app.service.credentials.is_valid("FirstToken")
        assert app.service.allow_list.is_allowed("@testbot")
