"""
Apprenticeship Registry
Tests — Telegram gateway (HTTP client, dev mode, circuit breaker).

The gateway takes an injectable requests.Session; these tests pass a
MagicMock session so no network traffic happens.
"""

from unittest.mock import MagicMock

import pytest
import requests

from apprenticeship_registry.integrations.telegram_gateway import TelegramGateway


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.content = b"{}"
    resp.json.return_value = payload if payload is not None else {"ok": True, "result": {}}
    resp.text = str(payload)
    return resp


@pytest.fixture()
def configured(app, monkeypatch):
    monkeypatch.setitem(app.config, "BOT_TOKEN", "123:ABC")
    monkeypatch.setitem(app.config, "TELEGRAM_API_URL", "https://tg.example")
    monkeypatch.setitem(app.config, "TELEGRAM_TIMEOUT", 5)
    return app


class TestDevMode:

    def test_no_token_logs_and_succeeds(self):
        session = MagicMock()
        gw = TelegramGateway(session=session)
        result = gw.send("100500", "hello")
        assert result.ok is True
        assert result.data == {"dev_mode": True}
        session.post.assert_not_called()
        assert gw.is_configured() is False


class TestSend:

    def test_posts_send_message(self, configured):
        session = MagicMock()
        session.post.return_value = _response()
        gw = TelegramGateway(session=session)

        result = gw.send("100500", "<b>hi</b>", "HTML")

        assert result.ok is True
        session.post.assert_called_once_with(
            "https://tg.example/bot123:ABC/sendMessage",
            json={"chat_id": "100500", "text": "<b>hi</b>", "parse_mode": "HTML"},
            timeout=5,
        )

    def test_api_error_uses_description(self, configured):
        session = MagicMock()
        session.post.return_value = _response(400, {"ok": False, "description": "Bad Request: chat not found"})
        result = TelegramGateway(session=session).send("1", "x")
        assert result.ok is False
        assert result.status_code == 400
        assert result.error == "Bad Request: chat not found"

    def test_ok_false_body_is_failure(self, configured):
        session = MagicMock()
        session.post.return_value = _response(200, {"ok": False, "description": "weird"})
        assert TelegramGateway(session=session).send("1", "x").ok is False

    def test_timeout(self, configured):
        session = MagicMock()
        session.post.side_effect = requests.Timeout()
        result = TelegramGateway(session=session).send("1", "x")
        assert result.ok is False
        assert "timed out" in result.error

    def test_network_error(self, configured):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("connection refused")
        result = TelegramGateway(session=session).send("1", "x")
        assert result.ok is False
        assert "connection refused" in result.error


class TestCircuitBreaker:

    def test_opens_after_repeated_failures(self, configured):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")
        gw = TelegramGateway(session=session)

        for _ in range(5):
            gw.send("1", "x")
        result = gw.send("1", "x")

        assert result.ok is False
        assert "Circuit breaker" in result.error
        assert session.post.call_count == 5

    def test_refused_send_is_marked_circuit_open(self, configured):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")
        gw = TelegramGateway(session=session)

        failures = [gw.send("1", "x") for _ in range(5)]
        refused = gw.send("1", "x")

        assert not any(r.circuit_open for r in failures)
        assert all(r.retry_after is None for r in failures)
        assert refused.circuit_open is True
        assert 1 <= refused.retry_after <= 31

    def test_reset_closes_circuit(self, configured):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")
        gw = TelegramGateway(session=session)
        for _ in range(6):
            gw.send("1", "x")

        gw.reset()
        session.post.side_effect = None
        session.post.return_value = _response()
        assert gw.send("1", "x").ok is True
