"""
Telegram Bot API gateway — the notifier.

All outbound messages to students go through this class.
Direct `requests` calls in services or blueprints are FORBIDDEN.

  - One HTTP attempt per call; retry policy lives in the outbox worker
    (NotificationService.deliver_pending), not here.
  - Timeout: TELEGRAM_TIMEOUT seconds (default 10).
  - Circuit breaker: ≥5 failures in 60 s → 30 s pause.
  - Dev mode: when BOT_TOKEN is not configured, messages are logged
    and reported as delivered.

Testability: pass a mock `session` to TelegramGateway() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone

import requests
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

# ── Circuit breaker constants ──────────────────────────────────────────────
_CB_FAILURE_THRESHOLD = 5
_CB_WINDOW_SECONDS = 60
_CB_OPEN_DURATION_SECONDS = 30

_DEFAULT_API_URL = "https://api.telegram.org"
_DEFAULT_TIMEOUT = 10


class GatewayResult:
    """Structured return value from TelegramGateway calls.

    Attributes:
        ok:             True if Telegram accepted the message.
        status_code:    HTTP status code (None if network-level failure).
        data:           Parsed JSON response body, else None.
        error:          Human-readable error message or None.
        duration_ms:    Round-trip latency in milliseconds.
        retry_after:    Seconds until a send can be tried again when the
                        circuit breaker refused it without calling Telegram,
                        else None.
    """

    def __init__(
        self,
        ok: bool,
        status_code: int | None,
        data: dict | None,
        error: str | None,
        duration_ms: int,
        retry_after: int | None = None,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms
        self.retry_after = retry_after

    @property
    def circuit_open(self) -> bool:
        return self.retry_after is not None

    def __repr__(self):
        return f"<GatewayResult ok={self.ok} status={self.status_code} error={self.error!r}>"


class TelegramGateway:
    """Telegram Bot API client.

    Instantiate once at module level (module-level singleton pattern).

    Usage:
        from apprenticeship_registry.integrations.telegram_gateway import telegram_gateway
        result = telegram_gateway.send(user.telegram_id, text)
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session: requests.Session | None = session
        self._cb_failures: list[datetime] = []
        self._cb_open_until: datetime | None = None

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Configuration ────────────────────────────────────────────────────────

    @staticmethod
    def _config(key: str, default=None):
        if not has_app_context():
            return default
        return current_app.config.get(key, default)

    def is_configured(self) -> bool:
        """Check whether a bot token is configured."""
        return bool(self._config("BOT_TOKEN"))

    # ── Circuit breaker ──────────────────────────────────────────────────────

    def _circuit_closed(self) -> bool:
        now = datetime.now(timezone.utc)
        if self._cb_open_until and now < self._cb_open_until:
            logger.warning("Telegram circuit open until %s", self._cb_open_until)
            return False

        window_start = now - timedelta(seconds=_CB_WINDOW_SECONDS)
        self._cb_failures = [f for f in self._cb_failures if f >= window_start]
        if len(self._cb_failures) >= _CB_FAILURE_THRESHOLD:
            self._cb_open_until = now + timedelta(seconds=_CB_OPEN_DURATION_SECONDS)
            logger.error(
                "Telegram circuit opened: %d failures in %ds window",
                len(self._cb_failures), _CB_WINDOW_SECONDS,
            )
            return False
        return True

    def _seconds_until_half_open(self) -> int:
        if not self._cb_open_until:
            return _CB_OPEN_DURATION_SECONDS
        remaining = (self._cb_open_until - datetime.now(timezone.utc)).total_seconds()
        return max(int(remaining) + 1, 1)

    def _record_failure(self) -> None:
        self._cb_failures.append(datetime.now(timezone.utc))

    def _record_success(self) -> None:
        self._cb_failures.clear()
        self._cb_open_until = None

    def reset(self) -> None:
        """Close the circuit and forget failure history (used by tests)."""
        self._record_success()

    # ── Notifier API ─────────────────────────────────────────────────────────

    def send(self, channel_id: str, text: str, parse_mode: str | None = "HTML") -> GatewayResult:
        """Send ``text`` to the chat identified by ``channel_id``.

        Returns:
            GatewayResult — always returns (never raises). Callers check .ok.
        """
        token = self._config("BOT_TOKEN")
        if not token:
            logger.info("Telegram (dev mode): chat_id=%s text=%r", channel_id, text[:80])
            return GatewayResult(ok=True, status_code=None, data={"dev_mode": True},
                                 error=None, duration_ms=0)

        if not self._circuit_closed():
            return GatewayResult(
                ok=False,
                status_code=None,
                data=None,
                error="Circuit breaker is open, Telegram calls temporarily suspended",
                duration_ms=0,
                retry_after=self._seconds_until_half_open(),
            )

        api_url = (self._config("TELEGRAM_API_URL") or _DEFAULT_API_URL).rstrip("/")
        timeout = self._config("TELEGRAM_TIMEOUT", _DEFAULT_TIMEOUT)
        payload = {"chat_id": channel_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        t0 = time.perf_counter()
        try:
            resp = self.session.post(f"{api_url}/bot{token}/sendMessage", json=payload, timeout=timeout)
        except requests.Timeout:
            self._record_failure()
            logger.warning("Telegram sendMessage timed out chat_id=%s", channel_id)
            return GatewayResult(ok=False, status_code=None, data=None,
                                 error=f"Request timed out after {timeout}s",
                                 duration_ms=int(timeout * 1000))
        except requests.RequestException as exc:
            self._record_failure()
            logger.warning("Telegram network error chat_id=%s error=%s", channel_id, exc)
            return GatewayResult(ok=False, status_code=None, data=None,
                                 error=str(exc)[:500], duration_ms=0)
        duration_ms = int((time.perf_counter() - t0) * 1000)

        try:
            data = resp.json() if resp.content else {}
        except ValueError:
            data = {}

        if resp.ok and data.get("ok", True):
            self._record_success()
            return GatewayResult(ok=True, status_code=resp.status_code, data=data,
                                 error=None, duration_ms=duration_ms)

        self._record_failure()
        error = data.get("description") or f"HTTP {resp.status_code}: {resp.text[:500]}"
        logger.warning("Telegram sendMessage failed status=%d chat_id=%s error=%s",
                       resp.status_code, channel_id, error)
        return GatewayResult(ok=False, status_code=resp.status_code, data=data,
                             error=error, duration_ms=duration_ms)


# Module-level singleton
telegram_gateway = TelegramGateway()
