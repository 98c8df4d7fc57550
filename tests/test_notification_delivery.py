"""
Apprenticeship Registry
Tests — outbox delivery, retries, worker job and outbox API.

Covers:
    1. retry_delay backoff curve
    2. deliver_pending: success, retry scheduling, dead-lettering,
       deferral while the Telegram circuit is open
    3. POST /outbound-messages/<id>/deliver (200 / 404 / 409 / 502)
    4. Listing + stats endpoints
    5. Scheduler job trigger + CLI command
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from apprenticeship_registry.integrations.telegram_gateway import (
    GatewayResult,
    TelegramGateway,
    telegram_gateway,
)
from apprenticeship_registry.models import db
from apprenticeship_registry.models.notification import OutboundMessage
from apprenticeship_registry.services.notification import NotificationService, retry_delay


def _queue(ctx, channel_id="100500", category="attendance"):
    msg = NotificationService.enqueue(ctx, channel_id=channel_id, text="Заявка подтверждена", category=category)
    ctx.store.commit()
    return msg


def _naive(dt):
    return dt.replace(tzinfo=None)


def _reload(message_id):
    db.session.expire_all()
    return db.session.get(OutboundMessage, message_id)


# ═══════════════════════════════════════════════════════════════════════════
#  TEST CLASS 1: Backoff
# ═══════════════════════════════════════════════════════════════════════════

class TestRetryDelay:

    def test_doubles_per_attempt(self):
        assert retry_delay(1, 30) == timedelta(seconds=30)
        assert retry_delay(2, 30) == timedelta(seconds=60)
        assert retry_delay(3, 30) == timedelta(seconds=120)

    def test_capped_at_one_hour(self):
        assert retry_delay(12, 30) == timedelta(hours=1)


# ═══════════════════════════════════════════════════════════════════════════
#  TEST CLASS 2: deliver_pending
# ═══════════════════════════════════════════════════════════════════════════

class TestDeliverPending:

    def test_sends_due_messages(self, ctx, fake_gateway):
        msg = _queue(ctx)
        gw = fake_gateway()
        now = datetime.now(timezone.utc) + timedelta(seconds=1)

        result = NotificationService.deliver_pending(ctx, gateway=gw, now=now)

        assert result == {"processed": 1, "sent": 1, "failed": 0, "dead": 0, "deferred": 0}
        assert gw.calls == [("100500", "Заявка подтверждена", "HTML")]
        assert _reload(msg.id).status == "sent"

    def test_failure_schedules_retry_with_backoff(self, app, ctx, fake_gateway, monkeypatch):
        monkeypatch.setitem(app.config, "NOTIFY_RETRY_BASE_SECONDS", 10)
        msg = _queue(ctx)
        gw = fake_gateway(ok=False, error="Too Many Requests", status_code=429)
        t0 = datetime.now(timezone.utc) + timedelta(seconds=1)

        first = NotificationService.deliver_pending(ctx, gateway=gw, now=t0)
        assert first["failed"] == 1
        row = _reload(msg.id)
        assert row.status == "failed"
        assert row.attempts == 1
        assert row.last_error == "Too Many Requests"
        assert _naive(row.next_attempt_at) == _naive(t0 + timedelta(seconds=10))

        # Not due yet
        early = NotificationService.deliver_pending(ctx, gateway=gw, now=t0 + timedelta(seconds=5))
        assert early["processed"] == 0

        t1 = t0 + timedelta(seconds=11)
        NotificationService.deliver_pending(ctx, gateway=gw, now=t1)
        row = _reload(msg.id)
        assert row.attempts == 2
        assert _naive(row.next_attempt_at) == _naive(t1 + timedelta(seconds=20))

    def test_dead_after_max_attempts(self, app, ctx, fake_gateway, monkeypatch):
        monkeypatch.setitem(app.config, "NOTIFY_MAX_ATTEMPTS", 2)
        monkeypatch.setitem(app.config, "NOTIFY_RETRY_BASE_SECONDS", 1)
        msg = _queue(ctx)
        gw = fake_gateway(ok=False, error="Forbidden: bot was blocked by the user", status_code=403)
        t0 = datetime.now(timezone.utc) + timedelta(seconds=1)

        NotificationService.deliver_pending(ctx, gateway=gw, now=t0)
        second = NotificationService.deliver_pending(ctx, gateway=gw, now=t0 + timedelta(minutes=5))
        assert second["dead"] == 1
        assert _reload(msg.id).status == "dead"

        later = NotificationService.deliver_pending(ctx, gateway=gw, now=t0 + timedelta(days=1))
        assert later["processed"] == 0
        assert len(gw.calls) == 2

    def test_respects_batch_limit(self, ctx, fake_gateway):
        for i in range(3):
            _queue(ctx, channel_id=str(i))
        gw = fake_gateway()
        result = NotificationService.deliver_pending(
            ctx, gateway=gw, limit=2, now=datetime.now(timezone.utc) + timedelta(seconds=1),
        )
        assert result["processed"] == 2
        assert [c[0] for c in gw.calls] == ["0", "1"]


class _OpenCircuitGateway:
    """Refuses every send the way an open circuit breaker does."""

    def __init__(self, retry_after=30):
        self.retry_after = retry_after
        self.calls = 0

    def send(self, channel_id, text, parse_mode="HTML"):
        self.calls += 1
        return GatewayResult(ok=False, status_code=None, data=None,
                             error="Circuit breaker is open, Telegram calls temporarily suspended",
                             duration_ms=0, retry_after=self.retry_after)


class TestCircuitOpenDeferral:

    def test_open_circuit_defers_without_counting_attempt(self, ctx):
        first, second = _queue(ctx, channel_id="1"), _queue(ctx, channel_id="2")
        second_due = _naive(second.next_attempt_at)
        gw = _OpenCircuitGateway(retry_after=30)
        now = datetime.now(timezone.utc) + timedelta(seconds=1)

        result = NotificationService.deliver_pending(ctx, gateway=gw, now=now)

        assert result == {"processed": 0, "sent": 0, "failed": 0, "dead": 0, "deferred": 1}
        assert gw.calls == 1
        row = _reload(first.id)
        assert row.status == "queued"
        assert row.attempts == 0
        assert row.last_error is None
        assert _naive(row.next_attempt_at) == _naive(now + timedelta(seconds=30))
        untouched = _reload(second.id)
        assert untouched.attempts == 0
        assert _naive(untouched.next_attempt_at) == second_due

    def test_outage_only_charges_messages_that_reached_telegram(self, app, ctx, monkeypatch):
        monkeypatch.setitem(app.config, "BOT_TOKEN", "123:ABC")
        monkeypatch.setitem(app.config, "TELEGRAM_API_URL", "https://tg.example")
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("connection refused")
        gw = TelegramGateway(session=session)
        messages = [_queue(ctx, channel_id=str(i)) for i in range(8)]

        result = NotificationService.deliver_pending(
            ctx, gateway=gw, now=datetime.now(timezone.utc) + timedelta(seconds=1),
        )

        assert session.post.call_count == 5
        assert result["failed"] == 5
        assert result["deferred"] == 1
        attempts = [_reload(m.id).attempts for m in messages]
        assert attempts == [1, 1, 1, 1, 1, 0, 0, 0]
        assert {_reload(m.id).status for m in messages[5:]} == {"queued"}

    def test_manual_deliver_with_open_circuit_returns_502(self, client, ctx):
        msg = _queue(ctx)
        with patch.object(telegram_gateway, "send", return_value=_OpenCircuitGateway().send("", "")):
            res = client.post(f"/api/v1/outbound-messages/{msg.id}/deliver")

        assert res.status_code == 502
        row = _reload(msg.id)
        assert row.attempts == 0
        assert row.status == "queued"


# ═══════════════════════════════════════════════════════════════════════════
#  TEST CLASS 3: Single-message delivery endpoint
# ═══════════════════════════════════════════════════════════════════════════

class TestDeliverEndpoint:

    def test_dev_mode_delivery(self, client, ctx):
        msg = _queue(ctx)
        res = client.post(f"/api/v1/outbound-messages/{msg.id}/deliver")
        assert res.status_code == 200
        assert res.get_json()["status"] == "sent"

        again = client.post(f"/api/v1/outbound-messages/{msg.id}/deliver")
        assert again.status_code == 409

    def test_channel_failure_returns_502(self, client, ctx):
        msg = _queue(ctx)
        failure = GatewayResult(ok=False, status_code=400, data={"ok": False},
                                error="Bad Request: chat not found", duration_ms=3)
        with patch.object(telegram_gateway, "send", return_value=failure):
            res = client.post(f"/api/v1/outbound-messages/{msg.id}/deliver")

        assert res.status_code == 502
        body = res.get_json()
        assert body["code"] == "ERR_DELIVERY_FAILED"
        assert body["details"]["upstream_status"] == 400
        row = _reload(msg.id)
        assert row.status == "failed"
        assert row.attempts == 1

    def test_unknown_message(self, client):
        assert client.post("/api/v1/outbound-messages/9999/deliver").status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
#  TEST CLASS 4: Listing + stats
# ═══════════════════════════════════════════════════════════════════════════

class TestOutboxQueries:

    def test_list_filters(self, client, ctx):
        _queue(ctx, category="attendance")
        _queue(ctx, category="signed")
        res = client.get("/api/v1/outbound-messages?category=signed")
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"][0]["category"] == "signed"

    def test_list_rejects_unknown_status(self, client):
        res = client.get("/api/v1/outbound-messages?status=lost")
        assert res.status_code == 400

    def test_stats(self, client, ctx, fake_gateway):
        _queue(ctx)
        _queue(ctx)
        NotificationService.deliver_pending(
            ctx, gateway=fake_gateway(), limit=1, now=datetime.now(timezone.utc) + timedelta(seconds=1),
        )
        body = client.get("/api/v1/outbound-messages/stats").get_json()
        assert body["by_status"]["sent"] == 1
        assert body["by_status"]["queued"] == 1
        assert body["backlog"] == 1
        assert body["total"] == 2


# ═══════════════════════════════════════════════════════════════════════════
#  TEST CLASS 5: Worker job
# ═══════════════════════════════════════════════════════════════════════════

class TestDeliveryJob:

    def test_trigger_runs_delivery(self, client, ctx):
        msg = _queue(ctx)
        res = client.post("/api/v1/scheduler/jobs/notification_delivery/trigger")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "success"
        assert body["result"]["sent"] == 1
        assert _reload(msg.id).status == "sent"

    def test_jobs_list_records_runs(self, client):
        client.post("/api/v1/scheduler/jobs/notification_delivery/trigger")
        res = client.get("/api/v1/scheduler/jobs")
        job = next(j for j in res.get_json()["items"] if j["job_name"] == "notification_delivery")
        assert job["db_record"]["run_count"] == 1
        assert job["db_record"]["last_run_status"] == "success"

    def test_trigger_unknown_job(self, client):
        assert client.post("/api/v1/scheduler/jobs/nope/trigger").status_code == 404

    def test_cli_single_run(self, app, ctx):
        msg = _queue(ctx)
        result = app.test_cli_runner().invoke(args=["deliver-notifications"])
        assert result.exit_code == 0
        assert result.output.startswith("success")
        assert _reload(msg.id).status == "sent"

    @pytest.mark.parametrize("runs", [1, 2])
    def test_cli_loop_stops_after_max_runs(self, app, runs):
        result = app.test_cli_runner().invoke(
            args=["deliver-notifications", "--loop", "--interval", "0", "--max-runs", str(runs)],
        )
        assert result.exit_code == 0
        assert f"after {runs} run(s)" in result.output
