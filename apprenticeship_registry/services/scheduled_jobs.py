"""
Apprenticeship Registry
Scheduled Jobs.

Jobs:
    - notification_delivery: drains the outbound message queue
"""

from __future__ import annotations

import logging
from typing import Any

from apprenticeship_registry.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("notification_delivery", every_seconds=30)
def deliver_outbox(app) -> dict[str, Any]:
    """Deliver queued and retry-due student notifications."""
    from apprenticeship_registry.services.notification import NotificationService
    from apprenticeship_registry.services.store import RequestContext

    ctx = RequestContext.from_request()
    batch = app.config.get("NOTIFY_BATCH_SIZE", 50)
    return NotificationService.deliver_pending(ctx, limit=batch)
