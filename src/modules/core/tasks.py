"""Async tasks for the core module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.dispatch_outbox_events")
def dispatch_outbox_events(batch_size: int | None = None) -> dict:
    """Publish dispatchable outbox rows on the in-process event bus.

    Each row is handled independently: a failing handler marks that row
    ``FAILED`` (to be retried on the next run) and the batch continues.
    """
    limit = batch_size or settings.OUTBOX_DISPATCH_BATCH_SIZE
    events = list(
        OutboxEvent.objects.dispatchable(settings.OUTBOX_MAX_RETRIES)[:limit]
    )
    published = failed = 0

    for outbox_event in events:
        log = logger.bind(
            outbox_id=str(outbox_event.id),
            event_type=outbox_event.event_type,
            aggregate_id=outbox_event.aggregate_id,
        )
        try:
            event = DomainEvent.from_payload(outbox_event.event_type, outbox_event.payload)
            event_bus.publish(event)
        except Exception as exc:
            outbox_event.mark_as_failed(f"{exc.__class__.__name__}: {exc}")
            log.warning("outbox.event_failed", error=str(exc), retry_count=outbox_event.retry_count)
            failed += 1
            continue
        outbox_event.mark_as_published()
        log.info("outbox.event_published")
        published += 1

    return {"published": published, "failed": failed}
