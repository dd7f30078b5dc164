"""
Vidtube Celery Worker Tasks

Asynchronous task definitions for:
- Media purge (object storage cleanup after content deletion)
- Worker health check
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from celery import Celery
from kombu.exceptions import OperationalError

from vidtube.core.config import get_settings
from vidtube.core.exceptions import MediaStorageError

settings = get_settings()
logger = logging.getLogger(__name__)

# ── Celery App ───────────────────────────────────────────────────────────

celery_app = Celery(
    "vidtube",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_always_eager=settings.celery_task_always_eager,
    task_routes={
        "vidtube.workers.tasks.purge_media_task": {"queue": "media"},
    },
)

# ── Periodic Tasks ───────────────────────────────────────────────────────

celery_app.conf.beat_schedule = {
    "health-check-every-minute": {
        "task": "vidtube.workers.tasks.health_check_task",
        "schedule": 60.0,
    },
}


# ── Tasks ────────────────────────────────────────────────────────────────

@celery_app.task(
    name="vidtube.workers.tasks.purge_media_task",
    bind=True,
    max_retries=5,
    default_retry_delay=60,
    acks_late=True,
)
def purge_media_task(self, public_ids: List[str]):
    """Remove stored media objects; failed ids are retried with backoff."""
    from vidtube.services.media.storage import media_storage

    failed = []
    for public_id in public_ids:
        try:
            media_storage.delete_sync(public_id)
        except MediaStorageError as exc:
            logger.warning(f"Media purge failed for {public_id}: {exc.message}")
            failed.append(public_id)

    logger.info(f"Purged {len(public_ids) - len(failed)}/{len(public_ids)} media objects")
    if failed:
        raise self.retry(args=[failed], countdown=60 * (2 ** self.request.retries))
    return {"purged": len(public_ids)}


@celery_app.task(name="vidtube.workers.tasks.health_check_task")
def health_check_task():
    """Periodic health check — ensures workers are alive."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# ── Producers ────────────────────────────────────────────────────────────

def schedule_media_purge(public_ids: Iterable[Optional[str]]) -> bool:
    """Queue removal of the given objects. Returns False when the broker is unreachable."""
    ids = [p for p in public_ids if p]
    if not ids:
        return True
    try:
        purge_media_task.delay(ids)
    except OperationalError as e:
        # Rows are already gone; the objects become orphans for a later sweep
        logger.error(f"Could not queue media purge for {len(ids)} objects: {e}")
        return False
    return True
