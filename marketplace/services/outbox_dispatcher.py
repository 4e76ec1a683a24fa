"""
Lease-based delivery of committed marketplace events.

Rows move pending -> processing (leased) -> done. A lease that outlives
lease_minutes goes back to pending, or to failed once the row has used up
max_attempts, so one poisoned event cannot cycle forever.
"""
import logging
import uuid
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from marketplace.models.outbox import OutboxEvent
from worker.celery_app import celery


log = logging.getLogger(__name__)

PUBLISH_TASK = "worker.tasks.publish_outbox_event"
MAX_ATTEMPTS = 10


def _expired_leases():
    return (
        OutboxEvent.status == "processing",
        OutboxEvent.lease_expires_at.is_not(None),
        OutboxEvent.lease_expires_at < func.now(),
    )


async def requeue_expired_leases(db: AsyncSession, max_attempts: int = MAX_ATTEMPTS) -> int:
    released = dict(lease_id=None, lease_expires_at=None, processing_started_at=None)

    dead = await db.execute(
        update(OutboxEvent)
        .where(*_expired_leases(), OutboxEvent.attempts >= max_attempts)
        .values(status="failed", last_error="lease expired; attempts exhausted", **released)
    )
    if dead.rowcount:
        log.warning("outbox: %d events dead-lettered after %d attempts", dead.rowcount, max_attempts)

    result = await db.execute(
        update(OutboxEvent)
        .where(*_expired_leases())
        .values(status="pending", last_error="requeued: lease expired", **released)
    )
    return int(result.rowcount or 0)


async def claim_outbox_event_ids(db: AsyncSession, batch_size: int = 100, lease_minutes: int = 10) -> tuple[str, list[str]]:
    lease_id = uuid.uuid4().hex

    # oldest first so consumers see a listing's events in commit order
    stmt = (
        select(OutboxEvent.id)
        .where(OutboxEvent.status == "pending")
        .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
        .with_for_update(skip_locked=True)
        .limit(batch_size)
    )
    ids = list((await db.execute(stmt)).scalars().all())
    if not ids:
        return lease_id, []

    await db.execute(
        update(OutboxEvent)
        .where(OutboxEvent.id.in_(ids))
        .values(
            status="processing",
            processing_started_at=func.now(),
            attempts=OutboxEvent.attempts + 1,
            lease_id=lease_id,
            lease_expires_at=func.now() + timedelta(minutes=lease_minutes),
        )
    )
    await db.flush()
    return lease_id, ids


async def dispatch_outbox(db: AsyncSession, batch_size: int = 100, lease_minutes: int = 10) -> int:
    """Claim a batch of pending events and enqueue one publish task per row. Returns the enqueued count."""
    await requeue_expired_leases(db)
    lease_id, ids = await claim_outbox_event_ids(db, batch_size=batch_size, lease_minutes=lease_minutes)

    # workers must see the lease before their task runs
    await db.commit()
    if not ids:
        return 0

    unsent: dict[str, str] = {}
    for outbox_id in ids:
        try:
            celery.send_task(PUBLISH_TASK, args=[outbox_id, lease_id], queue="outbox")
        except Exception as e:
            unsent[outbox_id] = f"{type(e).__name__}: {e}"

    if unsent:
        log.error("outbox: %d of %d events could not be enqueued", len(unsent), len(ids))
        for outbox_id, msg in unsent.items():
            await db.execute(
                update(OutboxEvent)
                .where(OutboxEvent.id == outbox_id, OutboxEvent.lease_id == lease_id)
                .values(
                    status="pending",
                    lease_id=None,
                    lease_expires_at=None,
                    processing_started_at=None,
                    last_error=f"enqueue failed: {msg}",
                )
            )
        await db.commit()

    return len(ids) - len(unsent)
