import asyncio
import logging
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.sql import func

from worker.celery_app import celery
from marketplace.core.config import settings
import marketplace.models  # noqa: F401  # ensures Models are registered
from marketplace.models.outbox import OutboxEvent
from marketplace.services.http_client import EventSinkClient, HttpResult
from marketplace.services.outbox_dispatcher import MAX_ATTEMPTS


log = logging.getLogger(__name__)


def _release(outbox_id: str, lease_id: str, **values):
    return (
        update(OutboxEvent)
        .where(OutboxEvent.id == outbox_id, OutboxEvent.lease_id == lease_id)
        .values(lease_id=None, lease_expires_at=None, **values)
    )


def settle_values(res: HttpResult, attempts: int, max_attempts: int = MAX_ATTEMPTS) -> dict:
    """Column values for a leased row once the sink has answered."""
    if res.ok:
        return {"status": "done", "processed_at": func.now(), "last_error": None}

    error = f"{res.error_code}: {res.error_message}"
    if res.retryable and attempts < max_attempts:
        return {"status": "pending", "processing_started_at": None, "last_error": error}
    if res.retryable:
        error = f"attempts exhausted; {error}"
    return {"status": "failed", "last_error": error}


async def _publish_outbox_event(outbox_id: str, lease_id: str) -> None:
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    client = EventSinkClient(url=settings.event_sink_url)

    try:
        async with Session() as db:
            ev = (await db.execute(select(OutboxEvent).where(OutboxEvent.id == outbox_id))).scalar_one_or_none()
            if not ev:
                return

            # Lease ownership check
            if ev.lease_id != lease_id or ev.status != "processing":
                # Another dispatcher reclaimed it or it's already done.
                return

            res = await client.publish(
                event_id=ev.id,
                event_type=ev.event_type,
                aggregate_type=ev.aggregate_type,
                aggregate_id=ev.aggregate_id,
                payload=ev.payload,
            )

            values = settle_values(res, ev.attempts)
            if values["status"] == "failed":
                log.warning("outbox %s (%s) dead-lettered: %s", outbox_id, ev.event_type, values["last_error"])
            stmt = _release(outbox_id, lease_id, **values)

            result = await db.execute(stmt)
            if result.rowcount == 0:
                # lease lost; do not overwrite
                await db.rollback()
                return
            await db.commit()
    finally:
        await client.aclose()
        await engine.dispose()


@celery.task(name="worker.tasks.publish_outbox_event")
def publish_outbox_event(outbox_id: str, lease_id: str) -> None:
    asyncio.run(_publish_outbox_event(outbox_id, lease_id))
