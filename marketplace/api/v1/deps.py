from datetime import timedelta

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.db import get_db
from marketplace.domain.outcome import ErrorKind, Outcome
from marketplace.schemas.common import EventOut, OutcomeOut
from marketplace.services.marketplace import MarketplaceService
from marketplace.services.sql_storage import SqlAlchemyMarketplaceStore


STATUS_BY_KIND = {
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.LISTING_UNAVAILABLE: 400,
    ErrorKind.SELF_OFFER: 400,
    ErrorKind.LIMIT_EXCEEDED: 400,
}


async def get_marketplace(db: AsyncSession = Depends(get_db)) -> MarketplaceService:
    return MarketplaceService(
        SqlAlchemyMarketplaceStore(db),
        config=settings.marketplace,
        max_commit_attempts=settings.max_commit_attempts,
        listing_ttl=timedelta(days=settings.listing_ttl_days),
    )


def to_response(outcome: Outcome) -> OutcomeOut:
    """Translate an Outcome into the response body, or raise the mapped HTTP error."""
    if not outcome.ok:
        err = outcome.error
        raise HTTPException(
            status_code=STATUS_BY_KIND[err.kind],
            detail={"code": err.kind.value, "message": err.message, "details": err.details},
        )
    return OutcomeOut(
        ok=True,
        listing=outcome.listing,
        offers=list(outcome.offers),
        message=outcome.message,
        events=[
            EventOut(
                event_type=e.event_type,
                aggregate_type=e.aggregate_type,
                aggregate_id=e.aggregate_id,
                payload=e.payload,
            )
            for e in outcome.events
        ],
    )
