from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.enums import ListingStatus
from marketplace.domain.events import DomainEvent
from marketplace.domain.snapshots import ListingSnapshot, MessageSnapshot, OfferSnapshot
from marketplace.models.listing import MarketplaceListing
from marketplace.models.message import ListingMessage
from marketplace.models.offer import ListingOffer
from marketplace.models.outbox import OutboxEvent
from marketplace.services.storage import EXPIRABLE_STATUSES


log = logging.getLogger(__name__)

_TERMINAL = [s.value for s in ListingStatus if s.is_terminal]


def _listing_values(listing: ListingSnapshot, *, version: int) -> dict:
    return {
        "seller_id": listing.seller_id,
        "title": listing.title,
        "description": listing.description,
        "price": listing.price,
        "condition": listing.condition.value,
        "images": list(listing.images),
        "tags": list(listing.tags),
        "status": listing.status.value,
        "created_at": listing.created_at,
        "updated_at": listing.updated_at,
        "version": version,
    }


class SqlAlchemyMarketplaceStore:
    """
    MarketplaceStore over an AsyncSession.

    The listing row is the aggregate lock: commit() issues
    UPDATE ... WHERE id = :id AND version = :expected and treats rowcount 0
    as a conflict. Offers, the message and outbox rows for the events are
    written in the same transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_listing(self, listing_id: str) -> ListingSnapshot | None:
        # populate_existing so a retry after a conflict sees the fresh row, not the identity map
        stmt = (
            select(MarketplaceListing)
            .where(MarketplaceListing.id == listing_id)
            .execution_options(populate_existing=True)
        )
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        return ListingSnapshot.model_validate(row) if row else None

    async def load_offer(self, offer_id: str) -> OfferSnapshot | None:
        stmt = select(ListingOffer).where(ListingOffer.id == offer_id).execution_options(populate_existing=True)
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        return OfferSnapshot.model_validate(row) if row else None

    async def load_offers_for_listing(self, listing_id: str) -> list[OfferSnapshot]:
        stmt = (
            select(ListingOffer)
            .where(ListingOffer.listing_id == listing_id)
            .order_by(ListingOffer.created_at.asc(), ListingOffer.id.asc())
            .execution_options(populate_existing=True)
        )
        rows = (await self.db.execute(stmt)).scalars().all()
        return [OfferSnapshot.model_validate(r) for r in rows]

    async def count_active_listings_for_seller(self, seller_id: str) -> int:
        stmt = select(func.count()).select_from(MarketplaceListing).where(
            MarketplaceListing.seller_id == seller_id,
            MarketplaceListing.status.not_in(_TERMINAL),
        )
        return int((await self.db.execute(stmt)).scalar_one())

    async def count_messages_for_listing(self, listing_id: str) -> int:
        stmt = select(func.count()).select_from(ListingMessage).where(ListingMessage.listing_id == listing_id)
        return int((await self.db.execute(stmt)).scalar_one())

    async def find_expirable_listing_ids(self, updated_before: datetime) -> list[str]:
        stmt = (
            select(MarketplaceListing.id)
            .where(
                MarketplaceListing.status.in_([s.value for s in EXPIRABLE_STATUSES]),
                MarketplaceListing.updated_at < updated_before,
            )
            .order_by(MarketplaceListing.updated_at.asc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def commit(
        self,
        *,
        expected_version: int | None,
        listing: ListingSnapshot,
        offers: Sequence[OfferSnapshot] = (),
        message: MessageSnapshot | None = None,
        events: Sequence[DomainEvent] = (),
    ) -> bool:
        try:
            if expected_version is None:
                self.db.add(MarketplaceListing(id=listing.id, **_listing_values(listing, version=0)))
                await self.db.flush()
            else:
                result = await self.db.execute(
                    update(MarketplaceListing)
                    .where(
                        MarketplaceListing.id == listing.id,
                        MarketplaceListing.version == expected_version,
                    )
                    .values(**_listing_values(listing, version=expected_version + 1))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    # someone else committed first; caller reloads and retries
                    await self.db.rollback()
                    return False

            for offer in offers:
                await self.db.merge(
                    ListingOffer(
                        id=offer.id,
                        listing_id=offer.listing_id,
                        buyer_id=offer.buyer_id,
                        amount=offer.amount,
                        status=offer.status.value,
                        message=offer.message,
                        created_at=offer.created_at,
                        updated_at=offer.updated_at,
                    )
                )

            if message is not None:
                self.db.add(
                    ListingMessage(
                        id=message.id,
                        listing_id=message.listing_id,
                        sender_id=message.sender_id,
                        content=message.content,
                        created_at=message.created_at,
                    )
                )

            for event in events:
                self.db.add(
                    OutboxEvent(
                        aggregate_type=event.aggregate_type,
                        aggregate_id=event.aggregate_id,
                        event_type=event.event_type,
                        payload=event.payload,
                        status="pending",
                    )
                )

            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            log.exception("commit for listing %s violated a constraint", listing.id)
            return False

        return True
