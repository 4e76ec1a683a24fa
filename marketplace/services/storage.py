from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable

from marketplace.domain.enums import ListingStatus
from marketplace.domain.events import DomainEvent
from marketplace.domain.snapshots import ListingSnapshot, MessageSnapshot, OfferSnapshot


EXPIRABLE_STATUSES = (ListingStatus.PENDING_APPROVAL, ListingStatus.AVAILABLE)


@runtime_checkable
class MarketplaceStore(Protocol):
    """
    Storage collaborator for the lifecycle engines.

    commit() is a compare-and-swap on the listing version: it writes the
    listing, the given offers, the message and the events atomically and
    returns False (writing nothing) when the stored version no longer
    matches expected_version. expected_version=None inserts a new listing.
    """

    async def load_listing(self, listing_id: str) -> ListingSnapshot | None:
        ...

    async def load_offer(self, offer_id: str) -> OfferSnapshot | None:
        ...

    async def load_offers_for_listing(self, listing_id: str) -> list[OfferSnapshot]:
        ...

    async def count_active_listings_for_seller(self, seller_id: str) -> int:
        ...

    async def count_messages_for_listing(self, listing_id: str) -> int:
        ...

    async def find_expirable_listing_ids(self, updated_before: datetime) -> list[str]:
        ...

    async def commit(
        self,
        *,
        expected_version: int | None,
        listing: ListingSnapshot,
        offers: Sequence[OfferSnapshot] = (),
        message: MessageSnapshot | None = None,
        events: Sequence[DomainEvent] = (),
    ) -> bool:
        ...


class InMemoryMarketplaceStore:
    """
    Process-local store. commit() has no await points, so under asyncio it
    runs to completion without interleaving and the version check is atomic.
    Committed events accumulate in .outbox in commit order.
    """

    def __init__(self) -> None:
        self.listings: dict[str, ListingSnapshot] = {}
        self.offers: dict[str, OfferSnapshot] = {}
        self.messages: dict[str, MessageSnapshot] = {}
        self.outbox: list[DomainEvent] = []

    async def load_listing(self, listing_id: str) -> ListingSnapshot | None:
        return self.listings.get(listing_id)

    async def load_offer(self, offer_id: str) -> OfferSnapshot | None:
        return self.offers.get(offer_id)

    async def load_offers_for_listing(self, listing_id: str) -> list[OfferSnapshot]:
        rows = [o for o in self.offers.values() if o.listing_id == listing_id]
        return sorted(rows, key=lambda o: (o.created_at, o.id))

    async def count_active_listings_for_seller(self, seller_id: str) -> int:
        return sum(
            1 for row in self.listings.values() if row.seller_id == seller_id and not row.status.is_terminal
        )

    async def count_messages_for_listing(self, listing_id: str) -> int:
        return sum(1 for m in self.messages.values() if m.listing_id == listing_id)

    async def find_expirable_listing_ids(self, updated_before: datetime) -> list[str]:
        return [
            row.id
            for row in sorted(self.listings.values(), key=lambda r: r.updated_at)
            if row.status in EXPIRABLE_STATUSES and row.updated_at < updated_before
        ]

    async def commit(
        self,
        *,
        expected_version: int | None,
        listing: ListingSnapshot,
        offers: Sequence[OfferSnapshot] = (),
        message: MessageSnapshot | None = None,
        events: Sequence[DomainEvent] = (),
    ) -> bool:
        stored = self.listings.get(listing.id)
        if expected_version is None:
            if stored is not None:
                return False
            new_version = 0
        else:
            if stored is None or stored.version != expected_version:
                return False
            new_version = expected_version + 1

        self.listings[listing.id] = listing.model_copy(update={"version": new_version})
        for offer in offers:
            self.offers[offer.id] = offer
        if message is not None:
            self.messages[message.id] = message
        self.outbox.extend(events)
        return True
