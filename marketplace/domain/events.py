from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from marketplace.domain.snapshots import ListingSnapshot, MessageSnapshot, OfferSnapshot


LISTING_CREATED = "marketplace.listing.created"
LISTING_UPDATED = "marketplace.listing.updated"
LISTING_DELETED = "marketplace.listing.deleted"
LISTING_APPROVED = "marketplace.listing.approved"
LISTING_PENDING_PAYMENT = "marketplace.listing.pending_payment"
LISTING_SOLD = "marketplace.listing.sold"
LISTING_EXPIRED = "marketplace.listing.expired"

OFFER_CREATED = "marketplace.offer.created"
OFFER_ACCEPTED = "marketplace.offer.accepted"
OFFER_REJECTED = "marketplace.offer.rejected"
OFFER_UPDATED = "marketplace.offer.updated"
OFFER_CANCELLED = "marketplace.offer.cancelled"

MESSAGE_CREATED = "marketplace.message.created"


@dataclass(frozen=True)
class DomainEvent:
    """
    A named fact produced by a committed transition.
    The host persists and publishes these; the core never dispatches them.
    """
    event_type: str
    aggregate_type: str  # "listing" | "offer" | "message"
    aggregate_id: str
    payload: dict[str, Any] = field(default_factory=dict)


def listing_event(event_type: str, listing: ListingSnapshot, **extra: Any) -> DomainEvent:
    return DomainEvent(
        event_type=event_type,
        aggregate_type="listing",
        aggregate_id=listing.id,
        payload={
            "listing_id": listing.id,
            "seller_id": listing.seller_id,
            "status": listing.status.value,
            **extra,
        },
    )


def offer_event(event_type: str, offer: OfferSnapshot, **extra: Any) -> DomainEvent:
    return DomainEvent(
        event_type=event_type,
        aggregate_type="offer",
        aggregate_id=offer.id,
        payload={
            "offer_id": offer.id,
            "listing_id": offer.listing_id,
            "buyer_id": offer.buyer_id,
            "amount": offer.amount,
            "status": offer.status.value,
            **extra,
        },
    )


def message_event(event_type: str, message: MessageSnapshot) -> DomainEvent:
    return DomainEvent(
        event_type=event_type,
        aggregate_type="message",
        aggregate_id=message.id,
        payload={
            "message_id": message.id,
            "listing_id": message.listing_id,
            "sender_id": message.sender_id,
        },
    )
