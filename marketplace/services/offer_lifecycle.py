"""
Offer lifecycle engine.

    PENDING -> ACCEPTED | REJECTED | CANCELLED   (all three terminal)

Accepting an offer is the one cross-entity transition: the offer, the
listing (AVAILABLE -> PENDING_PAYMENT) and every competing PENDING offer
(auto-rejected) change together in a single Outcome, which the host must
commit atomically or not at all.
"""
from __future__ import annotations

from datetime import datetime
from typing import Sequence

from marketplace.core.config import MarketplaceConfig
from marketplace.domain import events as ev
from marketplace.domain.enums import ListingStatus, OfferStatus
from marketplace.domain.outcome import (
    ErrorKind,
    Outcome,
    forbidden,
    invalid_transition,
    limit_exceeded,
)
from marketplace.domain.snapshots import ListingSnapshot, OfferSnapshot
from marketplace.schemas.offer import OfferCreate, OfferUpdate
from marketplace.services import listing_lifecycle
from marketplace.services.auth import Actor
from marketplace.services.policy import Action, authorize


TRANSITIONS: dict[OfferStatus, frozenset[OfferStatus]] = {
    OfferStatus.PENDING: frozenset({OfferStatus.ACCEPTED, OfferStatus.REJECTED, OfferStatus.CANCELLED}),
    OfferStatus.ACCEPTED: frozenset(),
    OfferStatus.REJECTED: frozenset(),
    OfferStatus.CANCELLED: frozenset(),
}

SUPERSEDED = "superseded"


def _transition(offer: OfferSnapshot, target: OfferStatus, now: datetime) -> Outcome | OfferSnapshot:
    if target not in TRANSITIONS[offer.status]:
        return invalid_transition("offer", offer.status, target, TRANSITIONS[offer.status])
    return offer.model_copy(update={"status": target, "updated_at": now})


def _listing_unavailable(listing: ListingSnapshot) -> Outcome:
    return Outcome.failure(
        ErrorKind.LISTING_UNAVAILABLE,
        "Listing is not available for offers",
        listing_id=listing.id,
        status=listing.status.value,
    )


def open_offer_count(offers: Sequence[OfferSnapshot]) -> int:
    return sum(1 for o in offers if not o.status.is_terminal)


def check_can_offer(listing: ListingSnapshot, *, actor: Actor) -> Outcome | None:
    """
    Listing-level preconditions for a new offer, in precedence order.
    Returns the failure, or None when an offer may be placed.
    """
    if listing.status is not ListingStatus.AVAILABLE:
        return _listing_unavailable(listing)
    if actor.user_id == listing.seller_id:
        return Outcome.failure(
            ErrorKind.SELF_OFFER,
            "You cannot make an offer on your own listing",
            listing_id=listing.id,
        )
    return None


def create_offer(
    listing: ListingSnapshot,
    offers: Sequence[OfferSnapshot],
    *,
    offer_id: str,
    actor: Actor,
    data: OfferCreate,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    decision = authorize(actor=actor, action=Action.CREATE_OFFER, config=config, listing=listing)
    if not decision:
        return forbidden(decision.reason)

    precondition = check_can_offer(listing, actor=actor)
    if precondition is not None:
        return precondition

    limit = config.limits.max_offers_per_listing
    current = open_offer_count(offers)
    if current >= limit:
        return limit_exceeded("max_offers_per_listing", limit, current)

    offer = OfferSnapshot(
        id=offer_id,
        listing_id=listing.id,
        buyer_id=actor.user_id,
        amount=data.amount,
        status=OfferStatus.PENDING,
        message=data.message,
        created_at=now,
        updated_at=now,
    )
    return Outcome.success(listing=listing, offers=[offer], events=[ev.offer_event(ev.OFFER_CREATED, offer)])


def accept_offer(
    offer: OfferSnapshot,
    listing: ListingSnapshot,
    offers: Sequence[OfferSnapshot],
    *,
    actor: Actor,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    """
    Seller commits to one offer.

    Returns the accepted offer first, then every competing offer that was
    PENDING, now REJECTED as superseded. If the listing has already left
    AVAILABLE (another accept won) the result is InvalidTransition and
    nothing changes.
    """
    decision = authorize(actor=actor, action=Action.ACCEPT_OFFER, config=config, listing=listing, offer=offer)
    if not decision:
        return forbidden(decision.reason)

    if offer.listing_id != listing.id:
        raise ValueError(f"offer {offer.id} does not belong to listing {listing.id}")

    accepted = _transition(offer, OfferStatus.ACCEPTED, now)
    if isinstance(accepted, Outcome):
        return accepted

    closing = listing_lifecycle.mark_pending_payment(listing, now=now)
    if not closing.ok:
        return closing

    superseded, rejections = listing_lifecycle.reject_open_offers(offers, reason=SUPERSEDED, now=now, keep=offer.id)

    events = [
        ev.offer_event(ev.OFFER_ACCEPTED, accepted),
        ev.listing_event(ev.LISTING_PENDING_PAYMENT, closing.listing, offer_id=accepted.id),
        *rejections,
    ]
    return Outcome.success(listing=closing.listing, offers=[accepted, *superseded], events=events)


def reject_offer(
    offer: OfferSnapshot,
    listing: ListingSnapshot,
    *,
    actor: Actor,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    decision = authorize(actor=actor, action=Action.REJECT_OFFER, config=config, listing=listing, offer=offer)
    if not decision:
        return forbidden(decision.reason)

    rejected = _transition(offer, OfferStatus.REJECTED, now)
    if isinstance(rejected, Outcome):
        return rejected
    return Outcome.success(listing=listing, offers=[rejected], events=[ev.offer_event(ev.OFFER_REJECTED, rejected)])


def update_offer_terms(
    offer: OfferSnapshot,
    listing: ListingSnapshot,
    *,
    actor: Actor,
    patch: OfferUpdate,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    decision = authorize(actor=actor, action=Action.UPDATE_OFFER, config=config, listing=listing, offer=offer)
    if not decision:
        return forbidden(decision.reason)

    if offer.status is not OfferStatus.PENDING:
        return Outcome.failure(
            ErrorKind.INVALID_TRANSITION,
            f"Offer is {offer.status.value}; only PENDING offers can be revised",
            entity="offer",
            status=offer.status.value,
        )
    if listing.status is not ListingStatus.AVAILABLE:
        return _listing_unavailable(listing)

    updated = offer.model_copy(update={**patch.changes(), "updated_at": now})
    return Outcome.success(listing=listing, offers=[updated], events=[ev.offer_event(ev.OFFER_UPDATED, updated)])


def cancel_offer(
    offer: OfferSnapshot,
    *,
    actor: Actor,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    decision = authorize(actor=actor, action=Action.CANCEL_OFFER, config=config, offer=offer)
    if not decision:
        return forbidden(decision.reason)

    cancelled = _transition(offer, OfferStatus.CANCELLED, now)
    if isinstance(cancelled, Outcome):
        return cancelled
    return Outcome.success(offers=[cancelled], events=[ev.offer_event(ev.OFFER_CANCELLED, cancelled)])
