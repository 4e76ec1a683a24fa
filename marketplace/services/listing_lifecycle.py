"""
Listing lifecycle engine.

    DRAFT -> PENDING_APPROVAL -> AVAILABLE -> PENDING_PAYMENT -> SOLD
    DRAFT / PENDING_APPROVAL / AVAILABLE -> CANCELLED
    PENDING_APPROVAL / AVAILABLE -> EXPIRED

SOLD, CANCELLED and EXPIRED are terminal. Every operation takes the
current snapshot and returns an Outcome with the next snapshot and the
events to publish; nothing here performs I/O.
"""
from __future__ import annotations

import logging
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
from marketplace.schemas.listing import ListingCreate, ListingUpdate
from marketplace.services.auth import Actor
from marketplace.services.policy import Action, authorize


log = logging.getLogger(__name__)


# {from_status: {allowed to_statuses}}
TRANSITIONS: dict[ListingStatus, frozenset[ListingStatus]] = {
    ListingStatus.DRAFT: frozenset({ListingStatus.PENDING_APPROVAL, ListingStatus.CANCELLED}),
    ListingStatus.PENDING_APPROVAL: frozenset({
        ListingStatus.AVAILABLE,
        ListingStatus.CANCELLED,
        ListingStatus.EXPIRED,
    }),
    ListingStatus.AVAILABLE: frozenset({
        ListingStatus.PENDING_PAYMENT,
        ListingStatus.CANCELLED,
        ListingStatus.EXPIRED,
    }),
    ListingStatus.PENDING_PAYMENT: frozenset({ListingStatus.SOLD}),
    # Terminal
    ListingStatus.SOLD: frozenset(),
    ListingStatus.CANCELLED: frozenset(),
    ListingStatus.EXPIRED: frozenset(),
}


def can_transition(current: ListingStatus, target: ListingStatus) -> bool:
    return target in TRANSITIONS[current]


def _transition(listing: ListingSnapshot, target: ListingStatus, now: datetime) -> Outcome | ListingSnapshot:
    if not can_transition(listing.status, target):
        return invalid_transition("listing", listing.status, target, TRANSITIONS[listing.status])
    return listing.model_copy(update={"status": target, "updated_at": now})


# statuses whose content (price, images, ...) the seller may still edit
EDITABLE_STATUSES = frozenset({ListingStatus.DRAFT, ListingStatus.PENDING_APPROVAL, ListingStatus.AVAILABLE})

LISTING_CANCELLED = "listing_cancelled"
LISTING_EXPIRED = "listing_expired"


def reject_open_offers(
    offers: Sequence[OfferSnapshot],
    *,
    reason: str,
    now: datetime,
    keep: str | None = None,
) -> tuple[list[OfferSnapshot], list[ev.DomainEvent]]:
    """
    Close every PENDING offer (except `keep`) as REJECTED with the given
    reason. Returns the rejected snapshots and one offer.rejected event each.
    """
    rejected = [
        o.model_copy(update={"status": OfferStatus.REJECTED, "updated_at": now})
        for o in offers
        if o.id != keep and o.status is OfferStatus.PENDING
    ]
    return rejected, [ev.offer_event(ev.OFFER_REJECTED, o, reason=reason) for o in rejected]


def create_listing(
    *,
    listing_id: str,
    actor: Actor,
    data: ListingCreate,
    active_listing_count: int,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    """
    New listing owned by actor. Starts DRAFT when requested, otherwise
    PENDING_APPROVAL, or AVAILABLE directly under auto-approval.
    """
    decision = authorize(actor=actor, action=Action.CREATE_LISTING, config=config)
    if not decision:
        return forbidden(decision.reason)

    limit = config.limits.max_listings_per_user
    if active_listing_count >= limit:
        return limit_exceeded("max_listings_per_user", limit, active_listing_count)

    if data.draft:
        status = ListingStatus.DRAFT
    elif config.features.auto_approval:
        status = ListingStatus.AVAILABLE
    else:
        status = ListingStatus.PENDING_APPROVAL

    listing = ListingSnapshot(
        id=listing_id,
        seller_id=actor.user_id,
        title=data.title,
        description=data.description,
        price=data.price,
        condition=data.condition,
        images=tuple(data.images),
        tags=tuple(data.tags),
        status=status,
        created_at=now,
        updated_at=now,
    )
    return Outcome.success(listing=listing, events=[ev.listing_event(ev.LISTING_CREATED, listing)])


def submit_listing(
    listing: ListingSnapshot,
    *,
    actor: Actor,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    decision = authorize(actor=actor, action=Action.SUBMIT_LISTING, config=config, listing=listing)
    if not decision:
        return forbidden(decision.reason)

    submitted = _transition(listing, ListingStatus.PENDING_APPROVAL, now)
    if isinstance(submitted, Outcome):
        return submitted
    events = [ev.listing_event(ev.LISTING_UPDATED, submitted)]

    if config.features.auto_approval:
        # walk the second edge in the same operation; nothing waits for a reviewer
        approved = _transition(submitted, ListingStatus.AVAILABLE, now)
        if isinstance(approved, Outcome):
            return approved
        return Outcome.success(
            listing=approved,
            events=[*events, ev.listing_event(ev.LISTING_APPROVED, approved)],
        )

    return Outcome.success(listing=submitted, events=events)


def approve_listing(
    listing: ListingSnapshot,
    *,
    actor: Actor,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    decision = authorize(actor=actor, action=Action.APPROVE_LISTING, config=config, listing=listing)
    if not decision:
        return forbidden(decision.reason)

    if listing.status is not ListingStatus.PENDING_APPROVAL:
        return invalid_transition("listing", listing.status, ListingStatus.AVAILABLE, TRANSITIONS[listing.status])

    approved = _transition(listing, ListingStatus.AVAILABLE, now)
    return Outcome.success(
        listing=approved,
        events=[ev.listing_event(ev.LISTING_APPROVED, approved, approved_by=actor.user_id)],
    )


def update_listing(
    listing: ListingSnapshot,
    *,
    actor: Actor,
    patch: ListingUpdate,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    """
    Apply a seller patch. Status stays as it is; the patch model has no
    status or seller_id field, so neither can change here.
    """
    decision = authorize(actor=actor, action=Action.UPDATE_LISTING, config=config, listing=listing)
    if not decision:
        return forbidden(decision.reason)

    if listing.status not in EDITABLE_STATUSES:
        # terms are frozen once an offer is accepted
        return Outcome.failure(
            ErrorKind.INVALID_TRANSITION,
            f"Listing is {listing.status.value}; it can no longer be updated",
            entity="listing",
            status=listing.status.value,
        )

    changes = patch.changes()
    for key in ("images", "tags"):
        if key in changes:
            changes[key] = tuple(changes[key])
    changes["updated_at"] = now

    updated = listing.model_copy(update=changes)
    return Outcome.success(
        listing=updated,
        events=[ev.listing_event(ev.LISTING_UPDATED, updated, fields=sorted(patch.changes()))],
    )


def cancel_listing(
    listing: ListingSnapshot,
    offers: Sequence[OfferSnapshot] = (),
    *,
    actor: Actor,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    decision = authorize(actor=actor, action=Action.CANCEL_LISTING, config=config, listing=listing)
    if not decision:
        return forbidden(decision.reason)

    cancelled = _transition(listing, ListingStatus.CANCELLED, now)
    if isinstance(cancelled, Outcome):
        return cancelled
    closed, offer_events = reject_open_offers(offers, reason=LISTING_CANCELLED, now=now)
    return Outcome.success(
        listing=cancelled,
        offers=closed,
        events=[ev.listing_event(ev.LISTING_DELETED, cancelled, cancelled_by=actor.user_id), *offer_events],
    )


def mark_pending_payment(listing: ListingSnapshot, *, now: datetime) -> Outcome:
    """
    AVAILABLE -> PENDING_PAYMENT. Only the offer engine calls this, as part
    of accepting an offer; it emits no events of its own.
    """
    if listing.status is not ListingStatus.AVAILABLE:
        return invalid_transition("listing", listing.status, ListingStatus.PENDING_PAYMENT, TRANSITIONS[listing.status])
    return Outcome.success(listing=_transition(listing, ListingStatus.PENDING_PAYMENT, now))


def mark_sold(listing: ListingSnapshot, *, now: datetime) -> Outcome:
    """
    PENDING_PAYMENT -> SOLD on payment confirmation.

    Already SOLD is a successful no-op so a duplicate notification changes
    nothing; any other status is an InvalidTransition for the caller to log.
    """
    if listing.status is ListingStatus.SOLD:
        log.info("listing %s already sold; ignoring duplicate payment", listing.id)
        return Outcome.success(listing=listing, noop=True)

    if listing.status is not ListingStatus.PENDING_PAYMENT:
        return invalid_transition("listing", listing.status, ListingStatus.SOLD, TRANSITIONS[listing.status])

    sold = _transition(listing, ListingStatus.SOLD, now)
    return Outcome.success(listing=sold, events=[ev.listing_event(ev.LISTING_SOLD, sold)])


def expire_listing(listing: ListingSnapshot, offers: Sequence[OfferSnapshot] = (), *, now: datetime) -> Outcome:
    """Open offers die with the listing; they are rejected in the same outcome."""
    expired = _transition(listing, ListingStatus.EXPIRED, now)
    if isinstance(expired, Outcome):
        return expired
    closed, offer_events = reject_open_offers(offers, reason=LISTING_EXPIRED, now=now)
    return Outcome.success(
        listing=expired,
        offers=closed,
        events=[ev.listing_event(ev.LISTING_EXPIRED, expired), *offer_events],
    )
