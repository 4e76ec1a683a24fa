"""
Authorization policy: (actor, action, resource) -> allow / deny.

Pure decision function. Role grants and feature flags come from the
immutable MarketplaceConfig passed in by the caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from marketplace.core.config import MarketplaceConfig
from marketplace.domain.snapshots import ListingSnapshot, OfferSnapshot
from marketplace.services.auth import Actor


class Action(str, Enum):
    CREATE_LISTING = "listing.create"
    SUBMIT_LISTING = "listing.submit"
    APPROVE_LISTING = "listing.approve"
    UPDATE_LISTING = "listing.update"
    CANCEL_LISTING = "listing.cancel"

    CREATE_OFFER = "offer.create"
    ACCEPT_OFFER = "offer.accept"
    REJECT_OFFER = "offer.reject"
    UPDATE_OFFER = "offer.update"
    CANCEL_OFFER = "offer.cancel"

    CREATE_MESSAGE = "message.create"


_OFFER_ACTIONS = frozenset({
    Action.CREATE_OFFER,
    Action.ACCEPT_OFFER,
    Action.REJECT_OFFER,
    Action.UPDATE_OFFER,
    Action.CANCEL_OFFER,
})


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)


def _deny(reason: str) -> Decision:
    return Decision(allowed=False, reason=reason)


def _is_seller(actor: Actor, listing: ListingSnapshot | None) -> bool:
    return listing is not None and actor.user_id == listing.seller_id


def _is_buyer(actor: Actor, offer: OfferSnapshot | None) -> bool:
    return offer is not None and actor.user_id == offer.buyer_id


def authorize(
    *,
    actor: Actor,
    action: Action,
    config: MarketplaceConfig,
    listing: ListingSnapshot | None = None,
    offer: OfferSnapshot | None = None,
) -> Decision:
    features = config.features
    roles = config.roles

    if action in _OFFER_ACTIONS and not features.offers:
        return _deny("Offers are disabled")

    if action is Action.CREATE_LISTING:
        if actor.role not in roles.can_create_listings:
            return _deny("User not authorized to create listings")
        return ALLOW

    if action is Action.APPROVE_LISTING:
        if features.auto_approval:
            return _deny("Listings are auto-approved")
        if actor.role not in roles.can_approve_listings:
            return _deny("User not authorized to approve listings")
        return ALLOW

    if action in (Action.UPDATE_LISTING, Action.SUBMIT_LISTING):
        if not _is_seller(actor, listing):
            return _deny("Only the seller can modify this listing")
        return ALLOW

    if action is Action.CANCEL_LISTING:
        if _is_seller(actor, listing) or actor.role in roles.can_delete_listings:
            return ALLOW
        return _deny("User not authorized to delete this listing")

    if action is Action.CREATE_OFFER:
        if actor.role not in roles.can_make_offers:
            return _deny("User not authorized to make offers")
        return ALLOW

    if action in (Action.ACCEPT_OFFER, Action.REJECT_OFFER):
        if not _is_seller(actor, listing):
            return _deny("Only the seller can accept or reject offers")
        return ALLOW

    if action in (Action.UPDATE_OFFER, Action.CANCEL_OFFER):
        if not _is_buyer(actor, offer):
            return _deny("Only the buyer can change this offer")
        return ALLOW

    if action is Action.CREATE_MESSAGE:
        if not features.messaging:
            return _deny("Messaging is disabled")
        return ALLOW

    raise ValueError(f"Unknown action: {action!r}")
