from __future__ import annotations

from datetime import datetime

from marketplace.core.config import MarketplaceConfig
from marketplace.domain import events as ev
from marketplace.domain.outcome import Outcome, forbidden, limit_exceeded
from marketplace.domain.snapshots import ListingSnapshot, MessageSnapshot
from marketplace.schemas.message import MessageCreate
from marketplace.services.auth import Actor
from marketplace.services.policy import Action, authorize


def create_message(
    listing: ListingSnapshot,
    *,
    message_id: str,
    actor: Actor,
    data: MessageCreate,
    message_count: int,
    config: MarketplaceConfig,
    now: datetime,
) -> Outcome:
    """
    Append a message to a listing thread. Any authenticated user may post;
    the only guard is the per-listing volume limit.
    """
    decision = authorize(actor=actor, action=Action.CREATE_MESSAGE, config=config, listing=listing)
    if not decision:
        return forbidden(decision.reason)

    limit = config.limits.max_messages_per_listing
    if message_count >= limit:
        return limit_exceeded("max_messages_per_listing", limit, message_count)

    message = MessageSnapshot(
        id=message_id,
        listing_id=listing.id,
        sender_id=actor.user_id,
        content=data.content,
        created_at=now,
    )
    return Outcome.success(listing=listing, message=message, events=[ev.message_event(ev.MESSAGE_CREATED, message)])
