"""
Host-side orchestration around the pure lifecycle engines.

Each operation validates the payload, loads snapshots from the store,
asks an engine for the next state and commits it with a compare-and-swap
on the listing version. A lost race reloads fresh snapshots and decides
again, up to max_commit_attempts, after which the caller gets CONFLICT.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from marketplace.core.clock import Clock, SystemClock
from marketplace.core.config import MarketplaceConfig
from marketplace.core.ids import gen_id
from marketplace.domain.outcome import (
    ErrorKind,
    Outcome,
    forbidden,
    not_found,
    validation_failed,
)
from marketplace.domain.snapshots import ListingSnapshot, OfferSnapshot
from marketplace.services import listing_lifecycle, messaging, offer_lifecycle
from marketplace.services.auth import Actor
from marketplace.services.policy import Action, authorize
from marketplace.services.storage import MarketplaceStore
from marketplace.services.validation import (
    validate_listing_input,
    validate_listing_patch,
    validate_message_input,
    validate_offer_input,
    validate_offer_patch,
)


log = logging.getLogger(__name__)

Decide = Callable[[ListingSnapshot, list[OfferSnapshot]], Awaitable[Outcome]]


def _conflict(listing_id: str, attempts: int) -> Outcome:
    return Outcome.failure(
        ErrorKind.CONFLICT,
        "Listing was modified concurrently; retry with a fresh snapshot",
        listing_id=listing_id,
        attempts=attempts,
    )


class MarketplaceService:
    def __init__(
        self,
        store: MarketplaceStore,
        *,
        config: MarketplaceConfig,
        clock: Clock | None = None,
        max_commit_attempts: int = 3,
        listing_ttl: timedelta = timedelta(days=30),
    ):
        self.store = store
        self.config = config
        self.clock = clock or SystemClock()
        self.max_commit_attempts = max_commit_attempts
        self.listing_ttl = listing_ttl

    # --- plumbing ---

    async def _apply(self, listing_id: str, decide: Decide) -> Outcome:
        for attempt in range(1, self.max_commit_attempts + 1):
            listing = await self.store.load_listing(listing_id)
            if listing is None:
                return not_found("listing", listing_id)
            offers = await self.store.load_offers_for_listing(listing_id)

            outcome = await decide(listing, offers)
            if not outcome.ok or outcome.noop:
                return outcome

            target = outcome.listing or listing
            committed = await self.store.commit(
                expected_version=listing.version,
                listing=target,
                offers=outcome.offers,
                message=outcome.message,
                events=outcome.events,
            )
            if committed:
                log.info(
                    "listing %s committed v%d: %s",
                    listing_id,
                    listing.version + 1,
                    ", ".join(e.event_type for e in outcome.events),
                )
                return replace(outcome, listing=target.model_copy(update={"version": listing.version + 1}))

            log.info("listing %s: commit conflict (attempt %d/%d)", listing_id, attempt, self.max_commit_attempts)

        return _conflict(listing_id, self.max_commit_attempts)

    async def _apply_to_offer(
        self,
        offer_id: str,
        decide: Callable[[OfferSnapshot, ListingSnapshot, list[OfferSnapshot]], Outcome],
    ) -> Outcome:
        offer = await self.store.load_offer(offer_id)
        if offer is None:
            return not_found("offer", offer_id)

        async def _decide(listing: ListingSnapshot, offers: list[OfferSnapshot]) -> Outcome:
            current = next((o for o in offers if o.id == offer_id), None)
            if current is None:
                return not_found("offer", offer_id)
            return decide(current, listing, offers)

        return await self._apply(offer.listing_id, _decide)

    # --- reads ---

    async def get_listing(self, listing_id: str) -> Outcome:
        listing = await self.store.load_listing(listing_id)
        if listing is None:
            return not_found("listing", listing_id)
        offers = await self.store.load_offers_for_listing(listing_id)
        return Outcome.success(listing=listing, offers=offers, noop=True)

    async def get_offer(self, offer_id: str) -> Outcome:
        offer = await self.store.load_offer(offer_id)
        if offer is None:
            return not_found("offer", offer_id)
        return Outcome.success(offers=[offer], noop=True)

    # --- listings ---

    async def create_listing(self, actor: Actor, payload: Any) -> Outcome:
        decision = authorize(actor=actor, action=Action.CREATE_LISTING, config=self.config)
        if not decision:
            return forbidden(decision.reason)

        validated = validate_listing_input(payload, self.config.limits)
        if not validated.ok:
            return validation_failed(validated.errors)

        count = await self.store.count_active_listings_for_seller(actor.user_id)
        outcome = listing_lifecycle.create_listing(
            listing_id=gen_id("lst"),
            actor=actor,
            data=validated.value,
            active_listing_count=count,
            config=self.config,
            now=self.clock.now(),
        )
        if not outcome.ok:
            return outcome

        if not await self.store.commit(expected_version=None, listing=outcome.listing, events=outcome.events):
            return _conflict(outcome.listing.id, 1)
        log.info("listing %s created by %s as %s", outcome.listing.id, actor.user_id, outcome.listing.status.value)
        return outcome

    async def submit_listing(self, actor: Actor, listing_id: str) -> Outcome:
        async def decide(listing, offers):
            return listing_lifecycle.submit_listing(listing, actor=actor, config=self.config, now=self.clock.now())

        return await self._apply(listing_id, decide)

    async def approve_listing(self, actor: Actor, listing_id: str) -> Outcome:
        async def decide(listing, offers):
            return listing_lifecycle.approve_listing(listing, actor=actor, config=self.config, now=self.clock.now())

        return await self._apply(listing_id, decide)

    async def update_listing(self, actor: Actor, listing_id: str, payload: Any) -> Outcome:
        validated = validate_listing_patch(payload, self.config.limits)
        if not validated.ok:
            return validation_failed(validated.errors)

        async def decide(listing, offers):
            return listing_lifecycle.update_listing(
                listing, actor=actor, patch=validated.value, config=self.config, now=self.clock.now()
            )

        return await self._apply(listing_id, decide)

    async def cancel_listing(self, actor: Actor, listing_id: str) -> Outcome:
        async def decide(listing, offers):
            return listing_lifecycle.cancel_listing(listing, offers, actor=actor, config=self.config, now=self.clock.now())

        return await self._apply(listing_id, decide)

    async def expire_listing(self, listing_id: str, *, stale_before: datetime | None = None) -> Outcome:
        async def decide(listing, offers):
            if stale_before is not None and listing.updated_at >= stale_before:
                # touched since the sweep selected it
                return Outcome.success(listing=listing, noop=True)
            return listing_lifecycle.expire_listing(listing, offers, now=self.clock.now())

        return await self._apply(listing_id, decide)

    async def expire_stale_listings(self) -> list[str]:
        cutoff = self.clock.now() - self.listing_ttl
        expired: list[str] = []
        for listing_id in await self.store.find_expirable_listing_ids(cutoff):
            outcome = await self.expire_listing(listing_id, stale_before=cutoff)
            if outcome.ok and not outcome.noop:
                expired.append(listing_id)
            elif not outcome.ok:
                log.warning("expiry of listing %s skipped: %s", listing_id, outcome.error.message)
        return expired

    async def handle_payment_completed(self, listing_id: str) -> Outcome:
        """
        Consume payment.completed. Never raises. A duplicate or stray
        notification (NOT_FOUND, INVALID_TRANSITION) is logged and dropped;
        CONFLICT is returned for the caller to have it redelivered.
        """
        async def decide(listing, offers):
            return listing_lifecycle.mark_sold(listing, now=self.clock.now())

        outcome = await self._apply(listing_id, decide)
        if not outcome.ok and outcome.error.kind is ErrorKind.CONFLICT:
            log.warning("payment.completed for listing %s not applied, needs redelivery: %s", listing_id, outcome.error.message)
        elif not outcome.ok:
            log.warning("payment.completed for listing %s ignored: %s", listing_id, outcome.error.message)
        return outcome

    # --- offers ---

    async def create_offer(self, actor: Actor, listing_id: str, payload: Any) -> Outcome:
        decision = authorize(actor=actor, action=Action.CREATE_OFFER, config=self.config)
        if not decision:
            return forbidden(decision.reason)

        offer_id = gen_id("ofr")

        async def decide(listing, offers):
            # listing state and self-offer take precedence over payload problems
            blocked = offer_lifecycle.check_can_offer(listing, actor=actor)
            if blocked is not None:
                return blocked
            validated = validate_offer_input(payload)
            if not validated.ok:
                return validation_failed(validated.errors)
            return offer_lifecycle.create_offer(
                listing,
                offers,
                offer_id=offer_id,
                actor=actor,
                data=validated.value,
                config=self.config,
                now=self.clock.now(),
            )

        return await self._apply(listing_id, decide)

    async def accept_offer(self, actor: Actor, offer_id: str) -> Outcome:
        def decide(offer, listing, offers):
            return offer_lifecycle.accept_offer(
                offer, listing, offers, actor=actor, config=self.config, now=self.clock.now()
            )

        return await self._apply_to_offer(offer_id, decide)

    async def reject_offer(self, actor: Actor, offer_id: str) -> Outcome:
        def decide(offer, listing, offers):
            return offer_lifecycle.reject_offer(offer, listing, actor=actor, config=self.config, now=self.clock.now())

        return await self._apply_to_offer(offer_id, decide)

    async def update_offer(self, actor: Actor, offer_id: str, payload: Any) -> Outcome:
        validated = validate_offer_patch(payload)
        if not validated.ok:
            return validation_failed(validated.errors)

        def decide(offer, listing, offers):
            return offer_lifecycle.update_offer_terms(
                offer, listing, actor=actor, patch=validated.value, config=self.config, now=self.clock.now()
            )

        return await self._apply_to_offer(offer_id, decide)

    async def cancel_offer(self, actor: Actor, offer_id: str) -> Outcome:
        def decide(offer, listing, offers):
            return offer_lifecycle.cancel_offer(offer, actor=actor, config=self.config, now=self.clock.now())

        return await self._apply_to_offer(offer_id, decide)

    # --- messages ---

    async def create_message(self, actor: Actor, listing_id: str, payload: Any) -> Outcome:
        validated = validate_message_input(payload)
        if not validated.ok:
            return validation_failed(validated.errors)

        message_id = gen_id("msg")

        async def decide(listing, offers):
            count = await self.store.count_messages_for_listing(listing.id)
            return messaging.create_message(
                listing,
                message_id=message_id,
                actor=actor,
                data=validated.value,
                message_count=count,
                config=self.config,
                now=self.clock.now(),
            )

        return await self._apply(listing_id, decide)
