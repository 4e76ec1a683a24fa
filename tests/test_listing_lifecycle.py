from datetime import timedelta

import pytest

from marketplace.core.config import Limits, MarketplaceConfig
from marketplace.domain import events as ev
from marketplace.domain.enums import ListingStatus, OfferStatus
from marketplace.domain.outcome import ErrorKind
from marketplace.schemas.listing import ListingCreate, ListingUpdate
from marketplace.services import listing_lifecycle as lc

from conftest import T0


def _create_data(**overrides) -> ListingCreate:
    body = {
        "title": "Lego set",
        "description": "Complete, with box",
        "price": 25,
        "condition": "LIKE_NEW",
        "images": ["https://img.example/lego.jpg"],
    }
    body.update(overrides)
    return ListingCreate.model_validate(body)


def test_create_waits_for_approval_by_default(seller, config):
    out = lc.create_listing(listing_id="lst_9", actor=seller, data=_create_data(), active_listing_count=0, config=config, now=T0)
    assert out.ok
    assert out.listing.status is ListingStatus.PENDING_APPROVAL
    assert out.listing.seller_id == seller.user_id
    assert [e.event_type for e in out.events] == [ev.LISTING_CREATED]


def test_create_under_auto_approval_is_available(seller, auto_config):
    out = lc.create_listing(listing_id="lst_9", actor=seller, data=_create_data(), active_listing_count=0, config=auto_config, now=T0)
    assert out.listing.status is ListingStatus.AVAILABLE


def test_create_as_draft(seller, auto_config):
    out = lc.create_listing(
        listing_id="lst_9", actor=seller, data=_create_data(draft=True), active_listing_count=0, config=auto_config, now=T0
    )
    assert out.listing.status is ListingStatus.DRAFT


def test_create_enforces_listing_limit(seller):
    config = MarketplaceConfig(limits=Limits(max_listings_per_user=2))
    out = lc.create_listing(listing_id="lst_9", actor=seller, data=_create_data(), active_listing_count=2, config=config, now=T0)
    assert not out.ok
    assert out.error.kind is ErrorKind.LIMIT_EXCEEDED
    assert out.error.details == {"limit": "max_listings_per_user", "max": 2, "current": 2}


def test_submit_draft(seller, config, auto_config, make_listing):
    draft = make_listing(status=ListingStatus.DRAFT)

    out = lc.submit_listing(draft, actor=seller, config=config, now=T0)
    assert out.listing.status is ListingStatus.PENDING_APPROVAL

    out = lc.submit_listing(draft, actor=seller, config=auto_config, now=T0)
    assert out.listing.status is ListingStatus.AVAILABLE
    assert [e.event_type for e in out.events] == [ev.LISTING_UPDATED, ev.LISTING_APPROVED]


def test_submit_rejects_non_draft(seller, config, make_listing):
    out = lc.submit_listing(make_listing(), actor=seller, config=config, now=T0)
    assert out.error.kind is ErrorKind.INVALID_TRANSITION


def test_approve_moves_to_available(approver, config, make_listing):
    pending = make_listing(status=ListingStatus.PENDING_APPROVAL)
    later = T0 + timedelta(hours=1)
    out = lc.approve_listing(pending, actor=approver, config=config, now=later)
    assert out.listing.status is ListingStatus.AVAILABLE
    assert out.listing.updated_at == later
    assert out.events[0].payload["approved_by"] == approver.user_id
    # input snapshot untouched
    assert pending.status is ListingStatus.PENDING_APPROVAL


@pytest.mark.parametrize("status", [ListingStatus.AVAILABLE, ListingStatus.SOLD, ListingStatus.DRAFT])
def test_approve_requires_pending_approval(approver, config, make_listing, status):
    out = lc.approve_listing(make_listing(status=status), actor=approver, config=config, now=T0)
    assert out.error.kind is ErrorKind.INVALID_TRANSITION
    assert out.error.details["from"] == status.value
    assert out.error.details["to"] == "AVAILABLE"


def test_update_applies_only_supplied_fields(seller, config, make_listing):
    listing = make_listing()
    patch = ListingUpdate.model_validate({"price": 30, "tags": ["bike", "blue"]})
    out = lc.update_listing(listing, actor=seller, patch=patch, config=config, now=T0 + timedelta(minutes=5))
    assert out.ok
    assert out.listing.price == 30
    assert out.listing.tags == ("bike", "blue")
    assert out.listing.title == listing.title
    assert out.listing.status is listing.status
    assert out.events[0].payload["fields"] == ["price", "tags"]


def test_update_by_non_seller_is_forbidden(buyer, config, make_listing):
    patch = ListingUpdate.model_validate({"price": 1})
    out = lc.update_listing(make_listing(), actor=buyer, patch=patch, config=config, now=T0)
    assert out.error.kind is ErrorKind.FORBIDDEN


def test_update_terminal_listing_is_invalid(seller, config, make_listing):
    patch = ListingUpdate.model_validate({"price": 1})
    out = lc.update_listing(make_listing(status=ListingStatus.SOLD), actor=seller, patch=patch, config=config, now=T0)
    assert out.error.kind is ErrorKind.INVALID_TRANSITION


def test_cancel_emits_deleted(seller, config, make_listing):
    out = lc.cancel_listing(make_listing(), actor=seller, config=config, now=T0)
    assert out.listing.status is ListingStatus.CANCELLED
    assert out.events[0].event_type == ev.LISTING_DELETED
    assert out.events[0].payload["cancelled_by"] == seller.user_id


@pytest.mark.parametrize("status", [ListingStatus.PENDING_PAYMENT, ListingStatus.SOLD, ListingStatus.CANCELLED])
def test_cancel_outside_graph_is_invalid(seller, config, make_listing, status):
    out = lc.cancel_listing(make_listing(status=status), actor=seller, config=config, now=T0)
    assert out.error.kind is ErrorKind.INVALID_TRANSITION


def test_mark_sold_requires_pending_payment(make_listing):
    out = lc.mark_sold(make_listing(status=ListingStatus.PENDING_PAYMENT), now=T0)
    assert out.listing.status is ListingStatus.SOLD
    assert [e.event_type for e in out.events] == [ev.LISTING_SOLD]

    out = lc.mark_sold(make_listing(status=ListingStatus.AVAILABLE), now=T0)
    assert out.error.kind is ErrorKind.INVALID_TRANSITION


def test_mark_sold_twice_is_a_noop(make_listing):
    sold = make_listing(status=ListingStatus.SOLD)
    out = lc.mark_sold(sold, now=T0)
    assert out.ok and out.noop
    assert out.events == ()
    assert out.listing is sold


def test_expire(make_listing):
    assert lc.expire_listing(make_listing(), now=T0).listing.status is ListingStatus.EXPIRED
    assert not lc.expire_listing(make_listing(status=ListingStatus.PENDING_PAYMENT), now=T0).ok


def test_terminal_states_have_no_exits():
    for status in ListingStatus:
        if status.is_terminal:
            assert lc.TRANSITIONS[status] == frozenset()
            assert not any(lc.can_transition(status, target) for target in ListingStatus)


def test_cancel_rejects_open_offers(seller, config, make_listing, make_offer):
    open_offer = make_offer(id="ofr_a")
    withdrawn = make_offer(id="ofr_b", status=OfferStatus.CANCELLED)

    out = lc.cancel_listing(make_listing(), [open_offer, withdrawn], actor=seller, config=config, now=T0)

    assert [(o.id, o.status) for o in out.offers] == [("ofr_a", OfferStatus.REJECTED)]
    assert [e.event_type for e in out.events] == [ev.LISTING_DELETED, ev.OFFER_REJECTED]
    assert out.events[1].payload["reason"] == lc.LISTING_CANCELLED


def test_expire_rejects_open_offers(make_listing, make_offer):
    out = lc.expire_listing(make_listing(), [make_offer()], now=T0)

    assert out.offers[0].status is OfferStatus.REJECTED
    assert out.events[1].event_type == ev.OFFER_REJECTED
    assert out.events[1].payload["reason"] == lc.LISTING_EXPIRED


def test_update_is_frozen_once_payment_is_pending(seller, config, make_listing):
    patch = ListingUpdate.model_validate({"price": 1})
    out = lc.update_listing(make_listing(status=ListingStatus.PENDING_PAYMENT), actor=seller, patch=patch, config=config, now=T0)
    assert out.error.kind is ErrorKind.INVALID_TRANSITION
