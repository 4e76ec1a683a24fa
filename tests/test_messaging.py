from marketplace.core.config import FeatureFlags, Limits, MarketplaceConfig
from marketplace.domain import events as ev
from marketplace.domain.enums import ListingStatus
from marketplace.domain.outcome import ErrorKind
from marketplace.schemas.message import MessageCreate
from marketplace.services.messaging import create_message

from conftest import T0


def test_any_user_may_post(buyer, config, make_listing):
    listing = make_listing(status=ListingStatus.SOLD)
    out = create_message(
        listing, message_id="msg_1", actor=buyer, data=MessageCreate(content="Thanks!"), message_count=0, config=config, now=T0
    )
    assert out.ok
    assert out.message.sender_id == buyer.user_id
    assert out.message.listing_id == listing.id
    assert out.events[0].event_type == ev.MESSAGE_CREATED


def test_message_limit(buyer, make_listing):
    config = MarketplaceConfig(limits=Limits(max_messages_per_listing=3))
    out = create_message(
        make_listing(), message_id="msg_1", actor=buyer, data=MessageCreate(content="hi"), message_count=3, config=config, now=T0
    )
    assert out.error.kind is ErrorKind.LIMIT_EXCEEDED
    assert out.error.details == {"limit": "max_messages_per_listing", "max": 3, "current": 3}


def test_messaging_disabled(buyer, make_listing):
    config = MarketplaceConfig(features=FeatureFlags(messaging=False))
    out = create_message(
        make_listing(), message_id="msg_1", actor=buyer, data=MessageCreate(content="hi"), message_count=0, config=config, now=T0
    )
    assert out.error.kind is ErrorKind.FORBIDDEN
