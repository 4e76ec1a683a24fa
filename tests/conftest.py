from datetime import datetime, timezone

import httpx
import pytest

from marketplace.api.v1.deps import get_marketplace
from marketplace.core.clock import FixedClock
from marketplace.core.config import FeatureFlags, MarketplaceConfig
from marketplace.domain.enums import ListingCondition, ListingStatus, OfferStatus
from marketplace.domain.snapshots import ListingSnapshot, OfferSnapshot
from marketplace.main import app
from marketplace.services.auth import Actor
from marketplace.services.marketplace import MarketplaceService
from marketplace.services.storage import InMemoryMarketplaceStore


T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def seller() -> Actor:
    return Actor(user_id="usr_seller", role="PARENT")


@pytest.fixture
def buyer() -> Actor:
    return Actor(user_id="usr_buyer", role="CHILD")


@pytest.fixture
def other_buyer() -> Actor:
    return Actor(user_id="usr_buyer_2", role="PARENT")


@pytest.fixture
def approver() -> Actor:
    return Actor(user_id="usr_approver", role="PARENT")


@pytest.fixture
def config() -> MarketplaceConfig:
    return MarketplaceConfig()


@pytest.fixture
def auto_config() -> MarketplaceConfig:
    return MarketplaceConfig(features=FeatureFlags(auto_approval=True))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def listing_payload():
    def _make(**overrides) -> dict:
        body = {
            "title": "Kids bike",
            "description": "16 inch, training wheels included",
            "price": 40.0,
            "condition": "GOOD",
            "images": ["https://img.example/bike-1.jpg"],
            "tags": ["bike", "kids"],
        }
        body.update(overrides)
        return body
    return _make


@pytest.fixture
def make_listing(seller):
    def _make(**overrides) -> ListingSnapshot:
        data = {
            "id": "lst_1",
            "seller_id": seller.user_id,
            "title": "Kids bike",
            "description": "16 inch",
            "price": 40.0,
            "condition": ListingCondition.GOOD,
            "images": ("https://img.example/bike-1.jpg",),
            "tags": ("bike",),
            "status": ListingStatus.AVAILABLE,
            "created_at": T0,
            "updated_at": T0,
        }
        data.update(overrides)
        return ListingSnapshot(**data)
    return _make


@pytest.fixture
def make_offer(buyer):
    def _make(**overrides) -> OfferSnapshot:
        data = {
            "id": "ofr_1",
            "listing_id": "lst_1",
            "buyer_id": buyer.user_id,
            "amount": 35.0,
            "status": OfferStatus.PENDING,
            "message": None,
            "created_at": T0,
            "updated_at": T0,
        }
        data.update(overrides)
        return OfferSnapshot(**data)
    return _make


@pytest.fixture
def store() -> InMemoryMarketplaceStore:
    return InMemoryMarketplaceStore()


@pytest.fixture
def service(store, config, clock) -> MarketplaceService:
    return MarketplaceService(store, config=config, clock=clock)


@pytest.fixture
def auto_service(store, auto_config, clock) -> MarketplaceService:
    return MarketplaceService(store, config=auto_config, clock=clock)


@pytest.fixture
async def available_listing(service, seller, approver, listing_payload) -> ListingSnapshot:
    created = await service.create_listing(seller, listing_payload())
    approved = await service.approve_listing(approver, created.listing.id)
    assert approved.ok
    return approved.listing


@pytest.fixture
async def client(service):
    """
    HTTP client backed by the in-memory store via dependency override.
    """
    async def _override_get_marketplace():
        return service

    app.dependency_overrides[get_marketplace] = _override_get_marketplace

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def headers_for(actor: Actor) -> dict:
    return {"X-User-Id": actor.user_id, "X-User-Role": actor.role}


@pytest.fixture
def as_user():
    return headers_for
