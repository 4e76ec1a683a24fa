import os

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from marketplace.domain.enums import ListingStatus, OfferStatus
from marketplace.models import Base
from marketplace.models.outbox import OutboxEvent
from marketplace.services.marketplace import MarketplaceService
from marketplace.services.sql_storage import SqlAlchemyMarketplaceStore


pytestmark = pytest.mark.skipif(not os.getenv("DATABASE_URL_TEST"), reason="DATABASE_URL_TEST is not set")


@pytest.fixture
async def session_factory():
    engine = create_async_engine(os.environ["DATABASE_URL_TEST"], pool_pre_ping=True)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def sql_service(db_session, config, clock) -> MarketplaceService:
    return MarketplaceService(SqlAlchemyMarketplaceStore(db_session), config=config, clock=clock)


async def test_commit_writes_listing_and_outbox(sql_service, db_session, seller, approver, listing_payload):
    created = await sql_service.create_listing(seller, listing_payload())
    listing_id = created.listing.id

    approved = await sql_service.approve_listing(approver, listing_id)
    assert approved.listing.version == 1

    store = SqlAlchemyMarketplaceStore(db_session)
    loaded = await store.load_listing(listing_id)
    assert loaded.status is ListingStatus.AVAILABLE
    assert loaded.version == 1
    assert loaded.images == ("https://img.example/bike-1.jpg",)

    count = (await db_session.execute(select(func.count()).select_from(OutboxEvent))).scalar_one()
    assert count == 2


async def test_stale_version_is_rejected(sql_service, db_session, seller, approver, listing_payload):
    listing = (await sql_service.create_listing(seller, listing_payload())).listing
    store = SqlAlchemyMarketplaceStore(db_session)

    assert await store.commit(expected_version=0, listing=listing.model_copy(update={"title": "first"}))
    assert not await store.commit(expected_version=0, listing=listing.model_copy(update={"title": "second"}))

    loaded = await store.load_listing(listing.id)
    assert loaded.title == "first"
    assert loaded.version == 1


async def test_accept_is_atomic_across_rows(sql_service, db_session, seller, buyer, other_buyer, approver, listing_payload):
    listing = (await sql_service.create_listing(seller, listing_payload())).listing
    await sql_service.approve_listing(approver, listing.id)
    a = (await sql_service.create_offer(buyer, listing.id, {"amount": 30})).offer
    b = (await sql_service.create_offer(other_buyer, listing.id, {"amount": 31})).offer

    out = await sql_service.accept_offer(seller, a.id)
    assert out.ok

    store = SqlAlchemyMarketplaceStore(db_session)
    offers = {o.id: o.status for o in await store.load_offers_for_listing(listing.id)}
    assert offers == {a.id: OfferStatus.ACCEPTED, b.id: OfferStatus.REJECTED}
    assert (await store.load_listing(listing.id)).status is ListingStatus.PENDING_PAYMENT
    assert await store.count_active_listings_for_seller(seller.user_id) == 1


async def test_expirable_listing_query(sql_service, db_session, clock, seller, approver, listing_payload):
    from datetime import timedelta

    listing = (await sql_service.create_listing(seller, listing_payload())).listing
    store = SqlAlchemyMarketplaceStore(db_session)

    assert await store.find_expirable_listing_ids(clock.now()) == []
    assert await store.find_expirable_listing_ids(clock.now() + timedelta(seconds=1)) == [listing.id]
