from typing import Any

from fastapi import APIRouter, Body, Depends

from marketplace.api.v1.deps import get_marketplace, to_response
from marketplace.schemas.common import OutcomeOut
from marketplace.services.auth import Actor, get_actor
from marketplace.services.marketplace import MarketplaceService

router = APIRouter()


# Bodies are taken raw: validation needs the configured limits and its
# failures must come back in the same envelope as every other Outcome.


@router.post("/listings", response_model=OutcomeOut, status_code=201)
async def create_listing(
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.create_listing(actor, payload))


@router.get("/listings/{listing_id}", response_model=OutcomeOut)
async def get_listing(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.get_listing(listing_id))


@router.patch("/listings/{listing_id}", response_model=OutcomeOut)
async def update_listing(
    listing_id: str,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.update_listing(actor, listing_id, payload))


@router.delete("/listings/{listing_id}", response_model=OutcomeOut)
async def cancel_listing(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.cancel_listing(actor, listing_id))


@router.post("/listings/{listing_id}/submit", response_model=OutcomeOut)
async def submit_listing(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.submit_listing(actor, listing_id))


@router.post("/listings/{listing_id}/approve", response_model=OutcomeOut)
async def approve_listing(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.approve_listing(actor, listing_id))
