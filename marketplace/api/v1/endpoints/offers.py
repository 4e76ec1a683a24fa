from typing import Any

from fastapi import APIRouter, Body, Depends

from marketplace.api.v1.deps import get_marketplace, to_response
from marketplace.schemas.common import OutcomeOut
from marketplace.services.auth import Actor, get_actor
from marketplace.services.marketplace import MarketplaceService

router = APIRouter()


@router.post("/listings/{listing_id}/offers", response_model=OutcomeOut, status_code=201)
async def create_offer(
    listing_id: str,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.create_offer(actor, listing_id, payload))


@router.get("/offers/{offer_id}", response_model=OutcomeOut)
async def get_offer(
    offer_id: str,
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.get_offer(offer_id))


@router.patch("/offers/{offer_id}", response_model=OutcomeOut)
async def update_offer(
    offer_id: str,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.update_offer(actor, offer_id, payload))


@router.post("/offers/{offer_id}/accept", response_model=OutcomeOut)
async def accept_offer(
    offer_id: str,
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.accept_offer(actor, offer_id))


@router.post("/offers/{offer_id}/reject", response_model=OutcomeOut)
async def reject_offer(
    offer_id: str,
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.reject_offer(actor, offer_id))


@router.post("/offers/{offer_id}/cancel", response_model=OutcomeOut)
async def cancel_offer(
    offer_id: str,
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.cancel_offer(actor, offer_id))
