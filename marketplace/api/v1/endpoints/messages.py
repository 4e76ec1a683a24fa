from typing import Any

from fastapi import APIRouter, Body, Depends

from marketplace.api.v1.deps import get_marketplace, to_response
from marketplace.schemas.common import OutcomeOut
from marketplace.services.auth import Actor, get_actor
from marketplace.services.marketplace import MarketplaceService

router = APIRouter()


@router.post("/listings/{listing_id}/messages", response_model=OutcomeOut, status_code=201)
async def create_message(
    listing_id: str,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    svc: MarketplaceService = Depends(get_marketplace),
) -> OutcomeOut:
    return to_response(await svc.create_message(actor, listing_id, payload))
