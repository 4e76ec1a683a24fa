from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.v1.deps import get_marketplace
from marketplace.core.db import get_db
from marketplace.schemas.common import ExpireSweepOut
from marketplace.services.internal_admin import require_internal_admin
from marketplace.services.marketplace import MarketplaceService
from marketplace.services.outbox_dispatcher import dispatch_outbox

router = APIRouter()


@router.post("/internal/outbox/dispatch", dependencies=[Depends(require_internal_admin)])
async def internal_dispatch_outbox(db: AsyncSession = Depends(get_db)) -> dict:
    count = await dispatch_outbox(db, batch_size=100)
    return {"dispatched": count}


@router.post(
    "/internal/listings/expire",
    response_model=ExpireSweepOut,
    dependencies=[Depends(require_internal_admin)],
)
async def internal_expire_listings(svc: MarketplaceService = Depends(get_marketplace)) -> ExpireSweepOut:
    return ExpireSweepOut(expired=await svc.expire_stale_listings())
