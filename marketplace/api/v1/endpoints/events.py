from fastapi import APIRouter, Depends

from marketplace.api.v1.deps import get_marketplace, to_response
from marketplace.domain.outcome import ErrorKind
from marketplace.schemas.common import PaymentCompleted
from marketplace.services.internal_admin import require_internal_admin
from marketplace.services.marketplace import MarketplaceService

router = APIRouter()


@router.post("/events/payment-completed", dependencies=[Depends(require_internal_admin)])
async def payment_completed(
    payload: PaymentCompleted,
    svc: MarketplaceService = Depends(get_marketplace),
) -> dict:
    outcome = await svc.handle_payment_completed(payload.listing_id)
    if not outcome.ok and outcome.error.kind is ErrorKind.CONFLICT:
        # 409 so the payment system redelivers; the sale is not recorded yet
        to_response(outcome)

    # Duplicates and stray notifications are acknowledged so they are not redelivered forever.
    return {
        "acknowledged": True,
        "applied": outcome.ok and not outcome.noop,
        "status": outcome.listing.status.value if outcome.listing else None,
    }
