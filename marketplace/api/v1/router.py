from fastapi import APIRouter

from marketplace.api.v1.endpoints.health import router as health_router
from marketplace.api.v1.endpoints.listings import router as listings_router
from marketplace.api.v1.endpoints.offers import router as offers_router
from marketplace.api.v1.endpoints.messages import router as messages_router
from marketplace.api.v1.endpoints.events import router as events_router
from marketplace.api.v1.endpoints.internal import router as internal_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(listings_router, tags=["listings"])
router.include_router(offers_router, tags=["offers"])
router.include_router(messages_router, tags=["messages"])
router.include_router(events_router, tags=["events"])
router.include_router(internal_router, tags=["internal"])
