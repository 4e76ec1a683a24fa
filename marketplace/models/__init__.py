from marketplace.models.base import Base  # noqa: F401

from marketplace.models.listing import MarketplaceListing  # noqa: F401
from marketplace.models.offer import ListingOffer  # noqa: F401
from marketplace.models.message import ListingMessage  # noqa: F401
from marketplace.models.outbox import OutboxEvent  # noqa: F401
