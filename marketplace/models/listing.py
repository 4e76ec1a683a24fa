from sqlalchemy import Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, JSONType, TimestampMixin


class MarketplaceListing(TimestampMixin, Base):
    __tablename__ = "marketplace_listings"
    __table_args__ = (
        Index("ix_marketplace_listings_seller_status", "seller_id", "status"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lst"))

    # never changes after creation
    seller_id: Mapped[str] = mapped_column(String(120), nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)

    # NEW | LIKE_NEW | GOOD | FAIR
    condition: Mapped[str] = mapped_column(String(20), nullable=False)

    images: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # DRAFT | PENDING_APPROVAL | AVAILABLE | PENDING_PAYMENT | SOLD | CANCELLED | EXPIRED
    status: Mapped[str] = mapped_column(String(30), nullable=False)

    # compare-and-swap token for the listing aggregate (listing + offers + messages)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
