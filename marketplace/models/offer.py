from sqlalchemy import Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, TimestampMixin


class ListingOffer(TimestampMixin, Base):
    __tablename__ = "listing_offers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("ofr"))

    listing_id: Mapped[str] = mapped_column(String, ForeignKey("marketplace_listings.id"), nullable=False, index=True)
    buyer_id: Mapped[str] = mapped_column(String(120), nullable=False)

    amount: Mapped[float] = mapped_column(Float, nullable=False)

    # PENDING | ACCEPTED | REJECTED | CANCELLED
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="PENDING")

    message: Mapped[str | None] = mapped_column(Text, nullable=True)
