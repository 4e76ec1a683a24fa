from datetime import datetime

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base


class ListingMessage(Base):
    """Immutable once written."""
    __tablename__ = "listing_messages"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("msg"))

    listing_id: Mapped[str] = mapped_column(String, ForeignKey("marketplace_listings.id"), nullable=False, index=True)
    sender_id: Mapped[str] = mapped_column(String(120), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
