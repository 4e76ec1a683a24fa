from typing import Any

from pydantic import BaseModel, Field

from marketplace.domain.snapshots import ListingSnapshot, MessageSnapshot, OfferSnapshot


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class EventOut(BaseModel):
    event_type: str
    aggregate_type: str
    aggregate_id: str
    payload: dict[str, Any] = Field(default_factory=dict)


class OutcomeOut(BaseModel):
    ok: bool = True
    listing: ListingSnapshot | None = None
    offers: list[OfferSnapshot] = Field(default_factory=list)
    message: MessageSnapshot | None = None
    events: list[EventOut] = Field(default_factory=list)


class PaymentCompleted(BaseModel):
    listing_id: str = Field(min_length=1)


class ExpireSweepOut(BaseModel):
    expired: list[str] = Field(default_factory=list)
