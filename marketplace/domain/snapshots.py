"""
Typed point-in-time views of persisted entities.

Snapshots are built once at the storage boundary (from ORM rows or from
the in-memory store) and are immutable afterwards; lifecycle engines
return new snapshots via model_copy().
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from marketplace.domain.enums import ListingCondition, ListingStatus, OfferStatus


class ListingSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    seller_id: str
    title: str
    description: str
    price: float = Field(ge=0)
    condition: ListingCondition
    images: tuple[str, ...]
    tags: tuple[str, ...] = ()
    status: ListingStatus
    created_at: datetime
    updated_at: datetime

    # optimistic concurrency token, bumped by the store on every commit
    version: int = 0


class OfferSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    listing_id: str
    buyer_id: str
    amount: float = Field(ge=0)
    status: OfferStatus
    message: str | None = None
    created_at: datetime
    updated_at: datetime


class MessageSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    listing_id: str
    sender_id: str
    content: str
    created_at: datetime
