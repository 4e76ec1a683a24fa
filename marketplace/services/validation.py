"""
Shape and bounds checks for incoming payloads.

Every function is pure: it returns a ValidationResult carrying either the
parsed model or the complete list of violated constraints (pydantic
collects all field errors, not just the first).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Type, TypeVar

from pydantic import BaseModel, ValidationError

from marketplace.core.config import Limits
from marketplace.schemas.listing import ListingCreate, ListingUpdate
from marketplace.schemas.message import MessageCreate
from marketplace.schemas.offer import OfferCreate, OfferUpdate


M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class ValidationResult(Generic[M]):
    ok: bool
    value: M | None
    errors: list[dict[str, Any]] = field(default_factory=list)


def _validate(model: Type[M], payload: Any, *, context: dict[str, Any] | None = None) -> ValidationResult[M]:
    try:
        obj = model.model_validate(payload, context=context)
    except ValidationError as e:
        # keep loc/msg/type only so details stay JSON-safe
        return ValidationResult(
            ok=False,
            value=None,
            errors=e.errors(include_url=False, include_context=False, include_input=False),
        )
    return ValidationResult(ok=True, value=obj)


def validate_listing_input(payload: Any, limits: Limits) -> ValidationResult[ListingCreate]:
    return _validate(ListingCreate, payload, context={"max_images_per_listing": limits.max_images_per_listing})


def validate_listing_patch(payload: Any, limits: Limits) -> ValidationResult[ListingUpdate]:
    return _validate(ListingUpdate, payload, context={"max_images_per_listing": limits.max_images_per_listing})


def validate_offer_input(payload: Any) -> ValidationResult[OfferCreate]:
    return _validate(OfferCreate, payload)


def validate_offer_patch(payload: Any) -> ValidationResult[OfferUpdate]:
    return _validate(OfferUpdate, payload)


def validate_message_input(payload: Any) -> ValidationResult[MessageCreate]:
    return _validate(MessageCreate, payload)
