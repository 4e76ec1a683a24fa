from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from marketplace.domain.enums import ListingCondition


def _check_image_limit(images: list[str] | None, info: ValidationInfo) -> list[str] | None:
    # limit comes from MarketplaceConfig.limits, passed as validation context
    if images is None:
        return images
    limit = (info.context or {}).get("max_images_per_listing")
    if limit is not None and len(images) > limit:
        raise ValueError(f"at most {limit} images allowed, got {len(images)}")
    if any(not url for url in images):
        raise ValueError("image urls must be non-empty")
    return images


def _dedupe_tags(tags: list[str] | None) -> list[str] | None:
    if tags is None:
        return tags
    seen: dict[str, None] = {}
    for t in tags:
        if t:
            seen.setdefault(t, None)
    return list(seen)


class ListingCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=20_000)
    price: float = Field(ge=0, allow_inf_nan=False)
    condition: ListingCondition
    images: list[str] = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)

    # create as DRAFT; submit later
    draft: bool = False

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str], info: ValidationInfo) -> list[str]:
        return _check_image_limit(v, info)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        return _dedupe_tags(v)


class ListingUpdate(BaseModel):
    """
    Seller patch. Only the fields present are applied.

    status and seller_id are not accepted: status changes only through the
    dedicated transitions and seller_id never changes.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: Annotated[str, Field(min_length=1, max_length=200)] | None = None
    description: Annotated[str, Field(min_length=1, max_length=20_000)] | None = None
    price: Annotated[float, Field(ge=0, allow_inf_nan=False)] | None = None
    condition: ListingCondition | None = None
    images: Annotated[list[str], Field(min_length=1)] | None = None
    tags: list[str] | None = None

    @field_validator("title", "description", "price", "condition", "images", "tags")
    @classmethod
    def reject_null(cls, v):
        # defaults are not validated, so this only fires on an explicit null
        if v is None:
            raise ValueError("field may be omitted but not null")
        return v

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str] | None, info: ValidationInfo) -> list[str] | None:
        return _check_image_limit(v, info)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        return _dedupe_tags(v)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
