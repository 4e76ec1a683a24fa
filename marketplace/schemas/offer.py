from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OfferCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    amount: float = Field(ge=0, allow_inf_nan=False)
    message: str | None = Field(default=None, max_length=2_000)


class OfferUpdate(BaseModel):
    """
    Buyer-side terms patch. Seller decisions (accept/reject) have their own
    operations, so status is not a field here.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    amount: Annotated[float, Field(ge=0, allow_inf_nan=False)] | None = None
    message: Annotated[str, Field(max_length=2_000)] | None = None

    @field_validator("amount")
    @classmethod
    def reject_null_amount(cls, v: float | None) -> float | None:
        if v is None:
            raise ValueError("amount may be omitted but not null")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
