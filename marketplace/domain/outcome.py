"""
Tagged results returned by every lifecycle operation.

Business failures are values, never exceptions: the host maps
Failure.kind onto its transport (HTTP status, log line, retry).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from marketplace.domain.events import DomainEvent
from marketplace.domain.snapshots import ListingSnapshot, MessageSnapshot, OfferSnapshot


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    LISTING_UNAVAILABLE = "LISTING_UNAVAILABLE"
    SELF_OFFER = "SELF_OFFER"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Outcome:
    ok: bool
    listing: ListingSnapshot | None = None
    offers: tuple[OfferSnapshot, ...] = ()
    message: MessageSnapshot | None = None
    events: tuple[DomainEvent, ...] = ()
    error: Failure | None = None

    # True when nothing needs to be written (e.g. duplicate payment notification)
    noop: bool = False

    @classmethod
    def success(
        cls,
        *,
        listing: ListingSnapshot | None = None,
        offers: Iterable[OfferSnapshot] = (),
        message: MessageSnapshot | None = None,
        events: Iterable[DomainEvent] = (),
        noop: bool = False,
    ) -> "Outcome":
        return cls(
            ok=True,
            listing=listing,
            offers=tuple(offers),
            message=message,
            events=tuple(events),
            noop=noop,
        )

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, **details: Any) -> "Outcome":
        return cls(ok=False, error=Failure(kind=kind, message=message, details=details))

    @property
    def offer(self) -> OfferSnapshot | None:
        # The offer an operation acted on is always first
        return self.offers[0] if self.offers else None


def forbidden(message: str, **details: Any) -> Outcome:
    return Outcome.failure(ErrorKind.FORBIDDEN, message, **details)


def not_found(entity: str, entity_id: str) -> Outcome:
    return Outcome.failure(ErrorKind.NOT_FOUND, f"{entity.capitalize()} not found", entity=entity, id=entity_id)


def invalid_transition(entity: str, current: Enum, target: Enum, allowed: Iterable[Enum]) -> Outcome:
    allowed_values = sorted(s.value for s in allowed)
    return Outcome.failure(
        ErrorKind.INVALID_TRANSITION,
        f"Invalid {entity} transition: {current.value} -> {target.value}",
        entity=entity,
        **{"from": current.value, "to": target.value, "allowed": allowed_values},
    )


def limit_exceeded(limit: str, maximum: int, current: int) -> Outcome:
    return Outcome.failure(
        ErrorKind.LIMIT_EXCEEDED,
        f"Limit {limit} reached ({current}/{maximum})",
        limit=limit,
        max=maximum,
        current=current,
    )


def validation_failed(errors: list[dict[str, Any]]) -> Outcome:
    return Outcome.failure(ErrorKind.VALIDATION_ERROR, "Validation failed", errors=errors)
