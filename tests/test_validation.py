import math

from marketplace.core.config import Limits
from marketplace.services.validation import (
    validate_listing_input,
    validate_listing_patch,
    validate_message_input,
    validate_offer_input,
    validate_offer_patch,
)


def _fields(result) -> set:
    return {e["loc"][0] for e in result.errors}


def test_valid_listing_is_parsed(listing_payload):
    res = validate_listing_input(listing_payload(title="  Bike  "), Limits())
    assert res.ok
    assert res.value.title == "Bike"
    assert res.value.draft is False


def test_listing_collects_every_violation(listing_payload):
    payload = listing_payload(title="", price=-1, condition="BROKEN", images=[])
    res = validate_listing_input(payload, Limits())
    assert not res.ok
    assert res.value is None
    assert _fields(res) == {"title", "price", "condition", "images"}


def test_missing_required_fields_are_reported():
    res = validate_listing_input({}, Limits())
    assert not res.ok
    assert _fields(res) == {"title", "description", "price", "condition", "images"}


def test_non_finite_price_is_rejected(listing_payload):
    res = validate_listing_input(listing_payload(price=math.inf), Limits())
    assert not res.ok
    assert _fields(res) == {"price"}


def test_image_count_respects_configured_limit(listing_payload):
    images = [f"https://img.example/{i}.jpg" for i in range(3)]
    assert validate_listing_input(listing_payload(images=images), Limits(max_images_per_listing=3)).ok

    res = validate_listing_input(listing_payload(images=images), Limits(max_images_per_listing=2))
    assert not res.ok
    assert _fields(res) == {"images"}


def test_blank_image_url_is_rejected(listing_payload):
    res = validate_listing_input(listing_payload(images=["   "]), Limits())
    assert not res.ok


def test_duplicate_tags_are_collapsed(listing_payload):
    res = validate_listing_input(listing_payload(tags=["bike", "kids", "bike"]), Limits())
    assert res.value.tags == ["bike", "kids"]


def test_unknown_fields_are_rejected(listing_payload):
    res = validate_listing_input(listing_payload(status="SOLD"), Limits())
    assert not res.ok
    assert res.errors[0]["type"] == "extra_forbidden"


def test_patch_only_carries_supplied_fields():
    res = validate_listing_patch({"price": 10}, Limits())
    assert res.ok
    assert res.value.changes() == {"price": 10.0}


def test_patch_rejects_explicit_null_and_status():
    assert not validate_listing_patch({"title": None}, Limits()).ok
    assert not validate_listing_patch({"status": "SOLD"}, Limits()).ok
    assert not validate_listing_patch({"seller_id": "someone"}, Limits()).ok


def test_patch_applies_image_limit():
    res = validate_listing_patch({"images": ["a", "b"]}, Limits(max_images_per_listing=1))
    assert not res.ok


def test_offer_amount_bounds():
    assert validate_offer_input({"amount": 0}).ok
    assert not validate_offer_input({"amount": -5}).ok
    assert not validate_offer_input({}).ok
    assert not validate_offer_input({"amount": 10, "message": "x" * 2001}).ok


def test_offer_patch_allows_clearing_message_but_not_amount():
    assert validate_offer_patch({"message": None}).value.changes() == {"message": None}
    assert not validate_offer_patch({"amount": None}).ok


def test_message_content_bounds():
    assert validate_message_input({"content": "Is it still available?"}).ok
    assert not validate_message_input({"content": "   "}).ok
    assert not validate_message_input({"content": "x" * 5001}).ok
