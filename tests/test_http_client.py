import json

import httpx
import pytest

from marketplace.services.http_client import EventSinkClient


def _client(handler) -> EventSinkClient:
    return EventSinkClient(url="http://sink.test/events", transport=httpx.MockTransport(handler))


async def _publish(client: EventSinkClient):
    try:
        return await client.publish(
            event_id="obx_1",
            event_type="marketplace.listing.sold",
            aggregate_type="listing",
            aggregate_id="lst_1",
            payload={"listing_id": "lst_1", "status": "SOLD"},
        )
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_publish_posts_event_envelope():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(202, text="accepted")

    res = await _publish(_client(handler))

    assert res.ok
    assert seen["headers"]["X-Event-Id"] == "obx_1"
    assert seen["headers"]["X-Event-Type"] == "marketplace.listing.sold"
    assert seen["body"] == {
        "id": "obx_1",
        "type": "marketplace.listing.sold",
        "aggregate_type": "listing",
        "aggregate_id": "lst_1",
        "data": {"listing_id": "lst_1", "status": "SOLD"},
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, retryable",
    [(503, True), (501, True), (505, True), (408, True), (429, True), (400, False), (404, False)],
)
async def test_error_statuses_are_classified(status, retryable):
    res = await _publish(_client(lambda request: httpx.Response(status)))
    assert not res.ok
    assert res.error_code == f"HTTP_{status}"
    assert res.retryable is retryable


@pytest.mark.asyncio
async def test_connection_errors_are_retryable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    res = await _publish(_client(handler))
    assert not res.ok
    assert res.error_code == "REQUEST_ERROR"
    assert res.retryable
