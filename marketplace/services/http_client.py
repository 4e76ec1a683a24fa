from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import httpx


@dataclass(frozen=True)
class HttpResult:
    ok: bool
    status_code: int | None
    detail: dict[str, Any]

    error_code: str | None = None
    error_message: str | None = None
    retryable: bool = False


def _cap_text(s: str, *, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + f"...(truncated, {len(s)} chars)"


class EventSinkClient:
    """
    Delivers marketplace events to the host's event sink.

    - One AsyncClient per instance (connection pooling).
    - No retries here; the outbox lease/requeue cycle handles redelivery.
    - Returns a structured result with retryable classification.
    """

    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: float = 10.0,
        max_response_body_chars: int = 2_000,
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url
        self._max_body = max_response_body_chars
        self._default_headers = dict(default_headers or {})
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds), transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def publish(
        self,
        *,
        event_id: str,
        event_type: str,
        aggregate_type: str,
        aggregate_id: str,
        payload: dict[str, Any],
    ) -> HttpResult:
        headers = {**self._default_headers, "X-Event-Id": event_id, "X-Event-Type": event_type}
        body = {
            "id": event_id,
            "type": event_type,
            "aggregate_type": aggregate_type,
            "aggregate_id": aggregate_id,
            "data": payload,
        }

        try:
            resp = await self._client.post(self._url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            return HttpResult(ok=False, status_code=None, detail={"error": "timeout"}, error_code="TIMEOUT", error_message=str(e), retryable=True)
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            return HttpResult(ok=False, status_code=None, detail={"error": "request_error"}, error_code="REQUEST_ERROR", error_message=str(e), retryable=True)

        detail = {"raw": _cap_text(resp.text, max_chars=self._max_body)}

        if 200 <= resp.status_code < 300:
            return HttpResult(ok=True, status_code=resp.status_code, detail=detail)

        retryable = resp.status_code >= 500 or resp.status_code in (408, 429)
        return HttpResult(
            ok=False,
            status_code=resp.status_code,
            detail=detail,
            error_code=f"HTTP_{resp.status_code}",
            error_message=f"HTTP {resp.status_code}",
            retryable=retryable,
        )
