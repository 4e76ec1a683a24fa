import pytest

from marketplace.services.http_client import HttpResult
from worker.tasks import settle_values


def _failure(status: int, retryable: bool) -> HttpResult:
    return HttpResult(
        ok=False,
        status_code=status,
        detail={},
        error_code=f"HTTP_{status}",
        error_message=f"HTTP {status}",
        retryable=retryable,
    )


def test_delivered_row_is_done():
    values = settle_values(HttpResult(ok=True, status_code=202, detail={}), attempts=1)
    assert values["status"] == "done"
    assert values["last_error"] is None


def test_retryable_failure_goes_back_to_pending():
    values = settle_values(_failure(503, True), attempts=1, max_attempts=3)
    assert values == {"status": "pending", "processing_started_at": None, "last_error": "HTTP_503: HTTP 503"}


@pytest.mark.parametrize("attempts", [3, 7])
def test_retryable_failure_is_dead_lettered_when_attempts_run_out(attempts):
    values = settle_values(_failure(503, True), attempts=attempts, max_attempts=3)
    assert values["status"] == "failed"
    assert values["last_error"].startswith("attempts exhausted")


def test_rejected_event_fails_immediately():
    values = settle_values(_failure(400, False), attempts=1, max_attempts=3)
    assert values == {"status": "failed", "last_error": "HTTP_400: HTTP 400"}
