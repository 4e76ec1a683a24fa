from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any
import urllib.request
import urllib.error


DEFAULT_BASE_URL = os.getenv("MARKETPLACE_BASE_URL", "http://localhost:8000")
DEFAULT_ADMIN_KEY = os.getenv("INTERNAL_ADMIN_KEY", "")

DEFAULT_TIMEOUT_SECONDS = 60


def http_post(url: str, admin_key: str) -> dict[str, Any]:
    req = urllib.request.Request(
        url=url,
        data=b"",
        method="POST",
        headers={"X-Internal-Admin-Key": admin_key},
    )
    try:
        with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT_SECONDS) as resp:
            raw = resp.read().decode("utf-8")
            return json.loads(raw) if raw else {}
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace")
        print(f"HTTP {e.code} {e.reason} for {url}", file=sys.stderr)
        if body:
            print(body, file=sys.stderr)
        return {"error": {"status": e.code, "reason": e.reason, "body": body}}
    except urllib.error.URLError as e:
        print(f"Network error for {url}: {e}", file=sys.stderr)
        return {"error": {"reason": str(e)}}


def main() -> int:
    p = argparse.ArgumentParser(description="Expire listings that have not been touched within the TTL.")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL)
    p.add_argument("--admin-key", default=DEFAULT_ADMIN_KEY)
    p.add_argument("--dispatch", action="store_true", help="also flush the outbox after the sweep")
    args = p.parse_args()

    if not args.admin_key:
        print("Missing INTERNAL_ADMIN_KEY (env) or --admin-key", file=sys.stderr)
        return 2

    base_url = args.base_url.rstrip("/")

    resp = http_post(f"{base_url}/v1/internal/listings/expire", args.admin_key)
    print(json.dumps(resp, indent=2, ensure_ascii=False))
    if "error" in resp:
        return 1

    if args.dispatch:
        resp = http_post(f"{base_url}/v1/internal/outbox/dispatch", args.admin_key)
        print(json.dumps(resp, indent=2, ensure_ascii=False))
        if "error" in resp:
            return 1

    return 0

if __name__ == "__main__":
    raise SystemExit(main())
