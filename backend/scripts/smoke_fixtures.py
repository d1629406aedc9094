#!/usr/bin/env python3
"""
Smoke check for a running Scoreline API.

Checks:
  1. /health returns 200 + status ok
  2. /ready reports the fixture store reachable
  3. /status exposes reconciler and circuit state
  4. /fixtures/date/{today} returns a list with cache headers
  5. the same request again is served from cache (fresh)
  6. /fixtures/date/not-a-date answers 400
  7. /fixtures/live returns a list

Usage:
  python backend/scripts/smoke_fixtures.py [BASE_URL]

  BASE_URL defaults to http://localhost:8000.
"""
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"

BASE = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

passed = 0
failed = 0
warnings = 0


def _get(url: str, timeout: int = 30) -> tuple[int, dict[str, str], Any]:
    """Returns (status, headers, decoded body or None)."""
    req = Request(url, headers={"Accept": "application/json"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            return resp.status, dict(resp.headers), json.loads(resp.read() or b"null")
    except HTTPError as e:
        return e.code, dict(e.headers or {}), None
    except (URLError, TimeoutError, OSError) as e:
        return 0, {}, {"__network_error__": str(e)}


def ok(msg: str) -> None:
    global passed
    passed += 1
    print(f"  {GREEN}PASS{RESET}  {msg}")


def fail(msg: str) -> None:
    global failed
    failed += 1
    print(f"  {RED}FAIL{RESET}  {msg}")


def warn(msg: str) -> None:
    global warnings
    warnings += 1
    print(f"  {YELLOW}WARN{RESET}  {msg}")


def main() -> None:
    print("\n=== Scoreline Smoke Check ===")
    print(f"Backend: {BASE}\n")

    print("[1] Health")
    status, _, body = _get(f"{BASE}/health")
    if status == 200 and isinstance(body, dict) and body.get("status") == "ok":
        ok("/health returns status=ok")
    else:
        fail(f"/health unexpected: {status} {body}")

    print("[2] Readiness")
    status, _, body = _get(f"{BASE}/ready")
    if status == 200:
        ok(f"/ready: store={body.get('store')}")
    else:
        fail(f"/ready returned {status}: {body}")

    print("[3] Status")
    status, _, body = _get(f"{BASE}/status")
    if status == 200 and isinstance(body, dict):
        reconciler = body.get("reconciler")
        if reconciler:
            circuit = reconciler.get("circuit", {})
            ok(f"/status: tracked={reconciler.get('tracked')} circuit={circuit.get('state')}")
        else:
            warn("/status: reconciler not running in this process")
    else:
        fail(f"/status returned {status}")

    print("[4] Fixtures for today")
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    status, headers, body = _get(f"{BASE}/fixtures/date/{today}")
    if status == 200 and isinstance(body, list):
        ok(f"/fixtures/date/{today}: {len(body)} fixtures, cache={headers.get('X-Cache-Status')}")
        if not body:
            warn("No fixtures in the window; upstream may be rate limited or off-season")
    else:
        fail(f"/fixtures/date/{today} returned {status}")

    print("[5] Cached repeat")
    status, headers, _ = _get(f"{BASE}/fixtures/date/{today}")
    cache = headers.get("X-Cache-Status")
    if status == 200 and cache == "fresh":
        ok("repeat request served fresh from cache")
    elif status == 200:
        warn(f"repeat request cache={cache}")
    else:
        fail(f"repeat request returned {status}")

    print("[6] Malformed date")
    status, _, _ = _get(f"{BASE}/fixtures/date/not-a-date")
    if status == 400:
        ok("malformed date answers 400")
    else:
        fail(f"malformed date answered {status}")

    print("[7] Live")
    status, headers, body = _get(f"{BASE}/fixtures/live")
    if status == 200 and isinstance(body, list):
        ok(f"/fixtures/live: {len(body)} live, cache={headers.get('X-Cache-Status')}")
    else:
        fail(f"/fixtures/live returned {status}")

    print(f"\n=== Results: {GREEN}{passed} passed{RESET}, {RED}{failed} failed{RESET}, {YELLOW}{warnings} warnings{RESET} ===\n")
    sys.exit(1 if failed > 0 else 0)


if __name__ == "__main__":
    main()
