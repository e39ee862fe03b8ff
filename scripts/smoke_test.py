#!/usr/bin/env python3
"""HTTP smoke checks for a running SnapStudy deployment.

Only read-only and rejected requests are sent, so it is safe against production.

Usage:
  ./venv/bin/python scripts/smoke_test.py
  ./venv/bin/python scripts/smoke_test.py --base-url https://api.your-domain.com
"""

from __future__ import annotations

import argparse
import json
import os
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

UNKNOWN_EMAIL = "smoke-nobody@snapstudy.invalid"


@dataclass
class HttpResult:
    status: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    elapsed_ms: int = 0
    error: str = ""

    def envelope(self) -> Dict[str, Any]:
        try:
            parsed = json.loads(self.body or "{}")
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}


@dataclass
class SmokeCheck:
    label: str
    method: str
    path: str
    status: int
    payload: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    authenticated: bool = False
    # Extra assertion on the parsed envelope.
    expect: Optional[Callable[[Dict[str, Any]], bool]] = None


def send(method: str, url: str, payload=None, headers=None, timeout: float = 10.0) -> HttpResult:
    data = None
    all_headers = {"Accept": "application/json", **(headers or {})}
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        all_headers.setdefault("Content-Type", "application/json")
    req = urllib.request.Request(url, data=data, method=method, headers=all_headers)
    started = time.monotonic()
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            status, raw, raw_headers = response.status, response.read(), response.headers
    except urllib.error.HTTPError as exc:
        status, raw, raw_headers = exc.code, exc.read(), exc.headers
    except (urllib.error.URLError, OSError) as exc:
        return HttpResult(status=0, error=str(exc))
    return HttpResult(
        status=status,
        body=raw.decode("utf-8", errors="replace"),
        headers=dict(raw_headers.items()),
        elapsed_ms=int((time.monotonic() - started) * 1000),
    )


def default_checks() -> List[SmokeCheck]:
    return [
        SmokeCheck("Health endpoint reachable", "GET", "/api/health", 200,
                   expect=lambda env: env.get("success") is True),
        SmokeCheck("Register lists field errors", "POST", "/api/auth/register", 400,
                   payload={"name": "x", "email": "not-an-email", "password": "weak"},
                   expect=lambda env: len(env.get("errors") or []) >= 2),
        SmokeCheck("Login rejects unknown account", "POST", "/api/auth/login", 401,
                   payload={"email": UNKNOWN_EMAIL, "password": "Smoke123"}),
        SmokeCheck("Verify-OTP rejects malformed code", "POST", "/api/auth/verify-otp", 400,
                   payload={"email": UNKNOWN_EMAIL, "otp": "12"}),
        SmokeCheck("Me requires auth", "GET", "/api/auth/me", 401,
                   expect=lambda env: env.get("success") is False),
        SmokeCheck("Profile requires auth", "GET", "/api/profile", 401),
        SmokeCheck("Flashcard list requires auth", "GET", "/api/flashcards", 401),
        SmokeCheck("Payment intent requires auth", "POST", "/api/payments/create-payment-intent", 401,
                   payload={"credits": 30}),
        SmokeCheck("Webhook rejects unsigned payload", "POST", "/api/payments/webhook", 400,
                   payload={"type": "payment_intent.succeeded"},
                   headers={"Stripe-Signature": "t=0,v1=invalid"}),
        SmokeCheck("Authenticated /api/auth/me", "GET", "/api/auth/me", 200, authenticated=True,
                   expect=lambda env: bool((env.get("data") or {}).get("user"))),
        SmokeCheck("Authenticated package list", "GET", "/api/payments/packages", 200, authenticated=True),
        SmokeCheck("Authenticated flashcard list", "GET", "/api/flashcards", 200, authenticated=True),
    ]


def run_checks(base_url: str, checks: List[SmokeCheck], timeout: float, bearer_token: str = "") -> int:
    base_url = base_url.rstrip("/")
    print(f"SnapStudy smoke checks against {base_url} (timeout {timeout:.1f}s)\n")
    failed = skipped = 0
    missing_request_id = False
    for check in checks:
        if check.authenticated and not bearer_token:
            skipped += 1
            continue
        headers = dict(check.headers)
        if check.authenticated:
            headers["Authorization"] = f"Bearer {bearer_token}"
        result = send(check.method, base_url + check.path, check.payload, headers, timeout)

        if result.error:
            ok, detail = False, f"request error: {result.error}"
        else:
            ok = result.status == check.status and (check.expect is None or check.expect(result.envelope()))
            detail = f"expected {check.status}, got {result.status} in {result.elapsed_ms}ms"
            if not ok and result.body:
                detail += " | " + result.body.strip().replace("\n", " ")[:140]
            missing_request_id = missing_request_id or "X-Request-ID" not in result.headers
        print(f"[{'PASS' if ok else 'FAIL'}] {check.label}: {detail}")
        failed += 0 if ok else 1

    if missing_request_id:
        failed += 1
        print("[FAIL] Some responses were missing X-Request-ID")

    ran = len(checks) - skipped
    print(f"\n{ran - failed}/{ran} checks passed.")
    if skipped:
        print(f"Skipped {skipped} authenticated checks (pass --bearer-token or set SNAPSTUDY_TEST_BEARER).")
    return 1 if failed else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run SnapStudy API smoke checks.")
    parser.add_argument("--base-url", default="http://127.0.0.1:5000")
    parser.add_argument("--timeout", default=10.0, type=float, help="Per-request timeout in seconds")
    parser.add_argument("--bearer-token", default="", help="Session token for the authenticated checks")
    args = parser.parse_args()

    token = args.bearer_token.strip() or os.getenv("SNAPSTUDY_TEST_BEARER", "").strip()
    return run_checks(args.base_url, default_checks(), args.timeout, token)


if __name__ == "__main__":
    raise SystemExit(main())
