"""Post-deploy smoke checks executed from the app container."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from datetime import UTC, datetime, timedelta
from uuid import uuid4

BASE_URL = "http://localhost:8000"
API = "/api/v1"


def request(
    path: str,
    *,
    method: str = "GET",
    body: dict | None = None,
    headers: dict[str, str] | None = None,
    expected: int = 200,
) -> bytes:
    payload = None
    req_headers = {"Accept": "application/json"}
    if headers:
        req_headers.update(headers)
    if body is not None:
        payload = json.dumps(body).encode("utf-8")
        req_headers["Content-Type"] = "application/json"

    request_obj = urllib.request.Request(
        f"{BASE_URL}{path}",
        data=payload,
        method=method,
        headers=req_headers,
    )
    try:
        with urllib.request.urlopen(request_obj, timeout=30) as response:
            content = response.read()
            status = response.getcode()
    except urllib.error.HTTPError as exc:  # pragma: no cover - runtime smoke script
        body_text = exc.read().decode("utf-8", errors="ignore")
        raise RuntimeError(f"{method} {path} -> {exc.code}: {body_text}") from exc

    if status != expected:
        raise RuntimeError(f"{method} {path} -> {status}, expected {expected}")
    return content


def request_json(path: str, **kwargs) -> dict:
    return json.loads(request(path, **kwargs).decode("utf-8"))


def main() -> None:
    for endpoint in ["/health", "/ready", "/docs", "/metrics"]:
        request(endpoint, expected=200)

    suffix = uuid4().hex[:10]
    username = f"smoke-{suffix}"
    email = f"deploy-smoke-{suffix}@slotkeeper.dev"
    password = "StrongPass123!"

    request(
        f"{API}/identity/auth/register",
        method="POST",
        body={"email": email, "username": username, "name": "Smoke Host", "password": password, "timezone": "UTC"},
        expected=201,
    )
    login_payload = request_json(
        f"{API}/identity/auth/login",
        method="POST",
        body={"email": email, "password": password},
    )
    auth = {"Authorization": f"Bearer {login_payload['access_token']}"}

    target_date = (datetime.now(UTC) + timedelta(days=7)).date()
    weekday = (target_date.weekday() + 1) % 7
    request(
        f"{API}/availability/rules",
        method="POST",
        body={"day_of_week": weekday, "start_time": "09:00:00", "end_time": "17:00:00", "buffer_minutes": 15},
        headers=auth,
        expected=201,
    )

    slots_payload = request_json(f"{API}/public/{username}/slots?date={target_date.isoformat()}")
    if not slots_payload["slots"]:
        raise RuntimeError(f"No slots returned for {username} on {target_date}")

    first_slot = slots_payload["slots"][0]
    submitted = request_json(
        f"{API}/public/{username}/booking-requests",
        method="POST",
        body={
            "customer_name": "Smoke Customer",
            "customer_email": f"customer-{suffix}@slotkeeper.dev",
            "start_at": first_slot["start"],
            "end_at": first_slot["end"],
        },
        expected=201,
    )
    if submitted["status"] != "pending":
        raise RuntimeError(f"Unexpected booking request status: {submitted['status']}")

    print("Smoke checks passed.")


if __name__ == "__main__":
    main()
