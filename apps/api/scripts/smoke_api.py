from __future__ import annotations

import os
import sys

import httpx

from vanish.client import ShareClient, ShareNotFoundError


def _assert_ok(response: httpx.Response, *, label: str) -> None:
    if response.status_code >= 400:
        raise RuntimeError(f"{label} failed: HTTP {response.status_code} body={response.text}")


def main() -> None:
    base_url = os.environ.get("API_BASE_URL", "http://localhost:8000")
    message = os.environ.get("SMOKE_MESSAGE", "vanish smoke test").encode("utf-8")

    with httpx.Client(base_url=base_url, timeout=20.0) as client:
        health = client.get("/healthz")
        _assert_ok(health, label="GET /healthz")
        print("ok: GET /healthz")

        ready = client.get("/readyz")
        _assert_ok(ready, label="GET /readyz")
        print("ok: GET /readyz")

        viewer = client.get("/v/smoke-check", follow_redirects=False)
        _assert_ok(viewer, label="GET /v/{id}")
        if viewer.status_code != 200:
            raise RuntimeError(f"GET /v/{{id}} must not redirect: HTTP {viewer.status_code}")
        print("ok: GET /v/{id}")

    with ShareClient(base_url, timeout=20.0) as share_client:
        shared = share_client.share(message, ttl_hours=1)
        print(f"ok: POST /api/drop id={shared.identifier} expires={shared.expires_at.isoformat()}")

        opened = share_client.open(shared.url)
        if opened != message:
            raise RuntimeError("round trip returned different plaintext")
        print("ok: GET /api/blob/{id} + decrypt")

        missing_url = shared.url.replace(shared.identifier, "00000000-0000-4000-8000-000000000000")
        try:
            share_client.open(missing_url)
        except ShareNotFoundError:
            print("ok: unknown identifier -> 404")
        else:
            raise RuntimeError("unknown identifier was served")

    print(f"smoke complete: {base_url}")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # noqa: BLE001
        print(f"smoke failed: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
