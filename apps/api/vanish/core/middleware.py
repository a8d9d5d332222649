from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field

from fastapi import Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.responses import Response

from vanish.core.config import Settings
from vanish.core.errors import CORS_HEADERS
from vanish.core.logs import log_event
from vanish.core.security import new_random_token

logger = logging.getLogger("vanish.api")

API_PREFIX = "/api/"

_PREFLIGHT_DROPPED_HEADERS = {"content-length", "content-type"}


class BlobCORSMiddleware(CORSMiddleware):
    """Starlette CORS handling with bodiless 204 preflight answers."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != status.HTTP_200_OK:
            return response
        headers = {
            name: value
            for name, value in response.headers.items()
            if name not in _PREFLIGHT_DROPPED_HEADERS
        }
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)


@dataclass
class RateLimiter:
    max_requests: int
    window_seconds: int = 60
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _buckets: dict[str, deque[float]] = field(default_factory=dict)

    def allow(self, key: str, *, now_ts: float) -> bool:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = deque()
                self._buckets[key] = bucket

            cutoff = now_ts - float(self.window_seconds)
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self.max_requests:
                return False

            bucket.append(now_ts)
            return True


def build_request_id(request: Request, *, header_name: str) -> str:
    incoming = (request.headers.get(header_name) or "").strip()
    if incoming:
        return incoming[:128]
    return new_random_token(nbytes=18)


def apply_security_headers(response: Response, *, settings: Settings) -> None:
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    # Share URLs carry secrets in the fragment; never leak even the path onward.
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Content-Security-Policy", settings.CONTENT_SECURITY_POLICY)


def apply_cors_headers(request: Request, response: Response) -> None:
    # Non-browser callers send no Origin, which CORSMiddleware leaves untouched.
    if not request.url.path.startswith(API_PREFIX):
        return
    for name, value in CORS_HEADERS.items():
        response.headers.setdefault(name, value)


def rate_limit_key(request: Request) -> str:
    forwarded_for = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded_for:
        ip = forwarded_for.split(",", 1)[0].strip()
    else:
        ip = request.client.host if request.client else "unknown"
    return ip


def rate_limit_response() -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": "RATE_LIMITED", "message": "Rate limit exceeded"},
        headers=dict(CORS_HEADERS),
    )


def log_request_completion(
    *,
    request_id: str,
    method: str,
    path: str,
    status_code: int,
    duration_ms: int,
    rate_limited: bool,
) -> None:
    log_event(
        logger,
        "http.request.completed",
        request_id=request_id,
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        rate_limited=rate_limited,
    )


def now_ts() -> float:
    return time.time()
