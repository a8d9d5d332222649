from __future__ import annotations

from prometheus_client import Counter, Histogram

_HTTP_REQUESTS_TOTAL = Counter(
    "vanish_http_requests_total",
    "Total HTTP requests handled by the API.",
    labelnames=("method", "path", "status_code"),
)
_HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "vanish_http_request_duration_seconds",
    "HTTP request duration in seconds.",
    labelnames=("method", "path"),
)
_HTTP_RATE_LIMITED_TOTAL = Counter(
    "vanish_http_rate_limited_total",
    "Total HTTP requests blocked by rate limiting.",
    labelnames=("method", "path"),
)
_BLOB_UPLOADS_TOTAL = Counter(
    "vanish_blob_uploads_total",
    "Blob uploads by outcome.",
    labelnames=("outcome",),
)
_BLOB_UPLOAD_BYTES = Histogram(
    "vanish_blob_upload_bytes",
    "Size of accepted ciphertext uploads in bytes.",
    buckets=(1024, 16 * 1024, 256 * 1024, 1024 * 1024, 8 * 1024 * 1024, 25 * 1024 * 1024),
)
_BLOB_DOWNLOADS_TOTAL = Counter(
    "vanish_blob_downloads_total",
    "Blob downloads by outcome.",
    labelnames=("outcome",),
)
_ORPHANS_RECLAIMED_TOTAL = Counter(
    "vanish_orphans_reclaimed_total",
    "Inconsistent or expired records removed, by kind.",
    labelnames=("kind",),
)


def observe_http_request(
    *,
    method: str,
    path: str,
    status_code: int,
    duration_ms: int,
    rate_limited: bool,
) -> None:
    safe_path = path or "unknown"
    safe_method = method or "UNKNOWN"

    _HTTP_REQUESTS_TOTAL.labels(
        method=safe_method,
        path=safe_path,
        status_code=str(status_code),
    ).inc()
    _HTTP_REQUEST_DURATION_SECONDS.labels(method=safe_method, path=safe_path).observe(
        max(0.0, duration_ms / 1000.0)
    )
    if rate_limited:
        _HTTP_RATE_LIMITED_TOTAL.labels(method=safe_method, path=safe_path).inc()


def observe_upload(*, outcome: str, size_bytes: int | None = None) -> None:
    _BLOB_UPLOADS_TOTAL.labels(outcome=outcome).inc()
    if size_bytes is not None:
        _BLOB_UPLOAD_BYTES.observe(size_bytes)


def observe_download(*, outcome: str) -> None:
    _BLOB_DOWNLOADS_TOTAL.labels(outcome=outcome).inc()


def observe_reclaimed(*, kind: str, count: int = 1) -> None:
    if count > 0:
        _ORPHANS_RECLAIMED_TOTAL.labels(kind=kind).inc(count)
