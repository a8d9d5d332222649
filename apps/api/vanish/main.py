from __future__ import annotations

from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from vanish.core.config import get_settings
from vanish.core.errors import (
    BlobServiceError,
    blob_service_error_handler,
    unexpected_error_handler,
)
from vanish.core.logs import request_id_ctx
from vanish.core.metrics import observe_http_request
from vanish.core.middleware import (
    BlobCORSMiddleware,
    RateLimiter,
    apply_cors_headers,
    apply_security_headers,
    build_request_id,
    log_request_completion,
    now_ts,
    rate_limit_key,
    rate_limit_response,
)
from vanish.core.otel import setup_otel
from vanish.routers.blobs import router as blobs_router
from vanish.routers.health import router as health_router
from vanish.routers.viewer import router as viewer_router


def _metrics_path(request: Request) -> str:
    # Label by route template so blob identifiers never become label values.
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    return template or "unmatched"


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="vanish API", version=settings.VERSION)

    rate_limiter = (
        RateLimiter(max_requests=settings.RATE_LIMIT_REQUESTS_PER_MINUTE)
        if settings.RATE_LIMIT_REQUESTS_PER_MINUTE > 0
        else None
    )
    app.add_middleware(
        BlobCORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        max_age=86400,
    )

    @app.middleware("http")
    async def add_security_headers_and_request_context(request, call_next):  # type: ignore[no-untyped-def]
        request_id = build_request_id(request, header_name=settings.REQUEST_ID_HEADER)
        token = request_id_ctx.set(request_id)
        start_ts = now_ts()
        method = request.method
        path = request.url.path
        response = None
        blocked = False
        status_code = 500

        try:
            if rate_limiter is not None:
                key = rate_limit_key(request)
                if not rate_limiter.allow(key, now_ts=now_ts()):
                    blocked = True
                    response = rate_limit_response()

            if response is None:
                response = await call_next(request)

            status_code = response.status_code
            response.headers[settings.REQUEST_ID_HEADER] = request_id
            apply_cors_headers(request, response)
            apply_security_headers(response, settings=settings)
            return response
        finally:
            duration_ms = int((now_ts() - start_ts) * 1000)
            log_request_completion(
                request_id=request_id,
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
                rate_limited=blocked,
            )
            if settings.ENABLE_PROMETHEUS_METRICS:
                observe_http_request(
                    method=method,
                    path=_metrics_path(request),
                    status_code=status_code,
                    duration_ms=duration_ms,
                    rate_limited=blocked,
                )
            request_id_ctx.reset(token)

    app.add_exception_handler(BlobServiceError, blob_service_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(health_router)
    app.include_router(blobs_router)
    app.include_router(viewer_router)

    if settings.ENABLE_PROMETHEUS_METRICS:

        @app.get(settings.PROMETHEUS_METRICS_PATH, include_in_schema=False)
        def metrics() -> Response:
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    otel = setup_otel(app=app, settings=settings)
    app.state.otel_tracing_enabled = otel.enabled
    app.state.otel_tracing_reason = otel.reason
    app.state.otel_instrumented = otel.instrumented
    app.state.otel_shutdown = otel.shutdown

    return app


app = create_app()
