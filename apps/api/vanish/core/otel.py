from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from threading import Lock
from typing import Any

from fastapi import FastAPI

from vanish.core.config import Settings

logger = logging.getLogger("vanish.api")


@dataclass(frozen=True)
class OTelSetupResult:
    enabled: bool
    reason: str
    instrumented: tuple[str, ...] = ()
    shutdown: Callable[[], None] | None = None


_TRACER_PROVIDER: Any | None = None
_LOCK = Lock()
# Library instrumentors patch globally; each may only be applied once per process.
_INSTRUMENTED_BACKENDS: set[str] = set()


def setup_otel(*, app: FastAPI, settings: Settings) -> OTelSetupResult:
    if not settings.ENABLE_OTEL_TRACING:
        return OTelSetupResult(enabled=False, reason="disabled")

    endpoint = settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT.strip()
    if not endpoint:
        logger.warning(
            "OpenTelemetry tracing is enabled but OTEL_EXPORTER_OTLP_TRACES_ENDPOINT is empty."
        )
        return OTelSetupResult(enabled=False, reason="missing_endpoint")

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    except ImportError as exc:
        logger.warning("OpenTelemetry tracing setup skipped: %s", exc)
        return OTelSetupResult(enabled=False, reason="dependency_missing")

    try:
        provider = _get_or_create_provider(settings=settings, endpoint=endpoint)
    except ImportError as exc:
        logger.warning("OpenTelemetry tracing setup skipped: %s", exc)
        return OTelSetupResult(enabled=False, reason="dependency_missing")

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=provider,
        excluded_urls=settings.OTEL_EXCLUDED_URLS,
    )
    backends = _instrument_storage_backends(settings=settings, provider=provider)

    logger.info(
        "OpenTelemetry tracing enabled for service=%s endpoint=%s backends=%s",
        settings.OTEL_SERVICE_NAME,
        endpoint,
        ",".join(backends) or "none",
    )

    def _shutdown() -> None:
        with suppress(Exception):
            FastAPIInstrumentor.uninstrument_app(app)

    return OTelSetupResult(
        enabled=True,
        reason="enabled",
        instrumented=("fastapi", *backends),
        shutdown=_shutdown,
    )


def _get_or_create_provider(*, settings: Settings, endpoint: str) -> Any:
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

    global _TRACER_PROVIDER
    with _LOCK:
        if _TRACER_PROVIDER is not None:
            return _TRACER_PROVIDER

        resource = Resource.create(
            {
                SERVICE_NAME: settings.OTEL_SERVICE_NAME,
                SERVICE_VERSION: settings.VERSION,
                "deployment.environment": settings.APP_ENV,
            }
        )
        provider = TracerProvider(
            resource=resource,
            sampler=TraceIdRatioBased(settings.OTEL_TRACE_SAMPLE_RATIO),
        )

        exporter_kwargs: dict[str, Any] = {"endpoint": endpoint}
        otlp_headers = _parse_otlp_headers(settings.OTEL_EXPORTER_OTLP_HEADERS)
        if otlp_headers:
            exporter_kwargs["headers"] = otlp_headers

        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_kwargs)))
        trace.set_tracer_provider(provider)
        _TRACER_PROVIDER = provider
        return provider


def _instrument_storage_backends(*, settings: Settings, provider: Any) -> list[str]:
    wanted: list[tuple[str, Callable[[], None]]] = []
    if settings.EXPIRY_INDEX == "sql":
        wanted.append(("sqlalchemy", lambda: _instrument_sqlalchemy(provider)))
    if settings.EXPIRY_INDEX == "redis":
        wanted.append(("redis", lambda: _instrument_redis(provider)))
    if settings.BLOB_STORE == "s3":
        wanted.append(("botocore", lambda: _instrument_botocore(provider)))

    done: list[str] = []
    with _LOCK:
        for name, instrument in wanted:
            if name not in _INSTRUMENTED_BACKENDS:
                try:
                    instrument()
                except ImportError as exc:
                    logger.warning("OpenTelemetry %s instrumentation skipped: %s", name, exc)
                    continue
                _INSTRUMENTED_BACKENDS.add(name)
            done.append(name)
    return done


def _instrument_sqlalchemy(provider: Any) -> None:
    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    from vanish.db.session import get_engine

    SQLAlchemyInstrumentor().instrument(engine=get_engine(), tracer_provider=provider)


def _instrument_redis(provider: Any) -> None:
    from opentelemetry.instrumentation.redis import RedisInstrumentor

    RedisInstrumentor().instrument(tracer_provider=provider)


def _instrument_botocore(provider: Any) -> None:
    from opentelemetry.instrumentation.botocore import BotocoreInstrumentor

    BotocoreInstrumentor().instrument(tracer_provider=provider)


def _parse_otlp_headers(raw_headers: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for token in raw_headers.split(","):
        piece = token.strip()
        if not piece:
            continue
        key, sep, value = piece.partition("=")
        if not sep or not key.strip() or not value.strip():
            logger.warning("Ignoring malformed OTLP header token: %s", piece)
            continue
        out[key.strip()] = value.strip()
    return out
