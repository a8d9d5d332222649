from __future__ import annotations

import re

from fastapi import APIRouter, Depends, Query, Request, Response, status
from starlette.concurrency import run_in_threadpool

from vanish.core.clock import isoformat_z
from vanish.core.deps import get_lifecycle
from vanish.core.errors import (
    CORS_HEADERS,
    InvalidPriceError,
    InvalidTtlError,
    NotFoundError,
    PayloadTooLargeError,
)
from vanish.schemas.blobs import DropResponse, ErrorResponse, PaymentRequiredResponse
from vanish.services.lifecycle import BlobLifecycle

router = APIRouter(prefix="/api", tags=["blobs"])

_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9-]{1,64}")

BLOB_CACHE_CONTROL = "private, no-store, no-cache"


def is_blob_identifier(value: str) -> bool:
    return _IDENTIFIER_RE.fullmatch(value) is not None


def parse_ttl(raw: str | None) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidTtlError() from e


def parse_price(raw: str | None) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise InvalidPriceError() from e


def _declared_length(request: Request) -> int | None:
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@router.post(
    "/drop",
    status_code=status.HTTP_201_CREATED,
    response_model=DropResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def drop_blob(
    request: Request,
    ttl: str | None = Query(default=None),
    price: str | None = Query(default=None),
    lifecycle: BlobLifecycle = Depends(get_lifecycle),
) -> DropResponse:
    ttl_hours = parse_ttl(ttl)
    price_usd = parse_price(price)

    declared = _declared_length(request)
    if declared is not None and declared > lifecycle.policy.max_blob_size_bytes:
        raise PayloadTooLargeError()

    body = await request.body()
    result = await run_in_threadpool(
        lifecycle.upload, body, ttl_hours=ttl_hours, price_usd=price_usd
    )
    expires = isoformat_z(result.expires_at)
    return DropResponse(identifier=result.identifier, id=result.identifier, expires=expires)


@router.get(
    "/blob/{identifier}",
    response_class=Response,
    responses={
        200: {"content": {"application/octet-stream": {}}},
        402: {"model": PaymentRequiredResponse},
        404: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
    },
)
def get_blob(
    identifier: str,
    payment_proof: str | None = Query(default=None, alias="paymentProof"),
    lifecycle: BlobLifecycle = Depends(get_lifecycle),
) -> Response:
    if not is_blob_identifier(identifier):
        raise NotFoundError()

    result = lifecycle.download(identifier, payment_proof=payment_proof)
    return Response(
        content=result.ciphertext,
        media_type="application/octet-stream",
        headers={
            **CORS_HEADERS,
            "Cache-Control": BLOB_CACHE_CONTROL,
            "X-Content-Type-Options": "nosniff",
            "X-Blob-Expires": isoformat_z(result.expires_at),
        },
    )


@router.options("/drop", include_in_schema=False)
def drop_preflight() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)


@router.options("/blob/{identifier}", include_in_schema=False)
def blob_preflight(identifier: str) -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)
