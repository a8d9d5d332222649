from __future__ import annotations

import enum
from html import escape

from fastapi import Request, status
from fastapi.responses import HTMLResponse, JSONResponse

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "86400",
}


class ErrorCode(enum.StrEnum):
    EMPTY_BODY = "EMPTY_BODY"
    INVALID_TTL = "INVALID_TTL"
    INVALID_PRICE = "INVALID_PRICE"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    NOT_FOUND = "NOT_FOUND"
    GONE = "GONE"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    STORAGE_ERROR = "STORAGE_ERROR"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"


class BlobServiceError(Exception):
    code: ErrorCode = ErrorCode.STORAGE_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"error": self.code.value, "message": self.message}

    def headers(self) -> dict[str, str]:
        return {}


class EmptyBodyError(BlobServiceError):
    code = ErrorCode.EMPTY_BODY
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request body is required"


class InvalidTtlError(BlobServiceError):
    code = ErrorCode.INVALID_TTL
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "ttl must be a whole number of hours within the allowed range"


class InvalidPriceError(BlobServiceError):
    code = ErrorCode.INVALID_PRICE
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "price must be a non-negative number"


class PayloadTooLargeError(BlobServiceError):
    code = ErrorCode.PAYLOAD_TOO_LARGE
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "Blob exceeds the maximum allowed size"


class NotFoundError(BlobServiceError):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Blob not found or expired"


class GoneError(BlobServiceError):
    code = ErrorCode.GONE
    status_code = status.HTTP_410_GONE
    default_message = "Blob has expired"


class StorageUnavailableError(BlobServiceError):
    code = ErrorCode.STORAGE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Storage backend unavailable"


class PaymentRequiredError(BlobServiceError):
    code = ErrorCode.PAYMENT_REQUIRED
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "This blob requires payment"

    def __init__(
        self,
        *,
        price: float,
        currency: str,
        methods: list[str],
        message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.price = price
        self.currency = currency
        self.methods = list(methods)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["payment"] = {
            "price": self.price,
            "currency": self.currency,
            "methods": self.methods,
        }
        return payload

    def headers(self) -> dict[str, str]:
        return {
            "X-Payment-Price": _format_price(self.price),
            "X-Payment-Currency": self.currency,
            "X-Payment-Methods": ",".join(self.methods),
        }


def _format_price(price: float) -> str:
    # Shortest exact form: 2.0 -> "2", 1234567.5 -> "1234567.5"
    return str(int(price)) if price.is_integer() else repr(price)


def wants_html(request: Request) -> bool:
    return "text/html" in (request.headers.get("accept") or "")


def error_response(request: Request, exc: BlobServiceError) -> JSONResponse | HTMLResponse:
    headers = {**CORS_HEADERS, **exc.headers()}
    if wants_html(request) and exc.status_code in {
        status.HTTP_404_NOT_FOUND,
        status.HTTP_410_GONE,
    }:
        return HTMLResponse(
            content=render_error_page(exc),
            status_code=exc.status_code,
            headers=headers,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


async def blob_service_error_handler(request: Request, exc: BlobServiceError):  # type: ignore[no-untyped-def]
    return error_response(request, exc)


async def unexpected_error_handler(request: Request, exc: Exception):  # type: ignore[no-untyped-def]
    return error_response(request, BlobServiceError())


def render_error_page(exc: BlobServiceError) -> str:
    expired = exc.code == ErrorCode.GONE
    title = "Link Expired" if expired else "Link Not Found"
    description = (
        "This link has expired. Shared content is destroyed automatically once its time is up."
        if expired
        else "This link doesn't exist or has already expired."
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)} | vanish</title>
  <style>
    body {{ font-family: ui-monospace, monospace; background: #0a0a0a; color: #e5e5e5;
           display: flex; align-items: center; justify-content: center; min-height: 100vh; margin: 0; }}
    main {{ max-width: 32rem; padding: 2rem; text-align: center; }}
    h1 {{ color: #22c55e; font-size: 1.5rem; }}
    code {{ color: #a3a3a3; }}
    a {{ color: #22c55e; }}
  </style>
</head>
<body>
  <main>
    <h1>{escape(title)}</h1>
    <p>{escape(description)}</p>
    <p><code>{escape(exc.code.value)}</code></p>
    <p><a href="/">Share something new</a></p>
  </main>
</body>
</html>"""
