"""Python client: encrypt locally, upload ciphertext, and read shares back.

Keys never leave this process. ``share`` puts them in the URL fragment and
``open`` takes them out again; only ``/api/drop`` and ``/api/blob/{id}`` are
ever requested.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import httpx

from vanish.core.address import build_address, parse_address
from vanish.core.clock import ensure_utc
from vanish.core.crypto import decrypt, encrypt, generate_iv, generate_key
from vanish.core.filetype import FileType, classify, guess_text_kind, looks_binary

DEFAULT_TIMEOUT_SECONDS = 10.0


class ShareError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ShareNotFoundError(ShareError):
    pass


class ShareExpiredError(ShareError):
    pass


class SharePaymentRequiredError(ShareError):
    def __init__(self, message: str, *, price: float | None, currency: str | None) -> None:
        super().__init__(message, status_code=402)
        self.price = price
        self.currency = currency


@dataclass(frozen=True)
class SharedBlob:
    url: str
    identifier: str
    expires_at: datetime


@dataclass(frozen=True)
class OpenedShare:
    identifier: str
    data: bytes
    # Exactly one of these is set: file_type for binary payloads, text_kind
    # ("json", "html", "markdown" or "text") for UTF-8 text.
    file_type: FileType | None
    text_kind: str | None


class ShareClient:
    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> ShareClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def share(
        self,
        plaintext: bytes,
        *,
        ttl_hours: int | None = None,
        price_usd: float | None = None,
    ) -> SharedBlob:
        key = generate_key()
        iv = generate_iv()
        ciphertext = encrypt(plaintext, key, iv)

        params: dict[str, object] = {}
        if ttl_hours is not None:
            params["ttl"] = ttl_hours
        if price_usd is not None:
            params["price"] = price_usd

        res = self._http.post(
            f"{self.base_url}/api/drop",
            params=params,
            content=ciphertext,
            headers={"Content-Type": "application/octet-stream"},
        )
        _raise_for_share_error(res, default_message="Upload failed")

        payload = res.json()
        identifier = payload.get("identifier") or payload["id"]
        expires_at = ensure_utc(datetime.fromisoformat(payload["expires"].replace("Z", "+00:00")))
        return SharedBlob(
            url=build_address(self.base_url, identifier, key, iv),
            identifier=identifier,
            expires_at=expires_at,
        )

    def open(self, url: str, *, payment_proof: str | None = None) -> bytes:
        address = parse_address(url)
        params = {"paymentProof": payment_proof} if payment_proof else None
        # Only the network-visible part is requested; the fragment stays here.
        res = self._http.get(
            f"{address.host}/api/blob/{address.identifier}",
            params=params,
            headers={"Accept": "application/octet-stream"},
        )
        _raise_for_share_error(res, default_message="Failed to fetch content")
        return decrypt(res.content, address.key, address.iv)

    def read(self, url: str, *, payment_proof: str | None = None) -> OpenedShare:
        data = self.open(url, payment_proof=payment_proof)
        identifier = parse_address(url).identifier
        if looks_binary(data):
            return OpenedShare(identifier=identifier, data=data, file_type=classify(data), text_kind=None)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            return OpenedShare(identifier=identifier, data=data, file_type=classify(data), text_kind=None)
        return OpenedShare(
            identifier=identifier,
            data=data,
            file_type=None,
            text_kind=guess_text_kind(text),
        )


def _raise_for_share_error(res: httpx.Response, *, default_message: str) -> None:
    if res.status_code < 400:
        return

    payload: dict = {}
    try:
        parsed = res.json()
        if isinstance(parsed, dict):
            payload = parsed
    except ValueError:
        payload = {}
    message = str(payload.get("message") or default_message)

    if res.status_code == 404:
        raise ShareNotFoundError(message, status_code=404)
    if res.status_code == 410:
        raise ShareExpiredError(message, status_code=410)
    if res.status_code == 402:
        payment = payload.get("payment") or {}
        price = payment.get("price")
        if price is None:
            price = _parse_float(res.headers.get("X-Payment-Price"))
        raise SharePaymentRequiredError(
            message,
            price=float(price) if price is not None else None,
            currency=payment.get("currency") or res.headers.get("X-Payment-Currency"),
        )
    raise ShareError(f"{message} (HTTP {res.status_code})", status_code=res.status_code)


def _parse_float(v: str | None) -> float | None:
    if v is None:
        return None
    try:
        return float(v)
    except ValueError:
        return None
