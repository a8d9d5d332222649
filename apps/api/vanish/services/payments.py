"""Proof-of-payment verification for paid blobs.

A proof is a compact signed token scoped to one blob identifier:

    base64url(json({"sub": <identifier>, "exp": <unix seconds>})) "." base64url(hmac_sha256)

Issuing proofs belongs to whatever settles the payment (Lightning invoice,
card checkout, ...). This module only verifies them, plus an issuer helper for
operators and tests that share the secret.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Protocol

from vanish.core.clock import Clock, utc_now
from vanish.core.security import b64url_decode, b64url_encode, constant_time_equals, hmac_sha256

logger = logging.getLogger("vanish.api")


class PaymentGate(Protocol):
    def verify(self, identifier: str, proof: str | None) -> bool: ...


class RejectAllGate:
    """Used when no proof secret is configured: paid blobs stay locked."""

    def verify(self, identifier: str, proof: str | None) -> bool:
        _ = identifier, proof
        return False


class SignedProofGate:
    def __init__(self, secret: str, *, clock: Clock = utc_now) -> None:
        if not secret:
            raise ValueError("SignedProofGate requires a non-empty secret")
        self._secret = secret
        self._clock = clock

    def verify(self, identifier: str, proof: str | None) -> bool:
        if not proof:
            return False
        claims = _verified_claims(self._secret, proof)
        if claims is None:
            return False
        if claims.get("sub") != identifier:
            return False
        exp = claims.get("exp")
        if not isinstance(exp, int | float):
            return False
        return exp > self._clock().timestamp()


def issue_payment_proof(
    *,
    secret: str,
    identifier: str,
    ttl: timedelta = timedelta(hours=1),
    now: datetime | None = None,
) -> str:
    issued_at = now or utc_now()
    claims = {"sub": identifier, "exp": int((issued_at + ttl).timestamp())}
    body = b64url_encode(json.dumps(claims, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    signature = b64url_encode(hmac_sha256(secret, body.encode("ascii")))
    return f"{body}.{signature}"


def build_payment_gate(secret: str) -> PaymentGate:
    if not secret:
        logger.warning("PAYMENT_PROOF_SECRET is empty; paid blobs cannot be unlocked.")
        return RejectAllGate()
    return SignedProofGate(secret)


def _verified_claims(secret: str, proof: str) -> dict | None:
    body, sep, signature = proof.partition(".")
    if not sep or not body or not signature:
        return None
    try:
        expected = hmac_sha256(secret, body.encode("ascii"))
        provided = b64url_decode(signature)
        if not constant_time_equals(expected, provided):
            return None
        claims = json.loads(b64url_decode(body).decode("utf-8"))
    except (UnicodeError, ValueError):
        return None
    if not isinstance(claims, dict):
        return None
    return claims
