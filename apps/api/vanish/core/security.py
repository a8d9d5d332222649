from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
import uuid


def new_random_token(*, nbytes: int = 32) -> str:
    raw = os.urandom(nbytes)
    # URL-safe base64 without padding to keep headers compact.
    return b64url_encode(raw)


def new_blob_identifier() -> str:
    # 36-char UUID4: 122 random bits, collision-free for our purposes.
    return str(uuid.uuid4())


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def b64url_decode(token: str) -> bytes:
    padded = token + ("=" * ((4 - len(token) % 4) % 4))
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError("invalid base64url token") from e


def hmac_sha256(secret: str, message: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def constant_time_equals(a: bytes, b: bytes) -> bool:
    return hmac.compare_digest(a, b)
