"""Share addresses: `https://{host}/v/{identifier}#{secret}`.

Only the part before `#` ever reaches the service. The secret carries the AES
key and IV and comes in two wire formats that must both keep parsing:

* legacy hex: `k=<64 hex>&iv=<32 hex>`
* compact: 64 chars of unpadded base64url over `key || iv` (48 bytes)

New addresses are always written in the compact format.
"""

from __future__ import annotations

import base64
import binascii
import enum
import re
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlsplit

from vanish.core.crypto import IV_SIZE, KEY_SIZE

VIEWER_PREFIX = "/v/"
IDENTIFIER_PATTERN = r"[A-Za-z0-9-]+"

_PATH_RE = re.compile(rf"{re.escape(VIEWER_PREFIX)}({IDENTIFIER_PATTERN})")
_HEX_RE = re.compile(r"[0-9a-fA-F]+")
_BASE64URL_RE = re.compile(r"[A-Za-z0-9_-]+")
_SHARE_URL_RE = re.compile(rf"https?://[^\s/#]+{re.escape(VIEWER_PREFIX)}{IDENTIFIER_PATTERN}#\S+")

COMPACT_SECRET_LENGTH = 64
_LEGACY_KEY_PARAM = "k"
_LEGACY_IV_PARAM = "iv"


class AddressFormat(enum.StrEnum):
    legacy_hex = "legacy_hex"
    compact = "compact"


class AddressError(ValueError):
    code = "INVALID_ADDRESS"


class MissingFragmentError(AddressError):
    code = "MISSING_FRAGMENT"


class InvalidPathError(AddressError):
    code = "INVALID_PATH"


class InvalidKeyError(AddressError):
    code = "INVALID_KEY"


class InvalidIvError(AddressError):
    code = "INVALID_IV"


@dataclass(frozen=True)
class ShareAddress:
    host: str
    identifier: str
    key: bytes = field(repr=False)
    iv: bytes = field(repr=False)
    # Which secret encoding the address was read from; not part of identity.
    format: AddressFormat = field(default=AddressFormat.compact, compare=False)

    def to_url(self) -> str:
        return build_address(self.host, self.identifier, self.key, self.iv)


def detect_format(secret: str) -> AddressFormat:
    """Pick the decoder to try first for a fragment.

    A compact secret is exactly 64 characters and never contains the legacy
    `k=` parameter. Anything else is read as legacy hex.
    """
    if len(secret) == COMPACT_SECRET_LENGTH and f"{_LEGACY_KEY_PARAM}=" not in secret:
        return AddressFormat.compact
    return AddressFormat.legacy_hex


def parse_address(url: str) -> ShareAddress:
    network_part, sep, secret = url.partition("#")
    if not sep or not secret:
        raise MissingFragmentError("Invalid share URL: missing fragment")

    host, identifier = _parse_network_part(network_part)

    if detect_format(secret) == AddressFormat.compact:
        material = _decode_compact(secret)
        if material is not None:
            return ShareAddress(
                host=host,
                identifier=identifier,
                key=material[:KEY_SIZE],
                iv=material[KEY_SIZE:],
                format=AddressFormat.compact,
            )

    key, iv = _decode_legacy(secret)
    return ShareAddress(
        host=host,
        identifier=identifier,
        key=key,
        iv=iv,
        format=AddressFormat.legacy_hex,
    )


def build_address(host: str, identifier: str, key: bytes, iv: bytes) -> str:
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(f"key must be {KEY_SIZE} bytes (got {len(key)})")
    if len(iv) != IV_SIZE:
        raise InvalidIvError(f"iv must be {IV_SIZE} bytes (got {len(iv)})")
    if not re.fullmatch(IDENTIFIER_PATTERN, identifier):
        raise InvalidPathError(f"identifier contains unsupported characters: {identifier!r}")

    secret = base64.urlsafe_b64encode(key + iv).decode("ascii").rstrip("=")
    return f"{host.rstrip('/')}{VIEWER_PREFIX}{identifier}#{secret}"


def is_share_url(text: str) -> bool:
    return _SHARE_URL_RE.search(text) is not None


def _parse_network_part(network_part: str) -> tuple[str, str]:
    try:
        parts = urlsplit(network_part)
    except ValueError as e:
        raise InvalidPathError("Invalid share URL: cannot parse URL") from e

    if not parts.scheme or not parts.netloc:
        raise InvalidPathError("Invalid share URL: missing scheme or host")

    match = _PATH_RE.fullmatch(parts.path)
    if match is None:
        raise InvalidPathError("Invalid share URL: cannot extract blob identifier from path")

    return f"{parts.scheme}://{parts.netloc}", match.group(1)


def _decode_compact(secret: str) -> bytes | None:
    if not _BASE64URL_RE.fullmatch(secret):
        return None
    padded = secret + "=" * ((4 - len(secret) % 4) % 4)
    try:
        material = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return None
    if len(material) != KEY_SIZE + IV_SIZE:
        return None
    return material


def _decode_legacy(secret: str) -> tuple[bytes, bytes]:
    params = parse_qs(secret, keep_blank_values=True)
    key_hex = (params.get(_LEGACY_KEY_PARAM) or [""])[0]
    iv_hex = (params.get(_LEGACY_IV_PARAM) or [""])[0]

    if len(key_hex) != KEY_SIZE * 2:
        raise InvalidKeyError(
            f"Invalid share URL: key must be {KEY_SIZE * 2} hex chars (got {len(key_hex)})"
        )
    if not _HEX_RE.fullmatch(key_hex):
        raise InvalidKeyError("Invalid share URL: key is not valid hex")

    if len(iv_hex) != IV_SIZE * 2:
        raise InvalidIvError(
            f"Invalid share URL: IV must be {IV_SIZE * 2} hex chars (got {len(iv_hex)})"
        )
    if not _HEX_RE.fullmatch(iv_hex):
        raise InvalidIvError("Invalid share URL: IV is not valid hex")

    return bytes.fromhex(key_hex), bytes.fromhex(iv_hex)
