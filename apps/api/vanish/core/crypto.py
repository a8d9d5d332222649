"""AES-256-CBC with PKCS#7 padding.

Ciphertext produced here is byte-compatible with `openssl enc -aes-256-cbc`
and with WebCrypto's AES-CBC, so blobs written by one client can be read by
any other. There is no authentication tag: a length-valid but tampered
ciphertext may decrypt to garbage without raising.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

KEY_SIZE = 32
IV_SIZE = 16
BLOCK_SIZE = 16


class DecryptionError(ValueError):
    code = "DECRYPTION_FAILED"

    def __init__(self, message: str = "decryption failed") -> None:
        super().__init__(message)


def generate_key() -> bytes:
    return os.urandom(KEY_SIZE)


def generate_iv() -> bytes:
    return os.urandom(IV_SIZE)


def _check_material(key: bytes, iv: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes (got {len(key)})")
    if len(iv) != IV_SIZE:
        raise ValueError(f"iv must be {IV_SIZE} bytes (got {len(iv)})")


def encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    _check_material(key, iv)
    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    _check_material(key, iv)
    if not ciphertext or len(ciphertext) % BLOCK_SIZE != 0:
        raise DecryptionError()

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionError() from e
