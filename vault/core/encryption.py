"""
core/encryption.py
------------------
Field-level encryption for stored credential secrets.

AES-256-GCM with a fresh 12-byte IV per call. The stored form is
    <iv hex>:<ciphertext hex>:<auth tag hex>
so a row can be inspected (and rotated) without any framing knowledge.

Empty strings stay empty in both directions, and a value that is not in
the three-part form decrypts to "". A value that *is* three-part but fails
authentication raises cryptography's InvalidTag: a tampered secret must
never silently come back as an empty password.
"""

import hashlib
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from vault.core.config import settings

_IV_BYTES = 12
_TAG_BYTES = 16


def _key() -> bytes:
    return hashlib.sha256(settings.ENCRYPTION_KEY.encode("utf-8")).digest()


def encrypt(plaintext: str) -> str:
    if not plaintext:
        return ""
    iv = os.urandom(_IV_BYTES)
    sealed = AESGCM(_key()).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-_TAG_BYTES], sealed[-_TAG_BYTES:]
    return f"{iv.hex()}:{ciphertext.hex()}:{tag.hex()}"


def decrypt(ciphertext: str) -> str:
    if not ciphertext:
        return ""
    parts = ciphertext.split(":")
    if len(parts) != 3:
        return ""
    iv_hex, body_hex, tag_hex = parts
    try:
        iv = bytes.fromhex(iv_hex)
        sealed = bytes.fromhex(body_hex) + bytes.fromhex(tag_hex)
    except ValueError:
        return ""
    return AESGCM(_key()).decrypt(iv, sealed, None).decode("utf-8")
