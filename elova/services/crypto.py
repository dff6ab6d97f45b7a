"""Encryption for provider API keys at rest.

Keys are sealed with AES-256-GCM under a scrypt-derived key and stored as
``iv:tag:ciphertext`` in hex.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..config import settings
from ..errors import ProviderConfigError

_SALT = b"salt"
_IV_BYTES = 16
_TAG_BYTES = 16


def _derive_key(secret: str) -> bytes:
    kdf = Scrypt(salt=_SALT, length=32, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


def encrypt_api_key(api_key: str, secret: str | None = None) -> str:
    key = _derive_key(secret or settings.encryption_key)
    iv = os.urandom(_IV_BYTES)
    sealed = AESGCM(key).encrypt(iv, api_key.encode("utf-8"), None)
    ciphertext, tag = sealed[:-_TAG_BYTES], sealed[-_TAG_BYTES:]
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt_api_key(encrypted: str, secret: str | None = None) -> str:
    try:
        iv_hex, tag_hex, ct_hex = encrypted.split(":")
        iv = bytes.fromhex(iv_hex)
        tag = bytes.fromhex(tag_hex)
        ciphertext = bytes.fromhex(ct_hex)
    except ValueError as exc:
        raise ProviderConfigError("Stored API key is not in iv:tag:ciphertext form") from exc

    key = _derive_key(secret or settings.encryption_key)
    try:
        plain = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as exc:
        raise ProviderConfigError("Failed to decrypt API key") from exc
    return plain.decode("utf-8")


def is_encrypted(value: str) -> bool:
    parts = value.split(":")
    if len(parts) != 3:
        return False
    try:
        for part in parts:
            bytes.fromhex(part)
    except ValueError:
        return False
    return len(parts[0]) == _IV_BYTES * 2 and len(parts[1]) == _TAG_BYTES * 2
