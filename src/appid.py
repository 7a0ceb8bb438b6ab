"""
Chromium extension ID ("appId") derivation.

The appId is the first 32 hex digits of SHA256(SubjectPublicKeyInfo DER),
with each hex digit 0-f written as a letter a-p.
"""

from __future__ import annotations

import hashlib

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

APP_ID_LEN = 32
APP_ID_ALPHABET = "abcdefghijklmnop"

# 0-9a-f -> a-p
_HEX_TO_APP_ID = str.maketrans("0123456789abcdef", APP_ID_ALPHABET)


def derive_app_id(public_der: bytes) -> str:
    digest_hex = hashlib.sha256(public_der).hexdigest()
    return digest_hex[:APP_ID_LEN].translate(_HEX_TO_APP_ID)


def spki_der(public_key: PublicKeyTypes) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )


def load_public_key(pem: bytes) -> PublicKeyTypes:
    """
    Public half of a PEM key.

    Accepts an unencrypted private key or a public key. Raises ValueError
    if the data is neither.
    """
    if b"PRIVATE KEY" in pem:
        try:
            private_key = serialization.load_pem_private_key(pem, password=None)
        except TypeError as e:
            # Encrypted keys need a password
            raise ValueError(f"Cannot read private key: {e}") from e
        return private_key.public_key()
    return serialization.load_pem_public_key(pem)


def app_id_from_pem(pem: bytes) -> str:
    return derive_app_id(spki_der(load_public_key(pem)))
