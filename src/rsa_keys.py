from __future__ import annotations

from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from appid import spki_der

# Constants
KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537
DISPLAY_LINES = 7  # base64 lines of the public key PEM shown on the console


class ProviderFault(RuntimeError):
    """Key generation failed in the crypto backend."""


@dataclass(frozen=True)
class KeyPair:
    private_pem: bytes  # PKCS#8, unencrypted
    public_der: bytes   # SubjectPublicKeyInfo


def generate_key_pair(key_size: int = KEY_SIZE) -> KeyPair:
    try:
        private_key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=key_size
        )
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )
        public_der = spki_der(private_key.public_key())
    except Exception as e:
        raise ProviderFault(f"RSA key generation failed: {e}") from e

    return KeyPair(private_pem=private_pem, public_der=public_der)


def public_key_display(public_der: bytes) -> str:
    """Base64 body of the public key PEM, header dropped, first lines joined."""
    public_key = serialization.load_der_public_key(public_der)
    pem = public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('ascii')
    body = [line for line in pem.split("\n") if line and not line.startswith("-----")]
    return "".join(body[:DISPLAY_LINES])
