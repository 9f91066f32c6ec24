"""
Credential encoding for the SSO login endpoints.

Netid and password are RSA-encrypted (PKCS#1 v1.5) with the institutional
public key, base64 encoded and prefixed with a marker so the backend can tell
encoded fields from raw ones.
"""

import base64
import logging
from functools import lru_cache
from typing import List

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..config import Settings, get_settings
from ..errors import EncodingError

logger = logging.getLogger(__name__)

# PKCS#1 v1.5 padding overhead per block
PKCS1_PADDING_BYTES = 11


def load_public_key(pem: str) -> rsa.RSAPublicKey:
    """
    Parse a PEM encoded RSA public key.

    Args:
        pem: SubjectPublicKeyInfo or PKCS#1 PEM text

    Returns:
        Loaded RSA public key

    Raises:
        EncodingError: If the key material is malformed or not RSA
    """
    try:
        key = serialization.load_pem_public_key(pem.strip().encode("utf-8"))
    except (ValueError, UnsupportedAlgorithm) as e:
        logger.error(f"Failed to load credential public key: {e}")
        raise EncodingError(f"Invalid public key: {e}") from e

    if not isinstance(key, rsa.RSAPublicKey):
        raise EncodingError(f"Public key must be RSA, got {type(key).__name__}")
    return key


class CredentialEncoder:
    """
    Encrypts credential fields as ``<marker><base64 ciphertext>``.

    The encoder holds an already loaded key and has no other state, so one
    instance can be shared by every login of the process.
    """

    def __init__(self, public_key: rsa.RSAPublicKey, marker: str = "__RSA__"):
        self._public_key = public_key
        self._marker = marker
        self._block_size = public_key.key_size // 8 - PKCS1_PADDING_BYTES

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialEncoder":
        return cls(load_public_key(settings.RSA_PUBLIC_KEY), settings.CREDENTIAL_MARKER)

    @property
    def marker(self) -> str:
        return self._marker

    def _chunks(self, data: bytes) -> List[bytes]:
        # an empty plaintext still produces one (empty) block
        return [
            data[i:i + self._block_size]
            for i in range(0, len(data), self._block_size)
        ] or [b""]

    def encode(self, plaintext: str) -> str:
        """
        Encrypt ``plaintext`` and prepend the marker.

        Text longer than one RSA block is split into block-sized chunks that
        are encrypted separately and concatenated before base64 encoding.
        PKCS#1 v1.5 padding is randomized, so two calls practically never
        return the same value.

        Args:
            plaintext: Any UTF-8 text, including the empty string

        Returns:
            Marker-prefixed base64 ciphertext

        Raises:
            EncodingError: If the encryption primitive fails
        """
        data = plaintext.encode("utf-8")
        try:
            ciphertext = b"".join(
                self._public_key.encrypt(chunk, padding.PKCS1v15())
                for chunk in self._chunks(data)
            )
        except ValueError as e:
            logger.error(f"Credential encryption failed: {e}")
            raise EncodingError(f"Credential encryption failed: {e}") from e

        return self._marker + base64.b64encode(ciphertext).decode("ascii")


@lru_cache()
def get_default_encoder() -> CredentialEncoder:
    """Encoder for the process-wide settings; the key is parsed only once."""
    return CredentialEncoder.from_settings(get_settings())
