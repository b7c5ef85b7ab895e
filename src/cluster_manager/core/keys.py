"""Cluster signing keys."""

from __future__ import annotations

import base64
import uuid
from typing import List

from cryptography.hazmat.primitives.asymmetric import rsa

from cluster_manager.schemas.cluster import JsonWebKey


def _b64url_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8 or 1, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


class KeyGenerator:
    """Generates RSA signing keys and exposes their public halves as JWKs.

    Private keys never leave this object; only the public numbers are kept
    in cluster documents.
    """

    def __init__(self, key_size: int = 2048) -> None:
        self.key_size = key_size

    def generate(self) -> JsonWebKey:
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=self.key_size)
        numbers = private_key.public_key().public_numbers()
        return JsonWebKey(
            kid=uuid.uuid4().hex,
            n=_b64url_uint(numbers.n),
            e=_b64url_uint(numbers.e),
        )


def rotated_keys(keys: List[JsonWebKey], new_key: JsonWebKey) -> List[JsonWebKey]:
    """Key set while a rotation is in progress: old keys plus ``new_key``."""
    return [*keys, new_key]


def completed_keys(keys: List[JsonWebKey]) -> List[JsonWebKey]:
    """Key set once a rotation completes: only the newest key."""
    return keys[-1:]
