"""Ed25519 keypairs for principals in the local runtime."""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from greeter.core.constants import IDENTITY_LENGTH


class Keypair:
    """A principal identity and the private key that signs for it."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self.pubkey = private_key.public_key().public_bytes(
            serialization.Encoding.Raw,
            serialization.PublicFormat.Raw,
        )

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        """Deterministic keypair from a seed, padded or cut to 32 bytes."""
        if len(seed) < IDENTITY_LENGTH:
            seed = seed.ljust(IDENTITY_LENGTH, b"\x00")
        return cls(Ed25519PrivateKey.from_private_bytes(seed[:IDENTITY_LENGTH]))

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    def __repr__(self) -> str:
        return f"Keypair({self.pubkey.hex()})"


def verify_signature(pubkey: bytes, message: bytes, signature: bytes) -> bool:
    try:
        Ed25519PublicKey.from_public_bytes(pubkey).verify(signature, message)
    except (InvalidSignature, ValueError):
        return False
    return True
