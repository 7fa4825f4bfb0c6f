"""
Account handles exchanged between the host and the program.

The host verifies signatures and write locks before invocation and reports the
result as plain boolean flags on each handle. The program reads and writes the
handle's data buffer; the host decides whether those writes are committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from greeter.core.constants import IDENTITY_LENGTH, SYSTEM_PROGRAM_ID


def short_key(key: bytes) -> str:
    """Abbreviated hex form of an identity for logs."""
    hex_key = key.hex()
    return f"{hex_key[:8]}...{hex_key[-4:]}"


def parse_identity(value: str) -> bytes:
    """
    Parse a hex-encoded 32-byte identity.

    Args:
        value: 64 hex characters, optionally prefixed with ``0x``

    Returns:
        Raw identity bytes

    Raises:
        ValueError: If the value is not 32 bytes of hex
    """
    text = value.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise ValueError(f"Invalid hex characters in identity: {value}")
    if len(raw) != IDENTITY_LENGTH:
        raise ValueError(f"Identity must be {IDENTITY_LENGTH} bytes, got {len(raw)}")
    return raw


@dataclass
class AccountHandle:
    """
    One account as seen by the program during an invocation.

    ``data`` is empty while the account is unallocated.
    """

    key: bytes
    is_signer: bool = False
    is_writable: bool = False
    lamports: int = 0
    data: bytearray = field(default_factory=bytearray)
    owner: bytes = SYSTEM_PROGRAM_ID

    @property
    def allocated_size(self) -> int:
        return len(self.data)

    @property
    def is_initialized(self) -> bool:
        return self.allocated_size > 0


@dataclass(frozen=True)
class AccountMeta:
    """How an instruction wants to access an account, declared up front."""

    pubkey: bytes
    is_signer: bool
    is_writable: bool


class SystemAllocator(Protocol):
    """Host capability used to create the record's storage slot."""

    def create_account(
        self,
        payer: AccountHandle,
        target: AccountHandle,
        space: int,
        owner: bytes,
        signer_seeds: Sequence[bytes],
    ) -> None:
        """
        Allocate ``space`` zeroed bytes at ``target`` owned by ``owner``.

        ``signer_seeds`` must derive ``target`` under ``owner`` so the program
        can act for an address that has no private key.

        Raises:
            AllocationError: If the account cannot be created
        """
        ...
