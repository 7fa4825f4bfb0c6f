"""
Program-derived addresses.

A greeting record lives at an address computed from the program id, the
creating principal, and the record name. The address is a SHA-256 digest that
is required to fall *off* the Ed25519 curve, so no private key can exist for
it and only the program (by presenting the seeds) can act for it.

Derivation is a pure function of its inputs; clients compute the same address
off-line before submitting an instruction.
"""

from __future__ import annotations

import hashlib
from typing import List, Optional, Sequence, Tuple

from greeter.core.constants import (
    GREETING_SEED_PREFIX,
    IDENTITY_LENGTH,
    MAX_BUMP_SEED,
    PDA_MARKER,
)
from greeter.core.program_exceptions import InvalidSeedsError

# Ed25519 field prime and curve constant d = -121665/121666
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


def is_on_curve(point: bytes) -> bool:
    """
    Check whether 32 bytes decompress to a point on the Ed25519 curve.

    The encoding stores y in the low 255 bits; x is recovered from
    x^2 = (y^2 - 1) / (d*y^2 + 1), which has a solution only when the
    right-hand side is a square modulo p.
    """
    if len(point) != IDENTITY_LENGTH:
        return False
    y = (int.from_bytes(point, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    if x2 == 0:
        return True
    # Euler's criterion
    return pow(x2, (_P - 1) // 2, _P) == 1


def create_program_address(seeds: Sequence[bytes], program_id: bytes) -> bytes:
    """
    Hash seeds and program id into an address.

    Raises:
        InvalidSeedsError: If the resulting digest is a valid curve point
    """
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(program_id)
    hasher.update(PDA_MARKER)
    address = hasher.digest()
    if is_on_curve(address):
        raise InvalidSeedsError(
            "Derived address lies on the Ed25519 curve",
            details={"address": address.hex()},
        )
    return address


def find_program_address(
    seeds: Sequence[bytes], program_id: bytes
) -> Tuple[bytes, int]:
    """
    Find the first off-curve address, trying bump seeds 255 down to 0.

    Returns:
        Tuple of (address, bump seed)

    Raises:
        InvalidSeedsError: If every bump seed lands on the curve
    """
    for bump in range(MAX_BUMP_SEED, -1, -1):
        try:
            address = create_program_address([*seeds, bytes([bump])], program_id)
        except InvalidSeedsError:
            continue
        return address, bump
    raise InvalidSeedsError("Unable to find a viable program address bump seed")


def greeting_seeds(principal: bytes, label: Optional[str] = None) -> List[bytes]:
    seeds = [GREETING_SEED_PREFIX, principal]
    if label is not None:
        seeds.append(label.encode("utf-8"))
    return seeds


def derive_greeting_address(
    program_id: bytes, principal: bytes, label: Optional[str] = None
) -> Tuple[bytes, int]:
    """
    Derive the storage address of a principal's greeting record.

    Args:
        program_id: Namespace the record belongs to
        principal: Identity of the creating principal
        label: Optional disambiguating label, the record name

    Returns:
        Tuple of (address, bump seed)
    """
    return find_program_address(greeting_seeds(principal, label), program_id)
