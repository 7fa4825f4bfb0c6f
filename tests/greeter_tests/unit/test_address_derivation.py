"""
Unit tests for program-derived addresses.

Coverage targets:
- Determinism and input sensitivity
- Off-curve guarantee and bump search
- Curve membership check against real Ed25519 public keys
"""

import hashlib

import pytest

from greeter.core.address_derivation import (
    create_program_address,
    derive_greeting_address,
    find_program_address,
    greeting_seeds,
    is_on_curve,
)
from greeter.core.constants import PDA_MARKER
from greeter.core.keypair import Keypair
from greeter.core.program_exceptions import InvalidSeedsError

PROGRAM_ID = bytes.fromhex("5c" * 32)
PRINCIPAL = Keypair.from_seed(b"principal").pubkey


def test_same_inputs_same_address():
    """Derivation is deterministic."""
    first = derive_greeting_address(PROGRAM_ID, PRINCIPAL, "hello")
    second = derive_greeting_address(PROGRAM_ID, PRINCIPAL, "hello")
    assert first == second


def test_inputs_change_address():
    """Program, principal and label each change the address."""
    base, _ = derive_greeting_address(PROGRAM_ID, PRINCIPAL, "hello")
    other_label, _ = derive_greeting_address(PROGRAM_ID, PRINCIPAL, "hello2")
    other_program, _ = derive_greeting_address(b"\x01" * 32, PRINCIPAL, "hello")
    other_principal, _ = derive_greeting_address(PROGRAM_ID, b"\x02" * 32, "hello")
    no_label, _ = derive_greeting_address(PROGRAM_ID, PRINCIPAL)
    assert len({base, other_label, other_program, other_principal, no_label}) == 5


def test_address_is_sha256_of_seeds_bump_program_and_marker():
    """The address is the SHA-256 of seeds, bump, program id and marker."""
    address, bump = derive_greeting_address(PROGRAM_ID, PRINCIPAL, "hello")
    expected = hashlib.sha256(
        b"greeting" + PRINCIPAL + b"hello" + bytes([bump]) + PROGRAM_ID + PDA_MARKER
    ).digest()
    assert address == expected


def test_derived_address_is_off_curve():
    """Derived addresses never decompress to a curve point."""
    for label in ("a", "b", "c", "d", "e"):
        address, _ = derive_greeting_address(PROGRAM_ID, PRINCIPAL, label)
        assert not is_on_curve(address)


def test_find_matches_create_with_bump():
    """The found bump reproduces the address directly."""
    seeds = greeting_seeds(PRINCIPAL, "hello")
    address, bump = find_program_address(seeds, PROGRAM_ID)
    assert 0 <= bump <= 255
    assert create_program_address([*seeds, bytes([bump])], PROGRAM_ID) == address


def test_bump_is_highest_viable():
    """Every bump above the chosen one lands on the curve."""
    seeds = greeting_seeds(PRINCIPAL, "bump")
    _, bump = find_program_address(seeds, PROGRAM_ID)
    for higher in range(bump + 1, 256):
        with pytest.raises(InvalidSeedsError):
            create_program_address([*seeds, bytes([higher])], PROGRAM_ID)


def test_ed25519_public_keys_are_on_curve():
    """Real public keys are recognised as curve points."""
    for i in range(5):
        assert is_on_curve(Keypair.from_seed(bytes([i]) * 32).pubkey)


def test_wrong_width_is_not_a_point():
    """Only 32-byte values can be points."""
    assert not is_on_curve(b"\x01" * 31)


def test_label_is_utf8_encoded():
    """The label seed is the UTF-8 encoding and is optional."""
    assert greeting_seeds(PRINCIPAL, "é")[-1] == "é".encode("utf-8")
    assert len(greeting_seeds(PRINCIPAL)) == 2
