"""
Instruction variants accepted by the greeting program, plus client-side
builders that pair encoded instruction data with the accounts it expects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from greeter.core.accounts import AccountMeta
from greeter.core.address_derivation import derive_greeting_address
from greeter.core.constants import SYSTEM_PROGRAM_ID


@dataclass(frozen=True)
class CreateGreeting:
    """
    Create a greeting record at the address derived from the payer and name.

    Accounts expected:
    0. ``[signer, writable]`` payer, funds the slot and becomes the authority
    1. ``[writable]`` record slot, must equal the derived address
    2. ``[]`` system program
    """

    name: str
    message: str


@dataclass(frozen=True)
class SetGreeting:
    """
    Replace the message of an existing greeting record.

    Accounts expected:
    0. ``[signer]`` the record's authority
    1. ``[writable]`` the record slot
    """

    message: str


Instruction = Union[CreateGreeting, SetGreeting]


@dataclass(frozen=True)
class ProgramInstruction:
    """An encoded instruction addressed to a program with its account list."""

    program_id: bytes
    accounts: Tuple[AccountMeta, ...]
    data: bytes


def create_greeting(
    program_id: bytes,
    payer: bytes,
    name: str,
    message: str,
    greeting_address: Optional[bytes] = None,
) -> ProgramInstruction:
    """
    Build a CreateGreeting instruction.

    The record address is derived off-line from the payer and name unless an
    explicit address is supplied.
    """
    from greeter.core.serialization import encode_instruction

    if greeting_address is None:
        greeting_address, _ = derive_greeting_address(program_id, payer, name)
    accounts: List[AccountMeta] = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(greeting_address, is_signer=False, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    data = encode_instruction(CreateGreeting(name=name, message=message))
    return ProgramInstruction(program_id, tuple(accounts), data)


def set_greeting(
    program_id: bytes,
    authority: bytes,
    greeting_address: bytes,
    message: str,
) -> ProgramInstruction:
    """Build a SetGreeting instruction."""
    from greeter.core.serialization import encode_instruction

    accounts = (
        AccountMeta(authority, is_signer=True, is_writable=False),
        AccountMeta(greeting_address, is_signer=False, is_writable=True),
    )
    data = encode_instruction(SetGreeting(message=message))
    return ProgramInstruction(program_id, accounts, data)
