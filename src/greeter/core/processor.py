"""
Instruction dispatcher for the greeting program.

Each invocation decodes the instruction, checks the supplied accounts against
the instruction's access rules, and applies the state change. Checks run in a
fixed order (account presence, flags, address/identity, field lengths) and any
failure raises before the record slot is written. The record is written at most
once, as the last step, so a failed invocation leaves nothing for the host to
discard beyond what it already rolls back.
"""

from __future__ import annotations

import logging
from typing import Sequence

from greeter.core.accounts import AccountHandle, SystemAllocator, short_key
from greeter.core.address_derivation import derive_greeting_address, greeting_seeds
from greeter.core.constants import SYSTEM_PROGRAM_ID
from greeter.core.instructions import CreateGreeting, SetGreeting
from greeter.core.program_exceptions import (
    AccountAlreadyInitializedError,
    AccountNotInitializedError,
    AccountNotWritableError,
    DecodeError,
    IncorrectProgramIdError,
    InvalidAccountAddressError,
    InvalidAccountDataError,
    MissingRequiredSignatureError,
    NotEnoughAccountKeysError,
    UnauthorizedError,
)
from greeter.core.serialization import decode_instruction, decode_record, encode_record
from greeter.core.state import GreetingRecord, apply_create, apply_set, max_space

logger = logging.getLogger(__name__)


def _require_accounts(accounts: Sequence[AccountHandle], count: int, instruction: str) -> None:
    if len(accounts) < count:
        raise NotEnoughAccountKeysError(
            f"{instruction} expects {count} accounts, got {len(accounts)}",
            details={"expected": count, "supplied": len(accounts)},
        )


def _require_signer(account: AccountHandle, role: str) -> None:
    if not account.is_signer:
        raise MissingRequiredSignatureError(
            f"{role} account must sign", details={"account": account.key.hex()}
        )


def _require_writable(account: AccountHandle, role: str) -> None:
    if not account.is_writable:
        raise AccountNotWritableError(
            f"{role} account must be writable", details={"account": account.key.hex()}
        )


def _write_record(account: AccountHandle, record: GreetingRecord) -> None:
    """Overwrite the slot with ``record`` followed by zero padding."""
    encoded = encode_record(record)
    if len(encoded) > account.allocated_size:
        raise InvalidAccountDataError(
            f"Record needs {len(encoded)} bytes, slot holds {account.allocated_size}"
        )
    account.data[:] = encoded + bytes(account.allocated_size - len(encoded))


def process_create_greeting(
    program_id: bytes,
    accounts: Sequence[AccountHandle],
    instruction: CreateGreeting,
    allocator: SystemAllocator,
) -> GreetingRecord:
    _require_accounts(accounts, 3, "CreateGreeting")
    payer, greeting_account, system_program = accounts[0], accounts[1], accounts[2]

    _require_signer(payer, "Payer")
    _require_writable(payer, "Payer")
    _require_writable(greeting_account, "Greeting")
    if system_program.key != SYSTEM_PROGRAM_ID:
        raise IncorrectProgramIdError(
            "Third account must be the system program",
            details={"account": system_program.key.hex()},
        )

    expected, bump = derive_greeting_address(program_id, payer.key, instruction.name)
    if greeting_account.key != expected:
        raise InvalidAccountAddressError(
            "Greeting account does not match the derived address",
            expected=expected,
            actual=greeting_account.key,
        )
    if greeting_account.is_initialized:
        raise AccountAlreadyInitializedError(
            "Greeting account already holds data",
            details={"account": greeting_account.key.hex()},
        )

    record = apply_create(payer.key, instruction.name, instruction.message)

    signer_seeds = [*greeting_seeds(payer.key, instruction.name), bytes([bump])]
    allocator.create_account(payer, greeting_account, max_space(), program_id, signer_seeds)
    _write_record(greeting_account, record)

    logger.info(
        "Greeting created",
        extra={
            "event": "greeting.created",
            "account": short_key(greeting_account.key),
            "authority": short_key(payer.key),
            "greeting_name": record.name,
        },
    )
    return record


def process_set_greeting(
    program_id: bytes,
    accounts: Sequence[AccountHandle],
    instruction: SetGreeting,
) -> GreetingRecord:
    _require_accounts(accounts, 2, "SetGreeting")
    authority, greeting_account = accounts[0], accounts[1]

    _require_signer(authority, "Authority")
    _require_writable(greeting_account, "Greeting")
    if not greeting_account.is_initialized:
        raise AccountNotInitializedError(
            "Greeting account has not been created",
            details={"account": greeting_account.key.hex()},
        )
    if greeting_account.owner != program_id:
        raise IncorrectProgramIdError(
            "Greeting account is not owned by this program",
            details={"owner": greeting_account.owner.hex()},
        )

    try:
        current = decode_record(greeting_account.data)
    except DecodeError as exc:
        raise InvalidAccountDataError(
            f"Stored greeting record is corrupt: {exc.message}",
            details={"account": greeting_account.key.hex()},
        ) from exc

    if authority.key != current.authority:
        raise UnauthorizedError(
            "Signer is not the greeting's authority",
            details={
                "signer": authority.key.hex(),
                "authority": current.authority.hex(),
            },
        )

    updated = apply_set(current, instruction.message)
    _write_record(greeting_account, updated)

    logger.info(
        "Greeting updated",
        extra={
            "event": "greeting.updated",
            "account": short_key(greeting_account.key),
            "update_count": updated.update_count,
        },
    )
    return updated


def process_instruction(
    program_id: bytes,
    accounts: Sequence[AccountHandle],
    instruction_data: bytes,
    allocator: SystemAllocator,
) -> None:
    """
    Decode and execute one instruction.

    Args:
        program_id: Identity of this program
        accounts: Ordered account handles supplied by the host
        instruction_data: Encoded instruction
        allocator: Host capability for creating the record slot

    Raises:
        ProgramError: On any decode, validation, or authorization failure
    """
    instruction = decode_instruction(instruction_data)

    if isinstance(instruction, CreateGreeting):
        logger.debug(
            "Instruction: CreateGreeting",
            extra={"event": "instruction.create_greeting", "greeting_name": instruction.name},
        )
        process_create_greeting(program_id, accounts, instruction, allocator)
    elif isinstance(instruction, SetGreeting):
        logger.debug(
            "Instruction: SetGreeting",
            extra={"event": "instruction.set_greeting"},
        )
        process_set_greeting(program_id, accounts, instruction)
