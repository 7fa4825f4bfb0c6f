"""
Host adapter for the greeting program.

The host runtime calls :func:`entrypoint` with the raw invocation parameters.
It traces those parameters, hands them to the dispatcher, and turns the outcome
into the integer result code the host expects.
"""

from __future__ import annotations

import logging
from typing import Sequence

from greeter.core.accounts import AccountHandle, SystemAllocator
from greeter.core.processor import process_instruction
from greeter.core.program_exceptions import ErrorCode, ProgramError, get_error_context

logger = logging.getLogger(__name__)


def _log_invocation(
    program_id: bytes,
    accounts: Sequence[AccountHandle],
    instruction_data: bytes,
) -> None:
    logger.debug(
        "Program invoked",
        extra={
            "event": "program.invoked",
            "program_id": program_id.hex(),
            "account_count": len(accounts),
        },
    )
    for index, account in enumerate(accounts):
        logger.debug(
            "Account %d: %s signer=%s writable=%s",
            index,
            account.key.hex(),
            account.is_signer,
            account.is_writable,
            extra={"event": "program.account", "index": index},
        )
    logger.debug(
        "Instruction data length: %d bytes",
        len(instruction_data),
        extra={
            "event": "program.instruction_data",
            "length": len(instruction_data),
            "first_byte": instruction_data[0] if instruction_data else None,
        },
    )


def entrypoint(
    program_id: bytes,
    accounts: Sequence[AccountHandle],
    instruction_data: bytes,
    allocator: SystemAllocator,
) -> int:
    """
    Run one invocation and report its result code.

    Args:
        program_id: Identity of this program
        accounts: Ordered account handles
        instruction_data: Encoded instruction
        allocator: Host capability for creating accounts

    Returns:
        ``ErrorCode.SUCCESS`` (0) or the failing error's stable code
    """
    _log_invocation(program_id, accounts, instruction_data)
    try:
        process_instruction(program_id, accounts, instruction_data, allocator)
    except ProgramError as exc:
        logger.warning(
            "Program failed: %s",
            exc.message,
            extra={"event": "program.failed", **get_error_context(exc)},
        )
        return int(exc.code)
    logger.debug("Program succeeded", extra={"event": "program.succeeded"})
    return int(ErrorCode.SUCCESS)
