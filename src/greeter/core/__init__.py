"""
Greeter Core Module

Core functionality for the greeting program including:
- Instruction and record wire codec
- Greeting account state model
- Program-derived address computation
- Instruction dispatcher and host entrypoint
- Local host runtime for development and tests
"""

from .accounts import AccountHandle, AccountMeta, SystemAllocator
from .address_derivation import (
    create_program_address,
    derive_greeting_address,
    find_program_address,
)
from .entrypoint import entrypoint
from .instructions import (
    CreateGreeting,
    Instruction,
    ProgramInstruction,
    SetGreeting,
    create_greeting,
    set_greeting,
)
from .processor import process_instruction
from .program_exceptions import ErrorCode, ProgramError
from .serialization import (
    decode_instruction,
    decode_record,
    encode_instruction,
    encode_record,
)
from .state import GreetingRecord, apply_create, apply_set, max_space

__all__ = [
    # Accounts
    "AccountHandle",
    "AccountMeta",
    "SystemAllocator",
    # Addresses
    "create_program_address",
    "find_program_address",
    "derive_greeting_address",
    # Instructions
    "CreateGreeting",
    "SetGreeting",
    "Instruction",
    "ProgramInstruction",
    "create_greeting",
    "set_greeting",
    # Codec
    "encode_instruction",
    "decode_instruction",
    "encode_record",
    "decode_record",
    # State
    "GreetingRecord",
    "apply_create",
    "apply_set",
    "max_space",
    # Execution
    "process_instruction",
    "entrypoint",
    # Errors
    "ErrorCode",
    "ProgramError",
]
