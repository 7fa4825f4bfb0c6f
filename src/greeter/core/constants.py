"""
Greeting Program Constants

Field limits, wire-format widths, and well-known identities used by the
program and its local runtime.

NOTE: Changes to layout constants (marked with [LAYOUT]) change the persisted
record format. Existing records would no longer decode.
"""

from typing import Final

# =============================================================================
# IDENTITIES
# =============================================================================

IDENTITY_LENGTH: Final[int] = 32  # Ed25519 public key width

# The system allocator program is addressed by the all-zero identity
SYSTEM_PROGRAM_ID: Final[bytes] = bytes(IDENTITY_LENGTH)

# Program id used by the CLI and local runtime when none is configured
DEFAULT_PROGRAM_ID_HEX: Final[str] = "67726565746572" + "00" * 25

# =============================================================================
# RECORD FIELD LIMITS [LAYOUT]
# =============================================================================

MAX_NAME_LENGTH: Final[int] = 32  # bytes, UTF-8
MAX_MESSAGE_LENGTH: Final[int] = 128  # bytes, UTF-8
UPDATE_COUNT_MAX: Final[int] = 2**32 - 1  # u32

# =============================================================================
# WIRE FORMAT [LAYOUT]
# =============================================================================

LENGTH_PREFIX_SIZE: Final[int] = 4  # u32 little-endian
UPDATE_COUNT_SIZE: Final[int] = 4

TAG_CREATE_GREETING: Final[int] = 0
TAG_SET_GREETING: Final[int] = 1

# =============================================================================
# ADDRESS DERIVATION
# =============================================================================

GREETING_SEED_PREFIX: Final[bytes] = b"greeting"
PDA_MARKER: Final[bytes] = b"ProgramDerivedAddress"
MAX_BUMP_SEED: Final[int] = 255

# =============================================================================
# RENT (local runtime)
# =============================================================================

ACCOUNT_STORAGE_OVERHEAD: Final[int] = 128  # bytes charged per account on top of data
DEFAULT_LAMPORTS_PER_BYTE_YEAR: Final[int] = 3480
DEFAULT_EXEMPTION_THRESHOLD_YEARS: Final[int] = 2
