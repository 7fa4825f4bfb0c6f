"""
Local host runtime.

An in-memory ledger that plays the host's part for development and tests:
it verifies transaction signatures, hands the program account handles with
signer/writable flags, provides the system allocator, and commits account
changes only when every instruction in a transaction succeeds.

Transactions that write the same account are serialized through per-account
locks; transactions over disjoint accounts can run concurrently.
"""

from __future__ import annotations

import logging
import struct
import threading
from contextlib import ExitStack
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from greeter.core.accounts import AccountHandle, short_key
from greeter.core.address_derivation import create_program_address
from greeter.core.config import ProgramConfig
from greeter.core.constants import ACCOUNT_STORAGE_OVERHEAD, SYSTEM_PROGRAM_ID
from greeter.core.entrypoint import entrypoint
from greeter.core.instructions import ProgramInstruction
from greeter.core.keypair import Keypair, verify_signature
from greeter.core.program_exceptions import (
    AllocationError,
    ErrorCode,
    InvalidSeedsError,
)
from greeter.core.serialization import decode_record
from greeter.core.state import GreetingRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rent:
    """Storage rent schedule; accounts funded for the threshold are exempt."""

    lamports_per_byte_year: int
    exemption_threshold_years: int

    def minimum_balance(self, space: int) -> int:
        return (
            (ACCOUNT_STORAGE_OVERHEAD + space)
            * self.lamports_per_byte_year
            * self.exemption_threshold_years
        )


def _copy_account(account: AccountHandle, **changes) -> AccountHandle:
    return replace(account, data=bytearray(account.data), **changes)


@dataclass
class Transaction:
    """Instructions plus the signatures of the principals that authorized them."""

    instructions: List[ProgramInstruction]
    signatures: Dict[bytes, bytes] = field(default_factory=dict)

    @classmethod
    def signed(
        cls, instructions: Sequence[ProgramInstruction], signers: Sequence[Keypair]
    ) -> "Transaction":
        tx = cls(list(instructions))
        message = tx.message()
        for signer in signers:
            tx.signatures[signer.pubkey] = signer.sign(message)
        return tx

    def message(self) -> bytes:
        """Canonical bytes covered by every signature."""
        parts = [struct.pack("<I", len(self.instructions))]
        for ix in self.instructions:
            parts.append(ix.program_id)
            parts.append(struct.pack("<I", len(ix.accounts)))
            for meta in ix.accounts:
                parts.append(meta.pubkey)
                parts.append(bytes([int(meta.is_signer), int(meta.is_writable)]))
            parts.append(struct.pack("<I", len(ix.data)))
            parts.append(ix.data)
        return b"".join(parts)

    def writable_keys(self) -> List[bytes]:
        keys = {
            meta.pubkey
            for ix in self.instructions
            for meta in ix.accounts
            if meta.is_writable
        }
        return sorted(keys)


@dataclass
class TransactionResult:
    code: int
    failed_instruction: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.code == ErrorCode.SUCCESS


class RuntimeAllocator:
    """System allocator operating on one transaction's working accounts."""

    def __init__(self, rent: Rent) -> None:
        self.rent = rent

    def create_account(
        self,
        payer: AccountHandle,
        target: AccountHandle,
        space: int,
        owner: bytes,
        signer_seeds: Sequence[bytes],
    ) -> None:
        try:
            derived = create_program_address(signer_seeds, owner)
        except InvalidSeedsError as exc:
            raise AllocationError("Signer seeds do not form a program address") from exc
        if derived != target.key:
            raise AllocationError(
                "Signer seeds do not derive the target account",
                details={"target": target.key.hex(), "derived": derived.hex()},
            )
        if not payer.is_signer or not payer.is_writable:
            raise AllocationError("Payer must be a writable signer")
        if not target.is_writable:
            raise AllocationError("Target account must be writable")
        if target.data or target.lamports or target.owner != SYSTEM_PROGRAM_ID:
            raise AllocationError(
                "Target account already in use",
                details={"target": target.key.hex()},
            )

        required = self.rent.minimum_balance(space)
        if payer.lamports < required:
            raise AllocationError(
                f"Insufficient funds: {payer.lamports} < {required}",
                details={"payer": payer.key.hex(), "required": required},
            )

        payer.lamports -= required
        target.lamports += required
        target.data = bytearray(space)
        target.owner = owner
        logger.debug(
            "Account created",
            extra={
                "event": "system.create_account",
                "target": short_key(target.key),
                "space": space,
                "lamports": required,
            },
        )


class LocalRuntime:
    """In-memory ledger hosting deployed programs."""

    def __init__(self, config: Optional[ProgramConfig] = None) -> None:
        self.config = config or ProgramConfig.from_env()
        self.rent = Rent(
            self.config.lamports_per_byte_year,
            self.config.exemption_threshold_years,
        )
        self._accounts: Dict[bytes, AccountHandle] = {}
        self._programs = {self.config.program_id}
        self._store_lock = threading.RLock()
        self._locks: Dict[bytes, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ==================== Account store ====================

    def deploy(self, program_id: bytes) -> None:
        with self._store_lock:
            self._programs.add(program_id)

    def airdrop(self, pubkey: bytes, lamports: int) -> None:
        if lamports < 0:
            raise ValueError("Cannot airdrop a negative amount")
        with self._store_lock:
            account = self._accounts.setdefault(pubkey, AccountHandle(key=pubkey))
            account.lamports += lamports

    def get_account(self, pubkey: bytes) -> Optional[AccountHandle]:
        with self._store_lock:
            account = self._accounts.get(pubkey)
            return _copy_account(account) if account is not None else None

    def get_balance(self, pubkey: bytes) -> int:
        account = self.get_account(pubkey)
        return account.lamports if account else 0

    def get_greeting(self, address: bytes) -> Optional[GreetingRecord]:
        account = self.get_account(address)
        if account is None or not account.is_initialized:
            return None
        return decode_record(account.data)

    # ==================== Execution ====================

    def _lock_for(self, key: bytes) -> threading.Lock:
        """
        Lock guarding writes to ``key``.

        One lock is kept per account ever written and never released, which
        is fine for a development ledger whose account set stays small.
        """
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def _load(self, key: bytes) -> AccountHandle:
        account = self._accounts.get(key)
        if account is None:
            return AccountHandle(key=key)
        return _copy_account(account)

    def process_transaction(self, tx: Transaction) -> TransactionResult:
        """
        Execute every instruction of ``tx`` atomically.

        Returns:
            Result carrying ``ErrorCode.SUCCESS`` or the first failure's code
        """
        message = tx.message()
        verified = {
            pubkey
            for pubkey, signature in tx.signatures.items()
            if verify_signature(pubkey, message, signature)
        }

        writable = tx.writable_keys()
        with ExitStack() as stack:
            for key in writable:
                stack.enter_context(self._lock_for(key))

            with self._store_lock:
                working = {
                    meta.pubkey: self._load(meta.pubkey)
                    for ix in tx.instructions
                    for meta in ix.accounts
                }

            for index, ix in enumerate(tx.instructions):
                code = self._execute(ix, working, verified)
                if code != ErrorCode.SUCCESS:
                    logger.info(
                        "Transaction failed",
                        extra={
                            "event": "runtime.transaction_failed",
                            "instruction": index,
                            "error_code": code,
                        },
                    )
                    return TransactionResult(code, failed_instruction=index)

            # Read-only accounts were loaded without their lock and may be stale
            with self._store_lock:
                for key in writable:
                    self._accounts[key] = working[key]
        logger.debug(
            "Transaction committed",
            extra={"event": "runtime.transaction_committed", "instructions": len(tx.instructions)},
        )
        return TransactionResult(int(ErrorCode.SUCCESS))

    def _execute(
        self,
        ix: ProgramInstruction,
        working: Dict[bytes, AccountHandle],
        verified: set,
    ) -> int:
        if ix.program_id not in self._programs:
            return int(ErrorCode.INCORRECT_PROGRAM_ID)

        handles = [
            _copy_account(
                working[meta.pubkey],
                is_signer=meta.is_signer and meta.pubkey in verified,
                is_writable=meta.is_writable,
            )
            for meta in ix.accounts
        ]
        code = entrypoint(ix.program_id, handles, ix.data, RuntimeAllocator(self.rent))
        if code != ErrorCode.SUCCESS:
            return code

        for meta, handle in zip(ix.accounts, handles):
            before = working[meta.pubkey]
            changed = (
                handle.data != before.data
                or handle.lamports != before.lamports
                or handle.owner != before.owner
            )
            if changed and not meta.is_writable:
                return int(ErrorCode.ACCOUNT_NOT_WRITABLE)
        for meta, handle in zip(ix.accounts, handles):
            working[meta.pubkey] = _copy_account(handle, is_signer=False, is_writable=False)
        return int(ErrorCode.SUCCESS)
