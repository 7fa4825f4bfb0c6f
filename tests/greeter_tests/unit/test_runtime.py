"""
Unit tests for the local host runtime.

Coverage targets:
- Signature verification feeding the signer flag
- Rent funding and allocator checks
- All-or-nothing commit of multi-instruction transactions
- Serialization of transactions that write the same account
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from greeter.core.accounts import AccountHandle
from greeter.core.address_derivation import derive_greeting_address
from greeter.core.constants import SYSTEM_PROGRAM_ID
from greeter.core.instructions import ProgramInstruction, create_greeting, set_greeting
from greeter.core.keypair import Keypair
from greeter.core.program_exceptions import AllocationError, ErrorCode
from greeter.core.runtime import Rent, RuntimeAllocator, Transaction
from greeter.core.state import max_space


def _send(runtime, instructions, signers):
    return runtime.process_transaction(Transaction.signed(instructions, signers))


def test_rent_minimum_balance():
    """Rent covers the storage overhead plus data."""
    rent = Rent(3480, 2)
    assert rent.minimum_balance(max_space()) == (128 + 204) * 3480 * 2


def test_create_and_set_through_runtime(runtime, program_id, payer):
    """Create then three updates through signed transactions."""
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    address = create_ix.accounts[1].pubkey

    assert _send(runtime, [create_ix], [payer]).success
    record = runtime.get_greeting(address)
    assert record.message == "world"
    assert record.authority == payer.pubkey

    for message in ["a", "b", "c"]:
        assert _send(runtime, [set_greeting(program_id, payer.pubkey, address, message)], [payer]).success
    record = runtime.get_greeting(address)
    assert record.update_count == 3
    assert record.message == "c"


def test_rent_debited_from_payer(runtime, program_id, payer):
    """The payer funds the record's rent."""
    before = runtime.get_balance(payer.pubkey)
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    _send(runtime, [create_ix], [payer])
    rent = runtime.rent.minimum_balance(max_space())
    assert runtime.get_balance(payer.pubkey) == before - rent
    assert runtime.get_balance(create_ix.accounts[1].pubkey) == rent


def test_greeting_account_owned_by_program(runtime, program_id, payer):
    """The created slot is owned by the program."""
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    _send(runtime, [create_ix], [payer])
    account = runtime.get_account(create_ix.accounts[1].pubkey)
    assert account.owner == program_id
    assert account.allocated_size == max_space()


def test_missing_signature_clears_signer_flag(runtime, program_id, payer):
    """An unsigned payer is not treated as a signer."""
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    result = _send(runtime, [create_ix], [])
    assert result.code == ErrorCode.MISSING_REQUIRED_SIGNATURE
    assert runtime.get_greeting(create_ix.accounts[1].pubkey) is None


def test_forged_signature_rejected(runtime, program_id, payer, stranger):
    """A signature by another key does not count."""
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    tx = Transaction([create_ix])
    tx.signatures[payer.pubkey] = stranger.sign(tx.message())
    assert runtime.process_transaction(tx).code == ErrorCode.MISSING_REQUIRED_SIGNATURE


def test_non_authority_update_leaves_account_unchanged(runtime, program_id, payer, stranger):
    """A rejected update leaves data and balance as they were."""
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    address = create_ix.accounts[1].pubkey
    _send(runtime, [create_ix], [payer])
    before = runtime.get_account(address)

    result = _send(runtime, [set_greeting(program_id, stranger.pubkey, address, "hijack")], [stranger])
    assert result.code == ErrorCode.UNAUTHORIZED
    after = runtime.get_account(address)
    assert bytes(after.data) == bytes(before.data)
    assert after.lamports == before.lamports


def test_insufficient_funds(config, program_id):
    """A payer who cannot cover rent keeps their balance."""
    from greeter.core.runtime import LocalRuntime

    runtime = LocalRuntime(config)
    poor = Keypair.from_seed(b"poor")
    runtime.airdrop(poor.pubkey, 10)
    create_ix = create_greeting(program_id, poor.pubkey, "hello", "world")
    result = _send(runtime, [create_ix], [poor])
    assert result.code == ErrorCode.ALLOCATION_FAILED
    assert runtime.get_balance(poor.pubkey) == 10


def test_failed_transaction_rolls_back_earlier_instructions(runtime, program_id, payer):
    """A later failure undoes earlier instructions."""
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    address = create_ix.accounts[1].pubkey
    bad_set = set_greeting(program_id, payer.pubkey, address, "m" * 129)
    before = runtime.get_balance(payer.pubkey)

    result = _send(runtime, [create_ix, bad_set], [payer])
    assert result.code == ErrorCode.FIELD_TOO_LONG
    assert result.failed_instruction == 1
    assert runtime.get_greeting(address) is None
    assert runtime.get_balance(payer.pubkey) == before


def test_multi_instruction_transaction_commits_together(runtime, program_id, payer):
    """Create and update in one transaction both commit."""
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    address = create_ix.accounts[1].pubkey
    set_ix = set_greeting(program_id, payer.pubkey, address, "second")
    assert _send(runtime, [create_ix, set_ix], [payer]).success
    assert runtime.get_greeting(address).update_count == 1


def test_unknown_program(runtime, payer):
    """Instructions for undeployed programs are refused."""
    ix = ProgramInstruction(b"\x77" * 32, (), b"\x01")
    assert _send(runtime, [ix], [payer]).code == ErrorCode.INCORRECT_PROGRAM_ID


def test_second_create_for_same_name_fails(runtime, program_id, payer):
    """A second create for the same name fails."""
    create_ix = create_greeting(program_id, payer.pubkey, "hello", "world")
    assert _send(runtime, [create_ix], [payer]).success
    again = create_greeting(program_id, payer.pubkey, "hello", "again")
    assert _send(runtime, [again], [payer]).code == ErrorCode.ACCOUNT_ALREADY_INITIALIZED
    assert runtime.get_greeting(create_ix.accounts[1].pubkey).message == "world"


def test_concurrent_creates_on_same_address_serialize(runtime, program_id, payer):
    """Racing creates on one address yield exactly one success."""
    instructions = [create_greeting(program_id, payer.pubkey, "race", f"msg-{i}") for i in range(8)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda ix: _send(runtime, [ix], [payer]), instructions))

    codes = sorted(r.code for r in results)
    assert codes.count(ErrorCode.SUCCESS) == 1
    assert codes.count(ErrorCode.ACCOUNT_ALREADY_INITIALIZED) == 7


def test_concurrent_updates_count_every_write(runtime, program_id, payer):
    """Concurrent updates are all counted."""
    create_ix = create_greeting(program_id, payer.pubkey, "counter", "start")
    address = create_ix.accounts[1].pubkey
    _send(runtime, [create_ix], [payer])

    updates = [set_greeting(program_id, payer.pubkey, address, f"m{i}") for i in range(20)]
    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda ix: _send(runtime, [ix], [payer]), updates))

    assert all(r.success for r in results)
    assert runtime.get_greeting(address).update_count == 20


def test_concurrent_creates_on_distinct_addresses(runtime, program_id):
    """Creates on disjoint accounts all succeed."""
    payers = [Keypair.from_seed(f"payer-{i}".encode()) for i in range(6)]
    for p in payers:
        runtime.airdrop(p.pubkey, 10**9)

    def _create(p):
        return _send(runtime, [create_greeting(program_id, p.pubkey, "hi", "there")], [p])

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(_create, payers))
    assert all(r.success for r in results)
    for p in payers:
        address, _ = derive_greeting_address(program_id, p.pubkey, "hi")
        assert runtime.get_greeting(address).authority == p.pubkey


class TestRuntimeAllocator:
    def _handles(self, program_id, payer, name="hello"):
        address, bump = derive_greeting_address(program_id, payer.pubkey, name)
        payer_handle = AccountHandle(key=payer.pubkey, is_signer=True, is_writable=True, lamports=10**9)
        target = AccountHandle(key=address, is_writable=True)
        seeds = [b"greeting", payer.pubkey, name.encode(), bytes([bump])]
        return payer_handle, target, seeds

    def test_rejects_seeds_for_other_address(self, program_id, payer):
        """Seeds must derive the target account."""
        payer_handle, target, seeds = self._handles(program_id, payer)
        target.key = b"\x01" * 32
        with pytest.raises(AllocationError):
            RuntimeAllocator(Rent(1, 1)).create_account(payer_handle, target, 10, program_id, seeds)

    def test_rejects_account_in_use(self, program_id, payer):
        """An account with lamports cannot be re-created."""
        payer_handle, target, seeds = self._handles(program_id, payer)
        target.lamports = 1
        with pytest.raises(AllocationError):
            RuntimeAllocator(Rent(1, 1)).create_account(payer_handle, target, 10, program_id, seeds)

    def test_allocates_zeroed_space(self, program_id, payer):
        """Allocation zero-fills, assigns owner and funds rent."""
        payer_handle, target, seeds = self._handles(program_id, payer)
        RuntimeAllocator(Rent(1, 1)).create_account(payer_handle, target, 10, program_id, seeds)
        assert target.data == bytearray(10)
        assert target.owner == program_id
        assert target.lamports == 138


def test_get_account_returns_copy(runtime, payer):
    """Callers cannot mutate the store through get_account."""
    account = runtime.get_account(payer.pubkey)
    account.lamports = 0
    assert runtime.get_balance(payer.pubkey) > 0


def test_system_program_id_is_zero():
    """The system program id is all zeros."""
    assert SYSTEM_PROGRAM_ID == bytes(32)


def test_readonly_account_not_committed_over_concurrent_debit(runtime, program_id, payer, monkeypatch):
    """A SetGreeting reading the payer must not restore a balance debited meanwhile."""
    first = create_greeting(program_id, payer.pubkey, "first", "hi")
    assert _send(runtime, [first], [payer]).success
    update = set_greeting(program_id, payer.pubkey, first.accounts[1].pubkey, "again")

    loaded = threading.Event()
    release = threading.Event()
    execute = runtime._execute

    def paused_execute(ix, working, verified):
        if ix is update:
            loaded.set()
            release.wait(timeout=5)
        return execute(ix, working, verified)

    monkeypatch.setattr(runtime, "_execute", paused_execute)

    results = []
    worker = threading.Thread(target=lambda: results.append(_send(runtime, [update], [payer])))
    worker.start()
    assert loaded.wait(timeout=5)

    second = create_greeting(program_id, payer.pubkey, "second", "hi")
    assert _send(runtime, [second], [payer]).success
    balance_after_second = runtime.get_balance(payer.pubkey)

    release.set()
    worker.join(timeout=5)

    assert results[0].success
    assert runtime.get_balance(payer.pubkey) == balance_after_second
    assert runtime.get_greeting(second.accounts[1].pubkey) is not None
    assert runtime.get_greeting(first.accounts[1].pubkey).update_count == 1


def test_deployed_program_accepts_instructions(runtime, payer):
    """Instructions for a program become executable once it is deployed."""
    other_program = b"\x66" * 32
    create_ix = create_greeting(other_program, payer.pubkey, "hello", "world")
    assert _send(runtime, [create_ix], [payer]).code == ErrorCode.INCORRECT_PROGRAM_ID

    runtime.deploy(other_program)
    assert _send(runtime, [create_ix], [payer]).success
    assert runtime.get_account(create_ix.accounts[1].pubkey).owner == other_program
