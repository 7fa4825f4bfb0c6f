from __future__ import annotations

import pytest

from greeter.core.accounts import AccountHandle
from greeter.core.address_derivation import derive_greeting_address
from greeter.core.config import ProgramConfig
from greeter.core.constants import SYSTEM_PROGRAM_ID
from greeter.core.keypair import Keypair
from greeter.core.runtime import LocalRuntime, Rent, RuntimeAllocator

PROGRAM_ID = bytes.fromhex("5c" * 32)
FUNDING = 10 * 1_000_000_000


class RecordingAllocator(RuntimeAllocator):
    """Runtime allocator that remembers every request it served."""

    def __init__(self) -> None:
        super().__init__(Rent(3480, 2))
        self.calls = []

    def create_account(self, payer, target, space, owner, signer_seeds):
        self.calls.append((payer.key, target.key, space, owner, list(signer_seeds)))
        super().create_account(payer, target, space, owner, signer_seeds)


@pytest.fixture
def program_id():
    return PROGRAM_ID


@pytest.fixture
def payer():
    return Keypair.from_seed(b"payer-seed")


@pytest.fixture
def stranger():
    return Keypair.from_seed(b"stranger-seed")


@pytest.fixture
def allocator():
    return RecordingAllocator()


@pytest.fixture
def config():
    return ProgramConfig(program_id=PROGRAM_ID)


@pytest.fixture
def runtime(config, payer, stranger):
    rt = LocalRuntime(config)
    rt.airdrop(payer.pubkey, FUNDING)
    rt.airdrop(stranger.pubkey, FUNDING)
    return rt


@pytest.fixture
def create_accounts(program_id, payer):
    """Account handles for a CreateGreeting of name 'hello'."""

    def _build(name: str = "hello", address: bytes | None = None):
        if address is None:
            address, _ = derive_greeting_address(program_id, payer.pubkey, name)
        return [
            AccountHandle(key=payer.pubkey, is_signer=True, is_writable=True, lamports=FUNDING),
            AccountHandle(key=address, is_writable=True),
            AccountHandle(key=SYSTEM_PROGRAM_ID),
        ]

    return _build
