"""Shared fixtures for the vault test-suite."""
import asyncio
import itertools

import pytest

from dcoin_vault.backend import CryptoBackendHandle, reset_backend_handle
from dcoin_vault.models import WalletIdentity
from dcoin_vault.service import VaultService
from dcoin_vault.session import WalletSession
from dcoin_vault.storage import MemoryStorage
from dcoin_vault.vault import Vault

# PBKDF2 at full strength makes the suite slow; the scheme is the same.
TEST_ITERATIONS = 1_000


class FakeWallet:
    """Wallet handle returned by FakeBackend."""

    def __init__(self, public_key: str, private_key: str):
        self._public_key = public_key
        self._private_key = private_key

    def public_key(self) -> str:
        return self._public_key

    def private_key(self) -> str:
        return self._private_key

    def address(self) -> str:
        return f"addr-{self._public_key}"


class FakeBackend:
    """Deterministic stand-in for the secp256k1 backend."""

    def __init__(self):
        self._counter = itertools.count(1)
        self.submitted: list[tuple[str, FakeWallet, float]] = []

    def generate_wallet(self) -> WalletIdentity:
        n = next(self._counter)
        return WalletIdentity(public_key=f"pub-{n:04d}", private_key=f"priv-{n:04d}")

    def reconstruct_wallet(self, public_key: str, private_key: str) -> FakeWallet:
        if public_key.replace("pub-", "") != private_key.replace("priv-", ""):
            raise ValueError("Public key does not match private key")
        return FakeWallet(public_key, private_key)

    async def sign_and_submit(self, to: str, from_wallet: FakeWallet, amount: float):
        self.submitted.append((to, from_wallet, amount))
        return {"status": "accepted", "to": to, "amount": amount}


class CountingLoader:
    """Backend loader that records how often it runs."""

    def __init__(self, backend=None, fail_times: int = 0, delay: float = 0.01):
        self.backend = backend or FakeBackend()
        self.fail_times = fail_times
        self.delay = delay
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.calls <= self.fail_times:
            raise RuntimeError("engine download failed")
        return self.backend


@pytest.fixture(autouse=True)
def _reset_shared_handle():
    reset_backend_handle()
    yield
    reset_backend_handle()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def vault(storage):
    return Vault(storage, iterations=TEST_ITERATIONS)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def loader(fake_backend):
    return CountingLoader(fake_backend)


@pytest.fixture
def backend_handle(loader):
    return CryptoBackendHandle(loader)


@pytest.fixture
def session():
    return WalletSession()


@pytest.fixture
def service(vault, backend_handle, session):
    return VaultService(vault, backend_handle, session)


@pytest.fixture
def identity():
    return WalletIdentity(public_key="pub-0042", private_key="priv-0042")


@pytest.fixture
def make_loader():
    """Factory for loaders with custom failure behaviour."""
    return CountingLoader
