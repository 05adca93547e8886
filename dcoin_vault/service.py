"""
VaultService — orchestrates the backend, the vault and the wallet session.

Presentation code talks to this object only:
- ``create_and_store(password)`` — generate a wallet and seal it
- ``activate(public_key, password)`` — decrypt and make a wallet active
- ``remove(public_key)`` — delete a wallet, dropping it if active
- ``send(to, amount)`` — sign and submit with the active wallet
- ``session.subscribe(callback)`` — observe session state changes
"""
import hmac
import logging
from typing import Any, Optional, Union

from .backend import CryptoBackendHandle
from .exceptions import DECRYPTION_FAILED, DecryptionFailed, NoActiveWallet, NotFound
from .models import Active, Activating, EncryptedRecord, WalletIdentity, WalletSessionState
from .session import Activation, WalletSession
from .storage import FileStorage, MemoryStorage, RedisStorage, SlotStorage
from .vault import Vault, VaultConfig, change_password

logger = logging.getLogger("dcoin.vault")


def _request_key(record: EncryptedRecord, password: str) -> bytes:
    """Fingerprint of one activation attempt; equal only for equal inputs."""
    return hmac.digest(record.salt + record.iv, password.encode("utf-8"), "sha256")


class VaultService:
    """Composition root of the wallet vault.

    Args:
        vault: Encrypted wallet registry.
        backend: Handle to the lazily loaded wallet backend.
        session: Session holding the active wallet.
    """

    def __init__(
        self,
        vault: Vault,
        backend: CryptoBackendHandle,
        session: Optional[WalletSession] = None,
    ):
        self._vault = vault
        self._backend = backend
        self._session = session or WalletSession()

    @property
    def vault(self) -> Vault:
        return self._vault

    @property
    def session(self) -> WalletSession:
        return self._session

    @property
    def state(self) -> WalletSessionState:
        return self._session.state

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_and_store(self, password: str) -> WalletIdentity:
        """Generate a new wallet and store it encrypted under ``password``.

        Raises:
            BackendLoadFailure: If the backend cannot be loaded.
        """
        backend = await self._backend.get_backend()
        identity = backend.generate_wallet()
        await self._vault.encrypt_entry(identity, password)
        logger.info("Wallet created: key=%s", identity.public_key)
        return identity

    async def activate(self, public_key: str, password: str) -> WalletSessionState:
        """Make the stored wallet for ``public_key`` the active one.

        A wrong password leaves the session ``Failed``; it is not an error.

        Raises:
            NotFound: If the vault holds no wallet for public_key.
            BackendLoadFailure: If the backend cannot be loaded.
        """
        record = await self._vault.get(public_key)
        if record is None:
            raise NotFound(f"No wallet stored for public key {public_key}")

        async def activator() -> Union[Activation, DecryptionFailed]:
            return await self._unlock(public_key, record, password)

        return await self._session.select(
            public_key, activator, request_key=_request_key(record, password),
        )

    async def _unlock(
        self, public_key: str, record: EncryptedRecord, password: str,
    ) -> Union[Activation, DecryptionFailed]:
        identity = await self._vault.decrypt_entry(public_key, record, password)
        if not identity:
            return DECRYPTION_FAILED
        backend = await self._backend.get_backend()
        handle = backend.reconstruct_wallet(identity.public_key, identity.private_key)
        return identity, handle

    async def remove(self, public_key: str) -> None:
        """Delete a wallet; the session is cleared if it holds that wallet."""
        await self._vault.delete(public_key)
        state = self._session.state
        if isinstance(state, (Active, Activating)) and state.public_key == public_key:
            self._session.clear()
            logger.info("Active wallet removed: key=%s", public_key)

    async def send(self, to: str, amount: float) -> Any:
        """Sign and submit a transfer from the active wallet.

        Raises:
            NoActiveWallet: If no wallet is active.
        """
        handle = self._session.handle
        if not isinstance(self._session.state, Active) or handle is None:
            raise NoActiveWallet("No active wallet to send from")
        backend = await self._backend.get_backend()
        return await backend.sign_and_submit(to, handle, amount)

    async def list_wallets(self) -> list[str]:
        """Public keys of all stored wallets."""
        return list(await self._vault.list())

    async def change_password(
        self, public_key: str, old_password: str, new_password: str,
    ) -> Union[EncryptedRecord, DecryptionFailed]:
        """Re-encrypt a stored wallet under a new password.

        Raises:
            NotFound: If the vault holds no wallet for public_key.
        """
        return await change_password(
            self._vault, public_key, old_password, new_password,
        )

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: Optional[VaultConfig] = None,
        redis: Any = None,
    ) -> "VaultService":
        """Build a service from configuration.

        Args:
            config: Settings; loaded from the environment when omitted.
            redis: Async redis client, required for redis storage.

        The service gets its own backend handle, bound to the configured
        backend module and node URL.

        Raises:
            ValueError: If redis storage is configured without a client.
        """
        config = config or VaultConfig.from_env()
        storage: SlotStorage
        if config.storage == "memory":
            storage = MemoryStorage()
        elif config.storage == "redis":
            if redis is None:
                raise ValueError("Redis storage requires a redis client")
            storage = RedisStorage(redis)
        else:
            storage = FileStorage(config.storage_path)
        vault = Vault(
            storage,
            slot=config.storage_slot,
            iterations=config.kdf_iterations,
            strict=config.strict_storage,
        )
        backend = CryptoBackendHandle.from_module(
            config.backend_module, node_url=config.node_url,
        )
        return cls(vault, backend)
