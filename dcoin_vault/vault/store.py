"""
Vault — Password-encrypted wallet records keyed by public key.

Provides the public API for the wallet vault:
- ``store(public_key, record)`` / ``delete(public_key)`` — mutate the map
- ``list()`` / ``get(public_key)`` — read the map
- ``encrypt_entry(identity, password)`` — seal a private key and store it
- ``decrypt_entry(public_key, record, password)`` — recover a private key

The whole map lives in one storage slot as an orjson document of
``{public_key: {ciphertext, salt, iv, iterations}}`` with base64 fields.
Every mutation rewrites the slot under a lock so overlapping writers never
lose an update.

Security Note:
    Never log passwords, private keys or ciphertext. Only public keys,
    slot names and counts.
"""
import asyncio
import logging
from typing import Optional, Union

import orjson
from pydantic import ValidationError

from ..exceptions import DECRYPTION_FAILED, DecryptionFailed, StorageCorrupt
from ..models import EncryptedRecord, WalletIdentity
from ..storage import SlotStorage
from .config import DEFAULT_SLOT
from .crypto import KDF_ITERATIONS, generate_nonce, generate_salt, seal, unseal

logger = logging.getLogger("dcoin.vault")

VaultMap = dict[str, EncryptedRecord]


class Vault:
    """Encrypted wallet registry on top of a slot storage.

    Args:
        storage: Persistent slot storage.
        slot: Name of the slot holding the serialized map.
        iterations: PBKDF2 work factor for newly sealed records. Existing
            records are opened with the work factor stored alongside them.
        strict: Raise ``StorageCorrupt`` on an unparsable map instead of
            treating it as empty.
    """

    def __init__(
        self,
        storage: SlotStorage,
        slot: str = DEFAULT_SLOT,
        iterations: int = KDF_ITERATIONS,
        strict: bool = False,
    ):
        self._storage = storage
        self._slot = slot
        self._iterations = iterations
        self._strict = strict
        self._lock = asyncio.Lock()

    @property
    def slot(self) -> str:
        return self._slot

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _corrupt(self, reason: str) -> VaultMap:
        if self._strict:
            raise StorageCorrupt(f"Wallet map in slot '{self._slot}' is corrupt: {reason}")
        logger.warning(
            "Wallet map in slot '%s' is corrupt (%s); treating as empty",
            self._slot, reason,
        )
        return {}

    def _decode(self, raw: Optional[str]) -> VaultMap:
        if raw is None:
            return {}
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError:
            return self._corrupt("invalid JSON")
        if not isinstance(data, dict):
            return self._corrupt("not an object")
        wallets: VaultMap = {}
        for public_key, entry in data.items():
            if not isinstance(entry, dict):
                return self._corrupt(f"entry {public_key} is not an object")
            try:
                wallets[public_key] = EncryptedRecord.from_storage(entry)
            except (ValueError, ValidationError):
                return self._corrupt(f"entry {public_key} is malformed")
        return wallets

    @staticmethod
    def _encode(wallets: VaultMap) -> str:
        return orjson.dumps(
            {pk: record.to_storage() for pk, record in wallets.items()}
        ).decode("utf-8")

    async def _load(self) -> VaultMap:
        try:
            raw = await self._storage.get(self._slot)
        except StorageCorrupt as err:
            return self._corrupt(str(err))
        return self._decode(raw)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list(self) -> VaultMap:
        """Return the full wallet map (empty if the slot is absent)."""
        return await self._load()

    async def get(self, public_key: str) -> Optional[EncryptedRecord]:
        """Return the record stored for ``public_key``, if any."""
        return (await self._load()).get(public_key)

    async def store(self, public_key: str, record: EncryptedRecord) -> None:
        """Insert or overwrite the record for ``public_key``.

        Raises:
            ValueError: If public_key is empty.
        """
        if not public_key:
            raise ValueError("Public key cannot be empty")
        async with self._lock:
            wallets = await self._load()
            wallets[public_key] = record
            await self._storage.set(self._slot, self._encode(wallets))
        logger.debug("Vault store: key=%s total=%d", public_key, len(wallets))

    async def delete(self, public_key: str) -> None:
        """Remove the record for ``public_key``; absent keys are ignored."""
        async with self._lock:
            wallets = await self._load()
            if wallets.pop(public_key, None) is None:
                return
            await self._storage.set(self._slot, self._encode(wallets))
        logger.debug("Vault delete: key=%s", public_key)

    async def encrypt_entry(
        self, identity: WalletIdentity, password: str,
    ) -> EncryptedRecord:
        """Encrypt the identity's private key and store it.

        Args:
            identity: Wallet whose private key is sealed.
            password: Password the record will be unlocked with.

        Returns:
            The stored record.
        """
        salt = generate_salt()
        iv = generate_nonce()
        ciphertext = await seal(
            identity.private_key.encode("utf-8"),
            password, salt, iv, self._iterations,
        )
        record = EncryptedRecord(
            ciphertext=ciphertext, salt=salt, iv=iv, iterations=self._iterations,
        )
        await self.store(identity.public_key, record)
        return record

    async def decrypt_entry(
        self, public_key: str, record: EncryptedRecord, password: str,
    ) -> Union[WalletIdentity, DecryptionFailed]:
        """Recover the wallet identity sealed in ``record``.

        Returns:
            WalletIdentity on success, ``DECRYPTION_FAILED`` if the password
            is wrong or the record was tampered with.
        """
        plaintext = await unseal(
            record.ciphertext, password, record.salt, record.iv, record.iterations,
        )
        if plaintext is None:
            logger.info("Vault decrypt failed: key=%s", public_key)
            return DECRYPTION_FAILED
        try:
            private_key = plaintext.decode("utf-8")
        except UnicodeDecodeError:
            return DECRYPTION_FAILED
        return WalletIdentity(public_key=public_key, private_key=private_key)
