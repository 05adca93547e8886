"""DCoin Vault.

Password-protected local key vault for DCoin wallets.
"""
from .version import __version__
from .exceptions import (
    VaultError,
    BackendLoadFailure,
    NotFound,
    NoActiveWallet,
    StorageCorrupt,
    DecryptionFailed,
    DECRYPTION_FAILED,
)
from .models import (
    WalletIdentity,
    EncryptedRecord,
    Empty,
    Activating,
    Active,
    Failed,
    WalletSessionState,
)
from .storage import SlotStorage, MemoryStorage, FileStorage, RedisStorage
from .vault import Vault, VaultConfig, change_password
from .backend import CryptoBackendHandle, get_backend_handle
from .session import WalletSession
from .service import VaultService

__all__ = [
    "__version__",
    "VaultError",
    "BackendLoadFailure",
    "NotFound",
    "NoActiveWallet",
    "StorageCorrupt",
    "DecryptionFailed",
    "DECRYPTION_FAILED",
    "WalletIdentity",
    "EncryptedRecord",
    "Empty",
    "Activating",
    "Active",
    "Failed",
    "WalletSessionState",
    "SlotStorage",
    "MemoryStorage",
    "FileStorage",
    "RedisStorage",
    "Vault",
    "VaultConfig",
    "change_password",
    "CryptoBackendHandle",
    "get_backend_handle",
    "WalletSession",
    "VaultService",
]
