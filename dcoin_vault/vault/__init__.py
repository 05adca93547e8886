"""Wallet Vault — Password-encrypted private keys keyed by public key.

Security Note (Threat Model):
    Private keys are decrypted in process memory only while a wallet is
    active. A memory dump of the application process during that time
    could expose the active private key. This is an accepted limitation;
    mitigation requires a hardware wallet or secure enclave, which is out
    of scope.
"""

from .store import Vault, VaultMap
from .rekey import change_password
from .config import VaultConfig
from .crypto import derive_key, KDF_ITERATIONS

__all__ = [
    "Vault",
    "VaultMap",
    "change_password",
    "VaultConfig",
    "derive_key",
    "KDF_ITERATIONS",
]
