"""
Vault Configuration — validated settings loaded from the environment.

Recognised environment variables:
    VAULT_STORAGE         = memory | file | redis      (default: file)
    VAULT_STORAGE_PATH    = <path to vault JSON file>  (default: ~/.dcoin/vault.json)
    VAULT_STORAGE_SLOT    = <slot name>                (default: wallets)
    VAULT_KDF_ITERATIONS  = <int >= 10000>             (default: 100000)
    VAULT_STRICT_STORAGE  = true | false               (default: false)
    VAULT_BACKEND_MODULE  = <importable module>        (default: dcoin_vault.backend.secp256k1)
    VAULT_NODE_URL        = <node REST base url>       (default: http://127.0.0.1:3000)

VAULT_KDF_ITERATIONS only applies to newly sealed records; each record keeps
the work factor it was sealed with.

Security Note:
    Passwords are never part of configuration.
"""
import os
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

from ..backend import DEFAULT_BACKEND_MODULE
from .crypto import KDF_ITERATIONS

logger = logging.getLogger("dcoin.vault")

DEFAULT_STORAGE_PATH = "~/.dcoin/vault.json"
DEFAULT_SLOT = "wallets"
DEFAULT_NODE_URL = "http://127.0.0.1:3000"

_TRUE_VALUES = ("1", "true", "yes", "on")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    storage: str = Field(default="file")
    storage_path: str = Field(default=DEFAULT_STORAGE_PATH)
    storage_slot: str = Field(default=DEFAULT_SLOT, min_length=1)
    kdf_iterations: int = Field(default=KDF_ITERATIONS, ge=10_000)
    strict_storage: bool = Field(default=False)
    backend_module: str = Field(default=DEFAULT_BACKEND_MODULE, min_length=1)
    node_url: str = Field(default=DEFAULT_NODE_URL)

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        """Validate storage backend is supported."""
        v = v.lower()
        if v not in ("memory", "file", "redis"):
            raise ValueError(f"Unsupported storage backend: {v}")
        return v

    @field_validator("node_url")
    @classmethod
    def validate_node_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"node_url must be an http(s) URL, got {v!r}")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_storage_path(self) -> "VaultConfig":
        """Ensure file storage has somewhere to write."""
        if self.storage == "file" and not self.storage_path:
            raise ValueError("storage_path is required for file storage")
        return self

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        env = os.environ
        config = cls(
            storage=env.get("VAULT_STORAGE", "file"),
            storage_path=env.get("VAULT_STORAGE_PATH", DEFAULT_STORAGE_PATH),
            storage_slot=env.get("VAULT_STORAGE_SLOT", DEFAULT_SLOT),
            kdf_iterations=int(env.get("VAULT_KDF_ITERATIONS", KDF_ITERATIONS)),
            strict_storage=env.get("VAULT_STRICT_STORAGE", "false").lower() in _TRUE_VALUES,
            backend_module=env.get("VAULT_BACKEND_MODULE", DEFAULT_BACKEND_MODULE),
            node_url=env.get("VAULT_NODE_URL", DEFAULT_NODE_URL),
        )
        logger.debug(
            "Vault config: storage=%s slot=%s iterations=%d backend=%s",
            config.storage, config.storage_slot,
            config.kdf_iterations, config.backend_module,
        )
        return config
