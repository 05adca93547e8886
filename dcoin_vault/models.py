"""
Vault Models — wallet identities, encrypted records and session states.
"""
import base64
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

SALT_SIZE = 16  # 128-bit PBKDF2 salt
NONCE_SIZE = 12  # 96-bit AES-GCM nonce
KDF_ITERATIONS = 100_000  # PBKDF2 default; also assumed for records without one


class WalletIdentity(BaseModel):
    """A public/private key pair as produced by the backend."""

    model_config = ConfigDict(frozen=True)

    public_key: str = Field(min_length=1)
    private_key: str = Field(min_length=1, repr=False)


class EncryptedRecord(BaseModel):
    """An encrypted private key with the salt, iv and work factor to open it."""

    model_config = ConfigDict(frozen=True)

    ciphertext: bytes
    salt: bytes
    iv: bytes
    iterations: int = Field(default=KDF_ITERATIONS, ge=1, strict=True)

    @field_validator("salt")
    @classmethod
    def validate_salt(cls, v: bytes) -> bytes:
        if len(v) != SALT_SIZE:
            raise ValueError(f"salt must be {SALT_SIZE} bytes, got {len(v)}")
        return v

    @field_validator("iv")
    @classmethod
    def validate_iv(cls, v: bytes) -> bytes:
        if len(v) != NONCE_SIZE:
            raise ValueError(f"iv must be {NONCE_SIZE} bytes, got {len(v)}")
        return v

    def to_storage(self) -> dict[str, Any]:
        """Return the textual form persisted in the wallet map."""
        return {
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
            "salt": base64.b64encode(self.salt).decode("ascii"),
            "iv": base64.b64encode(self.iv).decode("ascii"),
            "iterations": self.iterations,
        }

    @classmethod
    def from_storage(cls, data: dict[str, Any]) -> "EncryptedRecord":
        """Build a record from its persisted textual form.

        Records written without ``iterations`` were sealed with the
        default work factor.

        Raises:
            ValueError: If a field is missing or not valid base64.
        """
        try:
            return cls(
                ciphertext=base64.b64decode(data["ciphertext"], validate=True),
                salt=base64.b64decode(data["salt"], validate=True),
                iv=base64.b64decode(data["iv"], validate=True),
                iterations=data.get("iterations", KDF_ITERATIONS),
            )
        except (KeyError, TypeError) as err:
            raise ValueError(f"malformed encrypted record: {err!r}") from err


# ---------------------------------------------------------------------------
# Session states
# ---------------------------------------------------------------------------

class Empty(BaseModel):
    """No wallet is selected."""

    model_config = ConfigDict(frozen=True)

    name: Literal["empty"] = "empty"


class Activating(BaseModel):
    """A wallet is being decrypted and reconstructed."""

    model_config = ConfigDict(frozen=True)

    public_key: str
    name: Literal["activating"] = "activating"


class Active(BaseModel):
    """A decrypted wallet is available for signing."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    identity: WalletIdentity
    handle: Any = Field(default=None, repr=False, exclude=True)
    name: Literal["active"] = "active"

    @property
    def public_key(self) -> str:
        return self.identity.public_key


class Failed(BaseModel):
    """The last activation attempt did not produce a wallet."""

    model_config = ConfigDict(frozen=True)

    public_key: str
    reason: str
    name: Literal["failed"] = "failed"


WalletSessionState = Union[Empty, Activating, Active, Failed]

EMPTY = Empty()
