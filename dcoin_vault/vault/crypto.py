"""
Vault Crypto Core — Password key derivation and authenticated encryption.

Private keys are sealed with a key stretched from the user's password:
    PBKDF2-HMAC-SHA256(password, salt 16B, 100k iterations) → AES-256-GCM

Security Note:
    Never log passwords, derived keys, plaintext or ciphertext values.
    Salt and nonce are freshly random for every encryption.
"""
import os
import asyncio
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..models import KDF_ITERATIONS, NONCE_SIZE, SALT_SIZE

logger = logging.getLogger("dcoin.vault")

KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16  # GCM tag


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(password: str, salt: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """Derive a 32-byte encryption key from a password using PBKDF2-SHA256.

    Args:
        password: User password.
        salt: Random per-record salt.
        iterations: PBKDF2 work factor.

    Returns:
        32-byte derived key.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


async def derive_key_async(
    password: str, salt: bytes, iterations: int = KDF_ITERATIONS,
) -> bytes:
    """Run ``derive_key`` in a worker thread so the event loop stays free."""
    return await asyncio.to_thread(derive_key, password, salt, iterations)


def generate_salt() -> bytes:
    return os.urandom(SALT_SIZE)


def generate_nonce() -> bytes:
    return os.urandom(NONCE_SIZE)


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

async def seal(
    plaintext: bytes,
    password: str,
    salt: bytes,
    iv: bytes,
    iterations: int = KDF_ITERATIONS,
) -> bytes:
    """Encrypt plaintext under a password-derived key.

    Returns:
        ciphertext with the 16-byte GCM tag appended.
    """
    key = await derive_key_async(password, salt, iterations)
    return AESGCM(key).encrypt(iv, plaintext, None)


async def unseal(
    ciphertext: bytes,
    password: str,
    salt: bytes,
    iv: bytes,
    iterations: int = KDF_ITERATIONS,
) -> bytes | None:
    """Decrypt ciphertext under a password-derived key.

    The key is always derived, even for ciphertext too short to carry a tag,
    so a rejected record costs the same as a wrong password.

    Returns:
        Plaintext bytes, or None if authentication fails.
    """
    key = await derive_key_async(password, salt, iterations)
    if len(ciphertext) < TAG_SIZE:
        return None
    try:
        return AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag:
        return None
