"""
Vault Re-keying — re-encrypt wallet records under a new password.

The record is decrypted with the current password and sealed again with a
fresh salt and iv under the new one. Nothing is written unless the current
password is correct.

Security Note:
    Plaintext exists in memory only during re-encryption of the record.
    Never log passwords, private keys or ciphertext.
"""
import logging
from typing import Union

from ..exceptions import DECRYPTION_FAILED, DecryptionFailed, NotFound
from ..models import EncryptedRecord
from .store import Vault

logger = logging.getLogger("dcoin.vault")


async def change_password(
    vault: Vault,
    public_key: str,
    old_password: str,
    new_password: str,
) -> Union[EncryptedRecord, DecryptionFailed]:
    """Re-encrypt one wallet under a new password.

    Args:
        vault: Vault holding the record.
        public_key: Wallet to re-key.
        old_password: Password currently sealing the record.
        new_password: Password to seal it with.

    Returns:
        The new record, or ``DECRYPTION_FAILED`` if old_password is wrong.

    Raises:
        NotFound: If no record exists for public_key.
    """
    record = await vault.get(public_key)
    if record is None:
        raise NotFound(f"No wallet stored for public key {public_key}")

    identity = await vault.decrypt_entry(public_key, record, old_password)
    if not identity:
        logger.info("Password change rejected: key=%s", public_key)
        return DECRYPTION_FAILED

    new_record = await vault.encrypt_entry(identity, new_password)
    logger.info("Password changed: key=%s", public_key)
    return new_record
