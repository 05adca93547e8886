"""
Vault Errors — exception taxonomy and the decryption-failure sentinel.

A wrong password is an expected outcome, so it is reported as the
``DECRYPTION_FAILED`` value rather than an exception. Everything else that
the caller must handle is a ``VaultError`` subclass.
"""


class VaultError(Exception):
    """Base class for vault errors."""


class BackendLoadFailure(VaultError):
    """The cryptographic backend could not be loaded.

    Raised to every caller waiting on the failed load. Calling
    ``get_backend()`` again starts a new load attempt.
    """


class NotFound(VaultError, KeyError):
    """No encrypted record exists for the requested public key."""

    def __str__(self) -> str:
        # KeyError quotes its argument
        return Exception.__str__(self)


class NoActiveWallet(VaultError):
    """The operation requires an active wallet session."""


class StorageCorrupt(VaultError, ValueError):
    """The persisted wallet map could not be parsed."""


class DecryptionFailed:
    """Result of a decryption whose authentication check failed.

    Use the ``DECRYPTION_FAILED`` singleton; it is falsy so callers can write
    ``if not result:``.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "DECRYPTION_FAILED"


DECRYPTION_FAILED = DecryptionFailed()
