"""
secp256k1 Wallet Backend — key generation, addresses and transaction signing.

Key formats:
    private key: 32-byte secret scalar as 64 lowercase hex chars
    public key:  33-byte compressed SEC1 point as 66 lowercase hex chars
    address:     base58([version 1B][RIPEMD160(SHA256(pubkey)) 20B][checksum 4B])

Signed transactions are handed to a submitter coroutine; the default one
POSTs them to the node REST API at ``{node_url}/tx/send``. Private keys
never leave the process.
"""
import math
import time
import hashlib
import logging
from typing import Any, Awaitable, Callable, Optional

import aiohttp
import base58
import orjson
from Crypto.Hash import RIPEMD160
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from ..models import WalletIdentity

logger = logging.getLogger("dcoin.backend")

ADDRESS_VERSION = 0
PRIVATE_KEY_SIZE = 32
CHECKSUM_SIZE = 4
DEFAULT_NODE_URL = "http://127.0.0.1:3000"

Submitter = Callable[[dict[str, Any]], Awaitable[Any]]

_CURVE = ec.SECP256K1()


def hash_pub_key(pub_key: bytes) -> bytes:
    """SHA-256 followed by RIPEMD-160 of a serialized public key."""
    sha = hashlib.sha256(pub_key).digest()
    return RIPEMD160.new(sha).digest()


def address_checksum(version: int, pub_key_hash: bytes) -> bytes:
    """First 4 bytes of SHA256(SHA256(version | pub_key_hash))."""
    first = hashlib.sha256(bytes([version]) + pub_key_hash).digest()
    return hashlib.sha256(first).digest()[:CHECKSUM_SIZE]


def address_from_pub_key(pub_key: bytes, version: int = ADDRESS_VERSION) -> str:
    pub_key_hash = hash_pub_key(pub_key)
    payload = bytes([version]) + pub_key_hash + address_checksum(version, pub_key_hash)
    return base58.b58encode(payload).decode("ascii")


def validate_address(address: str) -> bool:
    """Check an address decodes to 25 bytes with a valid checksum."""
    try:
        decoded = base58.b58decode(address)
    except ValueError:
        return False
    if len(decoded) != 1 + 20 + CHECKSUM_SIZE:
        return False
    version, pub_key_hash, checksum = decoded[0], decoded[1:21], decoded[21:]
    return address_checksum(version, pub_key_hash) == checksum


def _public_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        Encoding.X962, PublicFormat.CompressedPoint,
    )


class Secp256k1Wallet:
    """A key pair able to sign transactions."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        self._key = private_key
        self._pub = _public_bytes(private_key)

    def __repr__(self) -> str:
        return f"<Secp256k1Wallet {self.address()}>"

    @classmethod
    def from_keys(cls, public_key: str, private_key: str) -> "Secp256k1Wallet":
        """Rebuild a wallet from hex keys.

        Raises:
            ValueError: If either key is malformed or they do not match.
        """
        try:
            secret = bytes.fromhex(private_key)
            pub = bytes.fromhex(public_key)
        except ValueError as err:
            raise ValueError("Wallet keys must be hex encoded") from err
        if len(secret) != PRIVATE_KEY_SIZE:
            raise ValueError(
                f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(secret)}"
            )
        key = ec.derive_private_key(int.from_bytes(secret, "big"), _CURVE)
        # raises ValueError for points not on the curve
        ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, pub)
        wallet = cls(key)
        if wallet._pub != pub:
            raise ValueError("Public key does not match private key")
        return wallet

    def public_key(self) -> str:
        return self._pub.hex()

    def private_key(self) -> str:
        value = self._key.private_numbers().private_value
        return value.to_bytes(PRIVATE_KEY_SIZE, "big").hex()

    def address(self) -> str:
        return address_from_pub_key(self._pub)

    def sign(self, message: bytes) -> bytes:
        """ECDSA-SHA256 signature, DER encoded."""
        return self._key.sign(message, ec.ECDSA(hashes.SHA256()))

    def verify(self, message: bytes, signature: bytes) -> bool:
        try:
            self._key.public_key().verify(signature, message, ec.ECDSA(hashes.SHA256()))
        except InvalidSignature:
            return False
        return True


def http_submitter(node_url: str) -> Submitter:
    """Build a submitter POSTing signed transactions to a node."""
    endpoint = f"{node_url.rstrip('/')}/tx/send"

    async def _submit(payload: dict[str, Any]) -> Any:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                endpoint,
                data=orjson.dumps(payload),
                headers={"Content-Type": "application/json"},
            ) as response:
                response.raise_for_status()
                return await response.json(loads=orjson.loads)
    return _submit


class Secp256k1Backend:
    """Wallet backend on the secp256k1 curve.

    Args:
        node_url: Node REST API used by the default submitter.
        submitter: Coroutine receiving ``{"tx": ..., "signature": ...}``.
    """

    def __init__(
        self,
        node_url: str = DEFAULT_NODE_URL,
        submitter: Optional[Submitter] = None,
    ):
        self._submit = submitter or http_submitter(node_url)

    def generate_wallet(self) -> WalletIdentity:
        wallet = Secp256k1Wallet(ec.generate_private_key(_CURVE))
        return WalletIdentity(
            public_key=wallet.public_key(),
            private_key=wallet.private_key(),
        )

    def reconstruct_wallet(self, public_key: str, private_key: str) -> Secp256k1Wallet:
        return Secp256k1Wallet.from_keys(public_key, private_key)

    def build_transaction(self, to: str, from_wallet: Secp256k1Wallet, amount: float) -> dict[str, Any]:
        if not to:
            raise ValueError("Recipient address cannot be empty")
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValueError(f"Amount must be a number, got {amount!r}")
        if not math.isfinite(amount) or amount <= 0:
            raise ValueError(f"Amount must be positive and finite, got {amount}")
        return {
            "from": from_wallet.address(),
            "to": to,
            "amount": amount,
            "pub_key": from_wallet.public_key(),
            "timestamp": int(time.time()),
        }

    async def sign_and_submit(
        self, to: str, from_wallet: Secp256k1Wallet, amount: float,
    ) -> Any:
        """Sign a transfer and submit it.

        Raises:
            ValueError: If the recipient or amount is invalid.
            aiohttp.ClientError: If the default submitter cannot reach the node.
        """
        tx = self.build_transaction(to, from_wallet, amount)
        signature = from_wallet.sign(orjson.dumps(tx, option=orjson.OPT_SORT_KEYS))
        logger.info("Submitting transaction from %s to %s", tx["from"], to)
        return await self._submit({"tx": tx, "signature": signature.hex()})


def load_backend(
    node_url: str = DEFAULT_NODE_URL,
    submitter: Optional[Submitter] = None,
) -> Secp256k1Backend:
    """Factory called by the backend handle's module loader."""
    return Secp256k1Backend(node_url=node_url, submitter=submitter)
