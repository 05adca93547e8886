"""
Tests for the bundled secp256k1 backend.
"""
import inspect

import orjson
import pytest

from dcoin_vault.backend.secp256k1 import (
    Secp256k1Backend,
    Secp256k1Wallet,
    address_from_pub_key,
    http_submitter,
    load_backend,
    validate_address,
)

# private key 1 -> generator point
ONE = "00" * 31 + "01"
G_COMPRESSED = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
G_ADDRESS = "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"


class RecordingSubmitter:

    def __init__(self):
        self.payloads = []

    async def __call__(self, payload):
        self.payloads.append(payload)
        return {"accepted": True}


@pytest.fixture
def submitter():
    return RecordingSubmitter()


@pytest.fixture
def backend(submitter):
    return Secp256k1Backend(submitter=submitter)


class TestKeys:
    """Tests for key generation and reconstruction."""

    def test_generate_wallet_format(self, backend):
        identity = backend.generate_wallet()
        assert len(identity.private_key) == 64
        assert len(identity.public_key) == 66
        assert identity.public_key[:2] in ("02", "03")
        assert identity.public_key != identity.private_key

    def test_generated_wallets_differ(self, backend):
        assert backend.generate_wallet().public_key != backend.generate_wallet().public_key

    def test_reconstruct_round_trip(self, backend):
        identity = backend.generate_wallet()
        wallet = backend.reconstruct_wallet(identity.public_key, identity.private_key)
        assert wallet.public_key() == identity.public_key
        assert wallet.private_key() == identity.private_key

    def test_known_vector(self):
        wallet = Secp256k1Wallet.from_keys(G_COMPRESSED, ONE)
        assert wallet.public_key() == G_COMPRESSED
        assert wallet.address() == G_ADDRESS

    def test_mismatched_keys(self, backend):
        a = backend.generate_wallet()
        b = backend.generate_wallet()
        with pytest.raises(ValueError):
            backend.reconstruct_wallet(a.public_key, b.private_key)

    @pytest.mark.parametrize("public_key,private_key", [
        (G_COMPRESSED, "zz" * 32),
        (G_COMPRESSED, "01"),
        ("02" + "00" * 32, ONE),
        (G_COMPRESSED, "00" * 32),
    ])
    def test_malformed_keys(self, public_key, private_key):
        with pytest.raises(ValueError):
            Secp256k1Wallet.from_keys(public_key, private_key)


class TestAddress:

    def test_address_from_pub_key(self):
        assert address_from_pub_key(bytes.fromhex(G_COMPRESSED)) == G_ADDRESS

    def test_validate_address(self):
        assert validate_address(G_ADDRESS)

    def test_validate_bad_checksum(self):
        assert not validate_address(G_ADDRESS[:-1] + "N")

    def test_validate_garbage(self):
        assert not validate_address("0OIl")
        assert not validate_address("abc")


class TestSignAndSubmit:
    """Tests for transaction signing."""

    @pytest.mark.asyncio
    async def test_signed_payload(self, backend, submitter):
        identity = backend.generate_wallet()
        wallet = backend.reconstruct_wallet(identity.public_key, identity.private_key)
        result = await backend.sign_and_submit(G_ADDRESS, wallet, 5)
        assert result == {"accepted": True}
        payload = submitter.payloads[0]
        tx = payload["tx"]
        assert tx["to"] == G_ADDRESS
        assert tx["from"] == wallet.address()
        assert tx["amount"] == 5
        assert tx["pub_key"] == identity.public_key
        message = orjson.dumps(tx, option=orjson.OPT_SORT_KEYS)
        assert wallet.verify(message, bytes.fromhex(payload["signature"]))

    @pytest.mark.asyncio
    async def test_payload_has_no_private_key(self, backend, submitter):
        identity = backend.generate_wallet()
        wallet = backend.reconstruct_wallet(identity.public_key, identity.private_key)
        await backend.sign_and_submit(G_ADDRESS, wallet, 1)
        assert identity.private_key not in orjson.dumps(submitter.payloads[0]).decode()

    @pytest.mark.parametrize("to,amount", [
        ("", 1),
        (G_ADDRESS, 0),
        (G_ADDRESS, -3),
        (G_ADDRESS, float("nan")),
        (G_ADDRESS, float("inf")),
        (G_ADDRESS, True),
        (G_ADDRESS, "5"),
    ])
    @pytest.mark.asyncio
    async def test_invalid_transfer(self, backend, submitter, to, amount):
        wallet = Secp256k1Wallet.from_keys(G_COMPRESSED, ONE)
        with pytest.raises(ValueError):
            await backend.sign_and_submit(to, wallet, amount)
        assert submitter.payloads == []


class TestFactory:

    def test_load_backend(self, submitter):
        assert isinstance(load_backend(submitter=submitter), Secp256k1Backend)

    def test_http_submitter_is_coroutine_function(self):
        assert inspect.iscoroutinefunction(http_submitter("http://127.0.0.1:3000/"))
