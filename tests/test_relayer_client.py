# tests/test_relayer_client.py

from __future__ import annotations

import json

import httpx
import pytest

from fhe_market.core.errors import EncryptionError, InitializationError, RevealError
from fhe_market.fhe.relayer import RelayerClient

from .fakes import REGISTRY_ADDRESS, USER_ADDRESS

BASE_URL = "https://relayer.test"
HANDLE = "0x" + "0a" * 32


def _client(handler) -> RelayerClient:
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(transport=transport, base_url=BASE_URL)
    return RelayerClient(BASE_URL, client=http)


def test_empty_base_url_rejected() -> None:
    with pytest.raises(ValueError):
        RelayerClient("  ")


@pytest.mark.asyncio
async def test_load_stores_key_material() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/v1/keyurl"
        return httpx.Response(200, json={"publicKeyUrl": "https://keys.test/pk"})

    relayer = _client(handler)
    await relayer.load()

    assert relayer.key_info == {"publicKeyUrl": "https://keys.test/pk"}
    await relayer.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503, text="down"),
        httpx.Response(200, json={}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_load_failures_become_initialization_errors(response) -> None:
    relayer = _client(lambda request: response)

    with pytest.raises(InitializationError):
        await relayer.load()
    assert relayer.key_info is None
    await relayer.aclose()


@pytest.mark.asyncio
async def test_encrypt_uint_posts_binding_and_decodes_proof() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"handles": [HANDLE], "inputProof": "0xdeadbeef"})

    relayer = _client(handler)
    out = await relayer.encrypt_uint(
        contract_address=REGISTRY_ADDRESS,
        user_address=USER_ADDRESS,
        value=77,
        bits=32,
    )

    assert seen["path"] == "/v1/input-proof"
    assert seen["body"] == {
        "contractAddress": REGISTRY_ADDRESS,
        "userAddress": USER_ADDRESS,
        "value": 77,
        "bits": 32,
    }
    assert out.ciphertext == bytes.fromhex("0a" * 32)
    assert out.proof == bytes.fromhex("deadbeef")
    await relayer.aclose()


@pytest.mark.asyncio
async def test_encrypt_uint_without_handle_is_an_encryption_error() -> None:
    relayer = _client(lambda request: httpx.Response(200, json={"handles": [], "inputProof": "0x"}))

    with pytest.raises(EncryptionError):
        await relayer.encrypt_uint(contract_address=REGISTRY_ADDRESS, user_address=USER_ADDRESS, value=1, bits=32)
    await relayer.aclose()


@pytest.mark.asyncio
async def test_request_reveal_normalizes_handles() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert request.url.path == "/v1/public-decrypt"
        assert body == {"ciphertextHandles": [HANDLE], "contractAddress": REGISTRY_ADDRESS}
        return httpx.Response(
            200,
            json={"clearValues": {HANDLE.upper().replace("0X", "0x"): "1234"}, "decryptionProof": "0x0102"},
        )

    relayer = _client(handler)
    result = await relayer.request_reveal([HANDLE[2:]], REGISTRY_ADDRESS)

    assert result.clear_values == {HANDLE: 1234}
    assert result.decryption_proof == b"\x01\x02"
    await relayer.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "kms unavailable"}),
        httpx.Response(200, json={"decryptionProof": "0x00"}),
        httpx.Response(200, json={"clearValues": {HANDLE: "x"}, "decryptionProof": "0x00"}),
    ],
)
async def test_request_reveal_failures_become_reveal_errors(response) -> None:
    relayer = _client(lambda request: response)

    with pytest.raises(RevealError):
        await relayer.request_reveal([HANDLE], REGISTRY_ADDRESS)
    await relayer.aclose()


@pytest.mark.asyncio
async def test_request_reveal_accepts_hex_and_decimal_strings() -> None:
    other = "0x" + "0b" * 32
    response = httpx.Response(
        200,
        json={"clearValues": {HANDLE: "0x2a", other: "0042"}, "decryptionProof": "0x00"},
    )
    relayer = _client(lambda request: response)

    result = await relayer.request_reveal([HANDLE, other], REGISTRY_ADDRESS)

    assert result.clear_values == {HANDLE: 42, other: 42}
    await relayer.aclose()
