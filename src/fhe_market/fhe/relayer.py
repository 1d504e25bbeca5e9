# src/fhe_market/fhe/relayer.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import EncryptionError, InitializationError, RevealError
from ..tasks.task_models import EncryptedInput, RevealResult, normalize_handle

logger = logging.getLogger(__name__)


def _hex_to_bytes(raw: Any) -> bytes:
    s = str(raw or "").strip()
    if s.startswith(("0x", "0X")):
        s = s[2:]
    return bytes.fromhex(s)


def _to_int(raw: Any) -> int:
    # Clear values arrive as JSON numbers or as decimal/hex strings.
    if isinstance(raw, str):
        s = raw.strip()
        if s.lower().startswith("0x"):
            return int(s, 16)
        return int(s)
    return int(raw)


def _describe_http_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code} from {exc.request.url.path}"
    if isinstance(exc, httpx.TimeoutException):
        return "relayer timed out"
    return f"{exc.__class__.__name__}: {exc}"


class RelayerClient:
    """
    HTTP client for the FHE relayer.

    Implements both the EncryptionEngine port (key loading, input proofs) and
    the RevealService port (public decryption with a proof).

    Endpoints:
    - GET  /v1/keyurl          -> key material descriptor
    - POST /v1/input-proof     -> {"handles": [hex], "inputProof": hex}
    - POST /v1/public-decrypt  -> {"clearValues": {hex: int}, "decryptionProof": hex}
    """

    def __init__(
            self,
            base_url: str,
            *,
            timeout_seconds: float = 30.0,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        if not (base_url or "").strip():
            raise ValueError("Relayer base URL is not set. Set FHE_MARKET_RELAYER_URL in your .env.")
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
        )
        self._key_info: dict[str, Any] | None = None

    @property
    def key_info(self) -> dict[str, Any] | None:
        return self._key_info

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        resp = await self._client.post(path, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"Expected JSON object from {path}")
        return data

    # ---- EncryptionEngine ----

    async def load(self) -> None:
        try:
            resp = await self._client.get("/v1/keyurl")
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise InitializationError(f"Key material unavailable: {_describe_http_error(e)}") from e
        except ValueError as e:
            raise InitializationError("Relayer returned malformed key material") from e

        if not isinstance(data, dict) or not data:
            raise InitializationError("Relayer returned empty key material")

        self._key_info = data
        logger.info("Relayer key material loaded from %s", self._base_url)

    async def encrypt_uint(
            self,
            *,
            contract_address: str,
            user_address: str,
            value: int,
            bits: int,
    ) -> EncryptedInput:
        payload = {
            "contractAddress": contract_address,
            "userAddress": user_address,
            "value": int(value),
            "bits": int(bits),
        }
        try:
            data = await self._post("/v1/input-proof", payload)
            handles = data.get("handles") or []
            if not handles:
                raise ValueError("no handle in input-proof response")
            return EncryptedInput(
                ciphertext=_hex_to_bytes(handles[0]),
                proof=_hex_to_bytes(data.get("inputProof")),
            )
        except httpx.HTTPError as e:
            raise EncryptionError(f"Input proof request failed: {_describe_http_error(e)}") from e
        except ValueError as e:
            raise EncryptionError(f"Malformed input-proof response: {e}") from e

    # ---- RevealService ----

    async def request_reveal(self, handles: list[str], contract_address: str) -> RevealResult:
        payload = {
            "ciphertextHandles": [normalize_handle(h) for h in handles],
            "contractAddress": contract_address,
        }
        try:
            data = await self._post("/v1/public-decrypt", payload)
            raw_values = data.get("clearValues")
            if not isinstance(raw_values, dict):
                raise ValueError("clearValues missing")
            clear_values = {normalize_handle(h): _to_int(v) for h, v in raw_values.items()}
            return RevealResult(
                clear_values=clear_values,
                decryption_proof=_hex_to_bytes(data.get("decryptionProof")),
            )
        except httpx.HTTPError as e:
            raise RevealError(f"Public decryption failed: {_describe_http_error(e)}") from e
        except (TypeError, ValueError) as e:
            raise RevealError(f"Malformed public-decrypt response: {e}") from e
