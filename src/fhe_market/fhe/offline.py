# src/fhe_market/fhe/offline.py

from __future__ import annotations

import secrets

from ..core.errors import RevealError
from ..tasks.task_models import EncryptedInput, RevealResult, normalize_handle

OFFLINE_PROOF_PREFIX = b"offline-proof:"


class OfflineFheBackend:
    """
    Offline stand-in for the relayer, used for demos when no external service is configured.

    No cryptography happens here. "Ciphertexts" are random 32-byte handles and
    the plaintexts are kept in a private table so reveal() can hand them back.
    Implements both the EncryptionEngine and RevealService ports.
    """

    def __init__(self) -> None:
        self._values: dict[str, int] = {}
        self._bindings: dict[str, tuple[str, str]] = {}
        self.loaded = False

    async def load(self) -> None:
        self.loaded = True

    async def encrypt_uint(
            self,
            *,
            contract_address: str,
            user_address: str,
            value: int,
            bits: int,
    ) -> EncryptedInput:
        raw = secrets.token_bytes(32)
        handle = normalize_handle(raw)
        self._values[handle] = int(value)
        self._bindings[handle] = (contract_address.lower(), user_address.lower())
        return EncryptedInput(ciphertext=raw, proof=OFFLINE_PROOF_PREFIX + raw)

    async def request_reveal(self, handles: list[str], contract_address: str) -> RevealResult:
        clear: dict[str, int] = {}
        for h in handles:
            key = normalize_handle(h)
            if key not in self._values:
                raise RevealError(f"Unknown handle {key}")
            if self._bindings[key][0] != contract_address.lower():
                raise RevealError(f"Handle {key} is not bound to {contract_address}")
            clear[key] = self._values[key]

        proof = OFFLINE_PROOF_PREFIX + b"".join(bytes.fromhex(k[2:]) for k in clear)
        return RevealResult(clear_values=clear, decryption_proof=proof)
