# src/fhe_market/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The orchestrator depends on Protocols instead of concrete implementations.
This keeps the ledger, the encryption engine and the reveal service swappable
(web3 / relayer in production, in-memory offline versions for demos and tests).
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from ..tasks.task_models import (
    EncryptedInput,
    PendingTransaction,
    RevealResult,
    Task,
    TransactionReceipt,
)

ConnectionListener = Callable[[bool], None]
# Called with the new is_connected value on every connect/disconnect transition.

SubmitCallback = Callable[[bytes, bytes], Awaitable[TransactionReceipt]]
# (abi_encoded_clear_values, decryption_proof) -> confirmed receipt.


class TransactionSigner(Protocol):
    """Signs raw transactions for the write path. Raises UserRejected when declined."""

    @property
    def address(self) -> str: ...

    async def sign_transaction(self, tx: dict[str, Any]) -> bytes: ...


class Wallet(Protocol):
    @property
    def is_connected(self) -> bool: ...

    @property
    def address(self) -> str | None: ...

    @property
    def signer(self) -> TransactionSigner | None: ...

    def subscribe(self, listener: ConnectionListener) -> Callable[[], None]: ...


class EncryptionEngine(Protocol):
    """FHE engine: key material loading + input encryption with a proof."""

    async def load(self) -> None: ...

    async def encrypt_uint(
            self,
            *,
            contract_address: str,
            user_address: str,
            value: int,
            bits: int,
    ) -> EncryptedInput: ...


class RevealService(Protocol):
    """Decryption-proof service: candidate cleartexts for handles plus a proof."""

    async def request_reveal(self, handles: list[str], contract_address: str) -> RevealResult: ...


class TaskLedger(Protocol):
    """Registry accessors. Reads never need a signer; writes always do."""

    @property
    def address(self) -> str: ...

    async def list_task_ids(self) -> list[str]: ...
    async def get_task(self, task_id: str) -> Task: ...
    async def get_encrypted_handle(self, task_id: str) -> str: ...
    async def is_available(self) -> bool: ...

    async def submit_task(
            self,
            task_id: str,
            name: str,
            ciphertext: bytes,
            proof: bytes,
            public_value1: int,
            public_value2: int,
            description: str,
    ) -> PendingTransaction: ...

    async def submit_verification(
            self,
            task_id: str,
            abi_encoded_clear_values: bytes,
            decryption_proof: bytes,
    ) -> PendingTransaction: ...
