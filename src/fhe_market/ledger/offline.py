# src/fhe_market/ledger/offline.py

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import replace

from eth_abi import decode
from eth_utils import to_checksum_address

from ..core.errors import AlreadyVerified, NotConnected, NotFoundError, TransportError
from ..tasks.task_models import PendingTransaction, Task, TransactionReceipt, normalize_handle
from .gateway import SignerProvider

logger = logging.getLogger(__name__)

OFFLINE_REGISTRY_ADDRESS = to_checksum_address("0x00000000000000000000000000000000000fe0c0")
OFFLINE_CHAIN_ID = 31337


class OfflineLedger:
    """
    In-memory task registry with the same interface as LedgerGateway.

    Used for demos when no RPC endpoint / contract is configured. Writes still
    go through the wallet signer, so a declined confirmation behaves exactly as
    on a real chain. Every write is "mined" immediately in its own block.
    """

    def __init__(
            self,
            *,
            signer_provider: SignerProvider | None = None,
            address: str = OFFLINE_REGISTRY_ADDRESS,
    ) -> None:
        self._address = address
        self._signer_provider = signer_provider
        self._tasks: dict[str, Task] = {}
        self._block_number = 0

    @property
    def address(self) -> str:
        return self._address

    async def list_task_ids(self) -> list[str]:
        return list(self._tasks)

    async def get_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    async def get_encrypted_handle(self, task_id: str) -> str:
        task = await self.get_task(task_id)
        return task.encrypted_value_handle or ""

    async def is_available(self) -> bool:
        return True

    async def submit_task(
            self,
            task_id: str,
            name: str,
            ciphertext: bytes,
            proof: bytes,
            public_value1: int,
            public_value2: int,
            description: str,
    ) -> PendingTransaction:
        if task_id in self._tasks:
            raise TransportError("Transaction reverted: Business data already exists")
        if not proof:
            raise TransportError("Transaction reverted: Invalid input proof")

        sender = await self._sign("createBusinessData", task_id)

        self._tasks[task_id] = Task(
            id=task_id,
            name=name,
            encrypted_value_handle=normalize_handle(ciphertext),
            public_value1=int(public_value1),
            public_value2=int(public_value2),
            description=description,
            creator=sender,
            timestamp=int(time.time()),
            is_verified=False,
        )
        return self._mined("createBusinessData", task_id)

    async def submit_verification(
            self,
            task_id: str,
            abi_encoded_clear_values: bytes,
            decryption_proof: bytes,
    ) -> PendingTransaction:
        task = await self.get_task(task_id)
        if task.is_verified:
            raise AlreadyVerified(task_id, "Data already verified")
        if not decryption_proof:
            raise TransportError("Transaction reverted: Invalid decryption proof")

        try:
            (clear_value,) = decode(["uint256"], bytes(abi_encoded_clear_values))
        except Exception as e:
            raise TransportError(f"Transaction reverted: bad clear value encoding ({e})") from e

        await self._sign("verifyDecryption", task_id)

        self._tasks[task_id] = replace(task, is_verified=True, decrypted_value=int(clear_value))
        return self._mined("verifyDecryption", task_id)

    async def _sign(self, label: str, task_id: str) -> str:
        signer = self._signer_provider() if self._signer_provider is not None else None
        if signer is None:
            raise NotConnected("No signer available; connect a wallet first")
        await signer.sign_transaction(
            {
                "to": self._address,
                "value": 0,
                "gas": 100_000,
                "gasPrice": 0,
                "nonce": self._block_number,
                "chainId": OFFLINE_CHAIN_ID,
                "data": "0x" + f"{label}:{task_id}".encode().hex(),
            }
        )
        return signer.address

    def _mined(self, label: str, task_id: str) -> PendingTransaction:
        self._block_number += 1
        receipt = TransactionReceipt(
            tx_hash="0x" + secrets.token_hex(32),
            block_number=self._block_number,
            status=1,
            gas_used=0,
        )
        logger.info("%s mined offline task_id=%s block=%d", label, task_id, self._block_number)

        async def _wait() -> TransactionReceipt:
            return receipt

        return PendingTransaction(receipt.tx_hash, _wait)
