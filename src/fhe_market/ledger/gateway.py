# src/fhe_market/ledger/gateway.py

from __future__ import annotations

"""
Ledger gateway over web3.

Read path: plain eth_call against the registry, no signer needed.
Write path: build -> sign (wallet signer) -> send raw -> PendingTransaction.
PendingTransaction.wait() is the finality wait (receipt with status 1).

Revert reasons are translated here, once, into structured error kinds
(AlreadyVerified, NotFoundError). Nothing above this module looks at
revert strings.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted

from ..core.errors import (
    AlreadyVerified,
    MarketError,
    NotConnected,
    NotFoundError,
    TransportError,
)
from ..core.ports import TransactionSigner
from ..tasks.task_models import PendingTransaction, Task, TransactionReceipt, normalize_handle
from .abi import REGISTRY_ABI, record_to_dict

logger = logging.getLogger(__name__)

SignerProvider = Callable[[], TransactionSigner | None]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _revert_reason(exc: ContractLogicError) -> str:
    return str(getattr(exc, "message", None) or exc).strip()


def map_revert(exc: ContractLogicError, task_id: str | None = None) -> MarketError:
    reason = _revert_reason(exc)
    low = reason.lower()
    if "already verified" in low:
        return AlreadyVerified(task_id, reason)
    if task_id is not None and ("does not exist" in low or "not found" in low):
        return NotFoundError(task_id, reason)
    return TransportError(f"Transaction reverted: {reason}")


class LedgerGateway:
    def __init__(
            self,
            w3: AsyncWeb3,
            address: str,
            *,
            signer_provider: SignerProvider | None = None,
            receipt_timeout_seconds: float = 120.0,
            abi: list[dict[str, Any]] | None = None,
    ) -> None:
        self._w3 = w3
        self._address = AsyncWeb3.to_checksum_address(address)
        self._contract = w3.eth.contract(address=self._address, abi=abi or REGISTRY_ABI)
        self._signer_provider = signer_provider
        self._receipt_timeout = float(receipt_timeout_seconds)

    @classmethod
    def connect(
            cls,
            rpc_url: str,
            address: str,
            *,
            signer_provider: SignerProvider | None = None,
            receipt_timeout_seconds: float = 120.0,
            request_timeout_seconds: float = 30.0,
    ) -> LedgerGateway:
        provider = AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout_seconds})
        return cls(
            AsyncWeb3(provider),
            address,
            signer_provider=signer_provider,
            receipt_timeout_seconds=receipt_timeout_seconds,
        )

    @property
    def address(self) -> str:
        return self._address

    # ---- read path ----

    async def list_task_ids(self) -> list[str]:
        try:
            ids = await self._contract.functions.getAllBusinessIds().call()
        except Exception as e:
            raise TransportError(f"Failed to list tasks: {e}") from e
        return [str(i) for i in ids]

    async def get_task(self, task_id: str) -> Task:
        try:
            raw, handle = await asyncio.gather(
                self._contract.functions.getBusinessData(task_id).call(),
                self._contract.functions.getEncryptedValue(task_id).call(),
            )
        except ContractLogicError as e:
            raise NotFoundError(task_id, _revert_reason(e)) from e
        except Exception as e:
            raise TransportError(f"Failed to load task {task_id}: {e}") from e

        try:
            record = record_to_dict(raw)
        except ValueError as e:
            raise TransportError(f"Malformed record for task {task_id}: {e}") from e

        if str(record.get("creator") or ZERO_ADDRESS).lower() == ZERO_ADDRESS:
            raise NotFoundError(task_id)

        return Task.from_record(task_id, record, handle=normalize_handle(handle))

    async def get_encrypted_handle(self, task_id: str) -> str:
        try:
            handle = await self._contract.functions.getEncryptedValue(task_id).call()
        except ContractLogicError as e:
            raise NotFoundError(task_id, _revert_reason(e)) from e
        except Exception as e:
            raise TransportError(f"Failed to load handle for task {task_id}: {e}") from e
        return normalize_handle(handle)

    async def is_available(self) -> bool:
        try:
            return bool(await self._contract.functions.isAvailable().call())
        except Exception as e:
            raise TransportError(f"Availability probe failed: {e}") from e

    # ---- write path ----

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
        fn = self._contract.functions.createBusinessData(
            task_id,
            name,
            bytes(ciphertext),
            bytes(proof),
            int(public_value1),
            int(public_value2),
            description,
        )
        return await self._transact(fn, task_id=task_id, label="createBusinessData")

    async def submit_verification(
            self,
            task_id: str,
            abi_encoded_clear_values: bytes,
            decryption_proof: bytes,
    ) -> PendingTransaction:
        fn = self._contract.functions.verifyDecryption(
            task_id,
            bytes(abi_encoded_clear_values),
            bytes(decryption_proof),
        )
        return await self._transact(fn, task_id=task_id, label="verifyDecryption")

    async def _is_verified(self, task_id: str) -> bool:
        try:
            raw = await self._contract.functions.getBusinessData(task_id).call()
            return bool(record_to_dict(raw).get("isVerified"))
        except Exception:
            logger.warning("Could not re-read task %s after a failed verification", task_id, exc_info=True)
            return False

    def _require_signer(self) -> TransactionSigner:
        signer = self._signer_provider() if self._signer_provider is not None else None
        if signer is None:
            raise NotConnected("No signer available; connect a wallet first")
        return signer

    async def _transact(self, fn: Any, *, task_id: str, label: str) -> PendingTransaction:
        signer = self._require_signer()

        try:
            nonce = await self._w3.eth.get_transaction_count(signer.address, "pending")
            chain_id = await self._w3.eth.chain_id
            # build_transaction estimates gas, so contract reverts surface here.
            tx = await fn.build_transaction(
                {"from": signer.address, "nonce": nonce, "chainId": chain_id}
            )
        except ContractLogicError as e:
            raise map_revert(e, task_id) from e
        except Exception as e:
            raise TransportError(f"{label} preparation failed: {e}") from e

        # UserRejected propagates untouched.
        raw = await signer.sign_transaction(tx)

        try:
            tx_hash = await self._w3.eth.send_raw_transaction(raw)
        except ContractLogicError as e:
            raise map_revert(e, task_id) from e
        except Exception as e:
            raise TransportError(f"{label} submission failed: {e}") from e

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info("%s sent task_id=%s tx=%s", label, task_id, tx_hex)

        async def _wait() -> TransactionReceipt:
            return await self._wait_receipt(tx_hash, tx_hex, label, task_id)

        return PendingTransaction(tx_hex, _wait)

    async def _wait_receipt(self, tx_hash: Any, tx_hex: str, label: str, task_id: str) -> TransactionReceipt:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except TimeExhausted as e:
            raise TransportError(
                f"{label} not confirmed within {self._receipt_timeout:.0f}s (tx={tx_hex})"
            ) from e
        except Exception as e:
            raise TransportError(f"{label} confirmation failed: {e}") from e

        status = int(receipt.get("status", 0))
        if status != 1:
            if label == "verifyDecryption" and await self._is_verified(task_id):
                # Another submitter verified the task between our estimate and inclusion.
                raise AlreadyVerified(task_id)
            raise TransportError(f"{label} reverted on-chain (tx={tx_hex})")

        logger.info("%s confirmed tx=%s block=%s", label, tx_hex, receipt.get("blockNumber"))
        return TransactionReceipt(
            tx_hash=tx_hex,
            block_number=receipt.get("blockNumber"),
            status=status,
            gas_used=receipt.get("gasUsed"),
        )
