# tests/fakes.py

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any

from eth_abi import decode

from fhe_market.core.errors import NotFoundError, UserRejected
from fhe_market.tasks.task_models import (
    EncryptedInput,
    PendingTransaction,
    RevealResult,
    Task,
    TransactionReceipt,
)

USER_ADDRESS = "0x1111111111111111111111111111111111111111"
REGISTRY_ADDRESS = "0x2222222222222222222222222222222222222222"


def make_task(
        task_id: str,
        *,
        name: str | None = None,
        description: str = "demo task",
        timestamp: int = 0,
        is_verified: bool = False,
        decrypted_value: int = 0,
        handle: str | None = None,
) -> Task:
    return Task(
        id=task_id,
        name=name or f"Task {task_id}",
        encrypted_value_handle=handle or ("0x" + task_id.encode().hex().rjust(64, "0")),
        public_value1=0,
        public_value2=0,
        description=description,
        creator=USER_ADDRESS,
        timestamp=timestamp,
        is_verified=is_verified,
        decrypted_value=decrypted_value if is_verified else 0,
    )


class FakeSigner:
    """TransactionSigner that records what it signed; reject=True simulates a declined popup."""

    def __init__(self, address: str = USER_ADDRESS, *, reject: bool = False) -> None:
        self.address = address
        self.reject = reject
        self.signed: list[dict[str, Any]] = []

    async def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        if self.reject:
            raise UserRejected("user rejected transaction")
        self.signed.append(tx)
        return b"signed"


class FakeEngine:
    """
    EncryptionEngine fake.

    - load_calls counts initialize() attempts reaching the engine
    - hold_load: load() waits on release before finishing
    - fail_load: load() raises
    """

    def __init__(self, *, fail_load: bool = False, hold_load: bool = False) -> None:
        self.fail_load = fail_load
        self.release = asyncio.Event()
        if not hold_load:
            self.release.set()
        self.load_calls = 0
        self.encrypt_calls: list[tuple[str, str, int, int]] = []

    async def load(self) -> None:
        self.load_calls += 1
        await self.release.wait()
        if self.fail_load:
            raise RuntimeError("wasm failed to load")

    async def encrypt_uint(
            self,
            *,
            contract_address: str,
            user_address: str,
            value: int,
            bits: int,
    ) -> EncryptedInput:
        self.encrypt_calls.append((contract_address, user_address, value, bits))
        return EncryptedInput(ciphertext=value.to_bytes(32, "big"), proof=b"proof")


class FakeRevealService:
    def __init__(self, clear_values: dict[str, int] | None = None, *, error: Exception | None = None) -> None:
        self.clear_values = dict(clear_values or {})
        self.error = error
        self.calls: list[tuple[list[str], str]] = []

    async def request_reveal(self, handles: list[str], contract_address: str) -> RevealResult:
        self.calls.append((list(handles), contract_address))
        if self.error is not None:
            raise self.error
        return RevealResult(
            clear_values={h: self.clear_values[h] for h in handles if h in self.clear_values},
            decryption_proof=b"decryption-proof",
        )


class FakeLedger:
    """
    In-memory TaskLedger with call counters and failure injection.

    - failing_ids: get_task raises for these ids
    - list_error: list_task_ids raises it
    - submit_error / verification_error: raised by the corresponding write
    - verification_wait_error: raised when the verification receipt is awaited
    """

    def __init__(self, tasks: list[Task] | None = None, *, address: str = REGISTRY_ADDRESS) -> None:
        self.address = address
        self.tasks: dict[str, Task] = {t.id: t for t in (tasks or [])}
        self.extra_ids: list[str] = []
        self.failing_ids: set[str] = set()
        self.list_error: Exception | None = None
        self.submit_error: Exception | None = None
        self.verification_error: Exception | None = None
        self.verification_wait_error: Exception | None = None
        self.available = True

        self.list_calls = 0
        self.get_calls: list[str] = []
        self.submitted: list[dict[str, Any]] = []
        self.verifications: list[tuple[str, bytes, bytes]] = []

    async def list_task_ids(self) -> list[str]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [*self.tasks, *self.extra_ids]

    async def get_task(self, task_id: str) -> Task:
        self.get_calls.append(task_id)
        if task_id in self.failing_ids:
            raise RuntimeError(f"node dropped request for {task_id}")
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    async def get_encrypted_handle(self, task_id: str) -> str:
        task = await self.get_task(task_id)
        return task.encrypted_value_handle or ""

    async def is_available(self) -> bool:
        return self.available

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
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(
            {
                "id": task_id,
                "name": name,
                "ciphertext": ciphertext,
                "proof": proof,
                "public_value1": public_value1,
                "public_value2": public_value2,
                "description": description,
            }
        )
        self.tasks[task_id] = Task(
            id=task_id,
            name=name,
            encrypted_value_handle="0x" + ciphertext.hex(),
            public_value1=public_value1,
            public_value2=public_value2,
            description=description,
            creator=USER_ADDRESS,
            timestamp=1_700_000_000,
            is_verified=False,
        )
        return _confirmed("0xc0ffee")

    async def submit_verification(
            self,
            task_id: str,
            abi_encoded_clear_values: bytes,
            decryption_proof: bytes,
    ) -> PendingTransaction:
        self.verifications.append((task_id, abi_encoded_clear_values, decryption_proof))
        if self.verification_error is not None:
            raise self.verification_error
        if self.verification_wait_error is not None:
            return _failed("0xbeef", self.verification_wait_error)
        (value,) = decode(["uint256"], abi_encoded_clear_values)
        self.tasks[task_id] = replace(self.tasks[task_id], is_verified=True, decrypted_value=int(value))
        return _confirmed("0xbeef")


def _confirmed(tx_hash: str) -> PendingTransaction:
    async def _wait() -> TransactionReceipt:
        return TransactionReceipt(tx_hash=tx_hash, block_number=1, status=1, gas_used=0)

    return PendingTransaction(tx_hash, _wait)


def _failed(tx_hash: str, error: Exception) -> PendingTransaction:
    async def _wait() -> TransactionReceipt:
        raise error

    return PendingTransaction(tx_hash, _wait)
