# src/fhe_market/tasks/task_models.py

from __future__ import annotations

import re
import secrets
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any

ACTIVE_WINDOW_SECONDS = 86400

_NON_DIGITS = re.compile(r"[^\d]")


@dataclass(slots=True, frozen=True)
class Task:
    """
    A compute task as recorded in the ledger registry.

    decrypted_value is only meaningful when is_verified is True; records built
    from the ledger normalize it to 0 otherwise.
    """

    id: str
    name: str
    encrypted_value_handle: str | None
    public_value1: int
    public_value2: int
    description: str
    creator: str
    timestamp: int
    is_verified: bool
    decrypted_value: int = 0

    @classmethod
    def from_record(cls, task_id: str, record: dict[str, Any], handle: str | None = None) -> Task:
        is_verified = bool(record.get("isVerified", False))
        return cls(
            id=str(task_id),
            name=str(record.get("name") or ""),
            encrypted_value_handle=handle,
            public_value1=_as_int(record.get("publicValue1")),
            public_value2=_as_int(record.get("publicValue2")),
            description=str(record.get("description") or ""),
            creator=str(record.get("creator") or ""),
            timestamp=_as_int(record.get("timestamp")),
            is_verified=is_verified,
            decrypted_value=_as_int(record.get("decryptedValue")) if is_verified else 0,
        )

    def matches(self, term: str) -> bool:
        needle = (term or "").strip().lower()
        if not needle:
            return True
        return needle in self.name.lower() or needle in self.description.lower()

    def short_creator(self) -> str:
        c = self.creator
        if len(c) <= 12:
            return c
        return f"{c[:6]}...{c[-4:]}"


@dataclass(slots=True, frozen=True)
class Stats:
    total: int = 0
    verified: int = 0
    active: int = 0


def compute_stats(
        tasks: list[Task],
        *,
        now_ts: float | None = None,
        active_window_seconds: float = ACTIVE_WINDOW_SECONDS,
) -> Stats:
    now = time.time() if now_ts is None else now_ts
    return Stats(
        total=len(tasks),
        verified=sum(1 for t in tasks if t.is_verified),
        active=sum(1 for t in tasks if now - t.timestamp < active_window_seconds),
    )


@dataclass(slots=True, frozen=True)
class TaskDraft:
    """Creation form. compute_value stays text so an empty field is distinguishable from 0."""

    name: str = ""
    compute_value: str = ""
    description: str = ""

    def update(self, **fields: str) -> TaskDraft:
        if "compute_value" in fields:
            # Integer-only input: drop signs, separators and anything else.
            fields["compute_value"] = _NON_DIGITS.sub("", str(fields["compute_value"]))
        return replace(self, **fields)

    def is_complete(self) -> bool:
        return bool(self.name.strip() and self.compute_value and self.description.strip())

    def value(self) -> int:
        return int(self.compute_value or 0)


@dataclass(slots=True, frozen=True)
class EncryptedInput:
    ciphertext: bytes
    proof: bytes


@dataclass(slots=True, frozen=True)
class RevealResult:
    clear_values: dict[str, int]
    decryption_proof: bytes


@dataclass(slots=True, frozen=True)
class TransactionReceipt:
    tx_hash: str
    block_number: int | None = None
    status: int = 1
    gas_used: int | None = None


@dataclass(slots=True, frozen=True)
class DecryptionResult:
    clear_values: dict[str, int]
    abi_encoded_clear_values: bytes
    decryption_proof: bytes
    receipt: Any = field(default=None, compare=False)


def mint_task_id(now_ts: float | None = None) -> str:
    """Client-side id: millisecond timestamp plus random suffix."""
    ms = int((time.time() if now_ts is None else now_ts) * 1000)
    return f"task-{ms}-{secrets.token_hex(4)}"


def normalize_handle(handle: Any) -> str:
    """Handles travel as 0x-prefixed lowercase hex strings."""
    if isinstance(handle, (bytes, bytearray)):
        return "0x" + bytes(handle).hex()
    s = str(handle).strip().lower()
    if not s.startswith("0x"):
        s = "0x" + s
    return s


def _as_int(raw: Any) -> int:
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


class PendingTransaction:
    """A submitted transaction; wait() resolves once the receipt is final."""

    def __init__(self, tx_hash: str, waiter: Callable[[], Awaitable[TransactionReceipt]]) -> None:
        self.tx_hash = tx_hash
        self._waiter = waiter
        self._receipt: TransactionReceipt | None = None

    async def wait(self) -> TransactionReceipt:
        if self._receipt is None:
            self._receipt = await self._waiter()
        return self._receipt

    def __repr__(self) -> str:
        return f"PendingTransaction(tx_hash={self.tx_hash!r})"
