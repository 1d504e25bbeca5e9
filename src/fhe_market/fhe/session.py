# src/fhe_market/fhe/session.py

from __future__ import annotations

"""
Encryption session.

Owns the engine lifecycle: uninitialized -> initializing -> ready.
A failed initialization drops back to uninitialized so it can be retried.
"""

import logging
from enum import StrEnum

from ..core.errors import EncryptionError, InitializationError
from ..core.ports import EncryptionEngine
from ..tasks.task_models import EncryptedInput

logger = logging.getLogger(__name__)


class EncryptionSessionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class EncryptionSession:
    def __init__(self, engine: EncryptionEngine, *, bits: int = 32) -> None:
        if bits <= 0:
            raise ValueError("bits must be positive")
        self._engine = engine
        self._bits = int(bits)
        self._state = EncryptionSessionState.UNINITIALIZED
        self._encrypting = False

    @property
    def status(self) -> EncryptionSessionState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state == EncryptionSessionState.READY

    @property
    def is_initializing(self) -> bool:
        return self._state == EncryptionSessionState.INITIALIZING

    @property
    def is_encrypting(self) -> bool:
        return self._encrypting

    @property
    def max_value(self) -> int:
        return (1 << self._bits) - 1

    async def initialize(self) -> None:
        if self._state != EncryptionSessionState.UNINITIALIZED:
            logger.debug("initialize() ignored, state=%s", self._state.value)
            return

        self._state = EncryptionSessionState.INITIALIZING
        logger.info("Initializing encryption engine...")
        try:
            await self._engine.load()
        except Exception as e:
            self._state = EncryptionSessionState.UNINITIALIZED
            raise InitializationError(f"Encryption engine failed to start: {e}") from e

        self._state = EncryptionSessionState.READY
        logger.info("Encryption engine ready (bits=%d)", self._bits)

    async def encrypt(self, context: str, user_address: str, value: int) -> EncryptedInput:
        """Encrypt value for (context, user_address). The proof binds the ciphertext to both."""
        if not self.is_initialized:
            raise EncryptionError("Encryption session is not ready")

        if isinstance(value, bool) or not isinstance(value, int):
            raise EncryptionError(f"Only integers can be encrypted, got {type(value).__name__}")
        if value < 0 or value > self.max_value:
            raise EncryptionError(f"Value {value} is out of range for uint{self._bits}")

        self._encrypting = True
        try:
            return await self._engine.encrypt_uint(
                contract_address=context,
                user_address=user_address,
                value=value,
                bits=self._bits,
            )
        except EncryptionError:
            raise
        except Exception as e:
            raise EncryptionError(f"Encryption failed: {e}") from e
        finally:
            self._encrypting = False
