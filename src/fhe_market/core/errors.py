# src/fhe_market/core/errors.py

"""
Error taxonomy shared by the orchestrator and its collaborators.

Adapters (web3 gateway, relayer client, signer) translate third-party
exceptions into these types once, at their boundary. Everything above the
adapters only tests the error type, never the message text.
"""

from __future__ import annotations


class MarketError(Exception):
    """Base exception for all compute-market errors."""


class NotConnected(MarketError):
    """No wallet (or no signer) is connected."""


class InitializationError(MarketError):
    """The encryption engine failed to start."""


class EncryptionError(MarketError):
    """Bad input for the engine, or the engine failed while encrypting."""


class UserRejected(MarketError):
    """The signer declined to sign a transaction."""


class TransportError(MarketError):
    """Network / node failure on a read or a write."""


class AlreadyVerified(MarketError):
    """The task was verified on the ledger already (benign race)."""

    def __init__(self, task_id: str | None = None, message: str = "Data already verified") -> None:
        self.task_id = task_id
        super().__init__(message)


class RevealError(MarketError):
    """The decryption-proof service failed."""


class NotFoundError(MarketError):
    """Requested task id is absent from the registry."""

    def __init__(self, task_id: str, message: str | None = None) -> None:
        self.task_id = task_id
        super().__init__(message or f"Task {task_id} not found")
