# src/fhe_market/wallet/signer.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..core.errors import UserRejected

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[dict[str, Any]], Awaitable[bool]]


class LocalKeySigner:
    """
    Signs transactions with a local eth_account key.

    If a confirm callback is given it is asked before every signature; a
    negative answer raises UserRejected, the same as a wallet popup being
    dismissed.
    """

    def __init__(self, account: LocalAccount, *, confirm: ConfirmCallback | None = None) -> None:
        self._account = account
        self._confirm = confirm

    @classmethod
    def from_key(cls, private_key: str, *, confirm: ConfirmCallback | None = None) -> LocalKeySigner:
        return cls(Account.from_key(private_key), confirm=confirm)

    @classmethod
    def ephemeral(cls, *, confirm: ConfirmCallback | None = None) -> LocalKeySigner:
        """Throwaway key for offline demos."""
        return cls(Account.create(), confirm=confirm)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        if self._confirm is not None and not await self._confirm(tx):
            logger.info("Signature declined by user (from=%s)", self.address)
            raise UserRejected("user rejected transaction")

        signed = self._account.sign_transaction(tx)
        return bytes(signed.raw_transaction)
