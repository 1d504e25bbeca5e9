# src/fhe_market/wallet/session.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.ports import ConnectionListener, TransactionSigner

logger = logging.getLogger(__name__)


class WalletSession:
    """
    Connected-wallet state: is_connected, address, signer.

    Listeners are told about connect/disconnect transitions only; connecting
    an already-connected session with another signer swaps the signer silently.
    """

    def __init__(self) -> None:
        self._signer: TransactionSigner | None = None
        self._listeners: list[ConnectionListener] = []

    @property
    def is_connected(self) -> bool:
        return self._signer is not None

    @property
    def address(self) -> str | None:
        return self._signer.address if self._signer is not None else None

    @property
    def signer(self) -> TransactionSigner | None:
        return self._signer

    def get_signer(self) -> TransactionSigner | None:
        return self._signer

    def subscribe(self, listener: ConnectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def connect(self, signer: TransactionSigner) -> None:
        was_connected = self.is_connected
        self._signer = signer
        logger.info("Wallet connected: %s", signer.address)
        if not was_connected:
            self._notify(True)

    def disconnect(self) -> None:
        if not self.is_connected:
            return
        logger.info("Wallet disconnected: %s", self.address)
        self._signer = None
        self._notify(False)

    def _notify(self, connected: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(connected)
            except Exception:
                logger.exception("Wallet listener failed")
