# src/fhe_market/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into an App (wallet, ledger, FHE relayer,
  status channel, orchestrator),
- falls back to the offline stack when the external services are not configured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import Settings, get_settings
from ..core.errors import NotConnected
from ..core.ports import EncryptionEngine, RevealService, TaskLedger
from ..core.status import StatusChannel
from ..fhe.decryption import DecryptionCoordinator
from ..fhe.offline import OfflineFheBackend
from ..fhe.relayer import RelayerClient
from ..fhe.session import EncryptionSession
from ..ledger.gateway import LedgerGateway
from ..ledger.offline import OfflineLedger
from ..tasks.orchestrator import TaskLifecycleOrchestrator
from ..wallet.session import WalletSession
from ..wallet.signer import ConfirmCallback, LocalKeySigner

logger = logging.getLogger(__name__)


@dataclass
class App:
    settings: Settings
    wallet: WalletSession
    status: StatusChannel
    encryption: EncryptionSession
    ledger: TaskLedger
    decryption: DecryptionCoordinator
    orchestrator: TaskLifecycleOrchestrator
    offline: bool
    relayer: RelayerClient | None = None
    confirm: ConfirmCallback | None = None

    def make_signer(self) -> LocalKeySigner:
        key = self.settings.private_key
        if key:
            return LocalKeySigner.from_key(key, confirm=self.confirm)
        if self.offline:
            return LocalKeySigner.ephemeral(confirm=self.confirm)
        raise NotConnected("No wallet key configured. Set FHE_MARKET_PRIVATE_KEY in your .env.")

    async def aclose(self) -> None:
        self.orchestrator.close()
        if self.relayer is not None:
            await self.relayer.aclose()


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def create_app(*, settings: Settings | None = None, confirm: ConfirmCallback | None = None) -> App:
    """
    Create the App from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    wallet = WalletSession()
    status = StatusChannel(
        success_clear_seconds=settings.status_success_seconds,
        error_clear_seconds=settings.status_error_seconds,
    )

    relayer: RelayerClient | None = None
    engine: EncryptionEngine
    reveal: RevealService
    ledger: TaskLedger
    offline = settings.offline

    if not offline:
        try:
            ledger = LedgerGateway.connect(
                settings.rpc_url,
                settings.contract_address,
                signer_provider=wallet.get_signer,
                receipt_timeout_seconds=settings.receipt_timeout_seconds,
                request_timeout_seconds=settings.http_timeout_seconds,
            )
            relayer = RelayerClient(settings.relayer_url, timeout_seconds=settings.http_timeout_seconds)
            engine = reveal = relayer
        except Exception:
            # Fallback for demos / local runs with a broken external config.
            logger.exception("Ledger/relayer setup failed; falling back to offline mode")
            offline = True
            relayer = None

    if offline:
        backend = OfflineFheBackend()
        engine = reveal = backend
        ledger = OfflineLedger(signer_provider=wallet.get_signer)
        logger.info("Offline demo mode: in-memory registry, no external services")

    encryption = EncryptionSession(engine, bits=settings.encryption_bits)
    decryption = DecryptionCoordinator(reveal)
    orchestrator = TaskLifecycleOrchestrator(
        wallet=wallet,
        encryption=encryption,
        ledger=ledger,
        decryption=decryption,
        status=status,
        active_window_seconds=settings.active_window_seconds,
    )

    return App(
        settings=settings,
        wallet=wallet,
        status=status,
        encryption=encryption,
        ledger=ledger,
        decryption=decryption,
        orchestrator=orchestrator,
        offline=offline,
        relayer=relayer,
        confirm=confirm,
    )
