# tests/conftest.py

from __future__ import annotations

import pytest

from fhe_market.config import Settings
from fhe_market.core.status import StatusChannel
from fhe_market.fhe.decryption import DecryptionCoordinator
from fhe_market.fhe.session import EncryptionSession
from fhe_market.tasks.orchestrator import TaskLifecycleOrchestrator
from fhe_market.wallet.session import WalletSession

from .fakes import FakeEngine, FakeLedger, FakeRevealService, FakeSigner

NOW = 1_700_000_000.0


@pytest.fixture()
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture()
def wallet(signer: FakeSigner) -> WalletSession:
    """
    Already-connected wallet.

    Connected before the orchestrator subscribes, so no connection-triggered
    bootstrap/refresh runs behind the tests' back.
    """
    w = WalletSession()
    w.connect(signer)
    return w


@pytest.fixture()
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def reveal() -> FakeRevealService:
    return FakeRevealService()


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def status() -> StatusChannel:
    # Long delays: tests that care about auto-clear build their own channel.
    return StatusChannel(success_clear_seconds=30.0, error_clear_seconds=30.0)


@pytest.fixture()
def orchestrator(
        wallet: WalletSession,
        engine: FakeEngine,
        reveal: FakeRevealService,
        ledger: FakeLedger,
        status: StatusChannel,
) -> TaskLifecycleOrchestrator:
    return TaskLifecycleOrchestrator(
        wallet=wallet,
        encryption=EncryptionSession(engine),
        ledger=ledger,
        decryption=DecryptionCoordinator(reveal),
        status=status,
        clock=lambda: NOW,
    )


@pytest.fixture()
def offline_settings(tmp_path) -> Settings:
    return Settings(
        app_name="fhe-market-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        rpc_url="",
        contract_address="",
        private_key=None,
        receipt_timeout_seconds=5.0,
        confirm_transactions=False,
        relayer_url="",
        encryption_bits=32,
        http_timeout_seconds=5.0,
        offline=True,
        status_success_seconds=30.0,
        status_error_seconds=30.0,
        active_window_seconds=86400.0,
    )
