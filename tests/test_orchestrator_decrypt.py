# tests/test_orchestrator_decrypt.py

from __future__ import annotations

import pytest

from fhe_market.core.errors import AlreadyVerified, RevealError
from fhe_market.core.status import StatusKind

from .fakes import REGISTRY_ADDRESS, make_task


@pytest.mark.asyncio
async def test_stored_verified_value_is_returned_without_new_transaction(orchestrator, ledger, reveal) -> None:
    ledger.tasks = {"t": make_task("t", is_verified=True, decrypted_value=42)}

    value = await orchestrator.decrypt_and_verify("t")

    assert value == 42
    assert ledger.verifications == []
    assert reveal.calls == []
    assert orchestrator.status.current.kind == StatusKind.SUCCESS
    assert orchestrator.status.current.message == "Data already verified on-chain"


@pytest.mark.asyncio
async def test_reveal_anchor_and_refresh(orchestrator, ledger, reveal) -> None:
    task = make_task("t")
    ledger.tasks = {"t": task}
    reveal.clear_values = {task.encrypted_value_handle: 1234}
    await orchestrator.refresh()
    orchestrator.select_task("t")

    value = await orchestrator.decrypt_and_verify("t")

    assert value == 1234
    assert reveal.calls == [([task.encrypted_value_handle], REGISTRY_ADDRESS)]
    ((task_id, _encoded, proof),) = ledger.verifications
    assert task_id == "t"
    assert proof == b"decryption-proof"

    refreshed = orchestrator.state.task_by_id("t")
    assert refreshed.is_verified is True
    assert refreshed.decrypted_value == 1234
    assert orchestrator.state.decrypted_value == 1234
    assert orchestrator.status.current.message == "Data decrypted and verified successfully!"
    assert orchestrator.state.decrypting is False


@pytest.mark.asyncio
async def test_value_not_exposed_for_unselected_task(orchestrator, ledger, reveal) -> None:
    task = make_task("t")
    ledger.tasks = {"t": task, "other": make_task("other")}
    reveal.clear_values = {task.encrypted_value_handle: 9}
    orchestrator.select_task("other")

    assert await orchestrator.decrypt_and_verify("t") == 9
    assert orchestrator.state.decrypted_value is None


@pytest.mark.asyncio
async def test_concurrent_verification_is_benign(orchestrator, ledger, reveal) -> None:
    task = make_task("t")
    ledger.tasks = {"t": task}
    reveal.clear_values = {task.encrypted_value_handle: 5}
    ledger.verification_error = AlreadyVerified("t")

    value = await orchestrator.decrypt_and_verify("t")

    assert value is None
    assert len(ledger.verifications) == 1
    assert orchestrator.status.current.kind == StatusKind.SUCCESS
    assert orchestrator.status.current.message == "Data is already verified on-chain"
    assert ledger.list_calls == 1
    assert orchestrator.state.decrypting is False


@pytest.mark.asyncio
async def test_verification_lost_after_submission_is_benign(orchestrator, ledger, reveal) -> None:
    task = make_task("t")
    ledger.tasks = {"t": task}
    reveal.clear_values = {task.encrypted_value_handle: 5}
    ledger.verification_wait_error = AlreadyVerified("t")

    value = await orchestrator.decrypt_and_verify("t")

    assert value is None
    assert len(ledger.verifications) == 1
    assert orchestrator.status.current.kind == StatusKind.SUCCESS
    assert orchestrator.status.current.message == "Data is already verified on-chain"
    assert ledger.list_calls == 1
    assert orchestrator.state.decrypting is False


@pytest.mark.asyncio
async def test_reveal_failure_reports_and_releases_flag(orchestrator, ledger, reveal) -> None:
    ledger.tasks = {"t": make_task("t")}
    reveal.error = RevealError("relayer returned 503")

    assert await orchestrator.decrypt_and_verify("t") is None

    assert ledger.verifications == []
    assert orchestrator.status.current.kind == StatusKind.ERROR
    assert orchestrator.status.current.message == "Decryption failed: relayer returned 503"
    assert orchestrator.state.decrypting is False


@pytest.mark.asyncio
async def test_unknown_task(orchestrator) -> None:
    assert await orchestrator.decrypt_and_verify("missing") is None

    assert orchestrator.status.current.message == "Decryption failed: Task missing not found"


@pytest.mark.asyncio
async def test_decrypt_requires_connected_wallet(orchestrator, ledger) -> None:
    ledger.tasks = {"t": make_task("t")}
    orchestrator.wallet.disconnect()
    await orchestrator.drain()

    assert await orchestrator.decrypt_and_verify("t") is None

    assert orchestrator.status.current.message == "Please connect wallet first"
    assert ledger.get_calls == []


@pytest.mark.asyncio
async def test_decrypt_while_decrypting_is_noop(orchestrator, ledger) -> None:
    ledger.tasks = {"t": make_task("t")}
    orchestrator.state.decrypting = True

    assert await orchestrator.decrypt_and_verify("t") is None
    assert ledger.get_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("available", "kind", "message"),
    [
        (True, StatusKind.SUCCESS, "Contract is available!"),
        (False, StatusKind.ERROR, "Contract is not available"),
    ],
)
async def test_check_availability(orchestrator, ledger, available, kind, message) -> None:
    ledger.available = available

    assert await orchestrator.check_availability() is available

    assert orchestrator.status.current.kind == kind
    assert orchestrator.status.current.message == message
