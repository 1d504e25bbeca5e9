# src/fhe_market/tasks/orchestrator.py

from __future__ import annotations

"""
Task lifecycle orchestrator.

Sequences the encryption session, the ledger and the decryption coordinator
into the user-facing operations:
- bootstrap (on wallet connect): start the encryption engine once,
- refresh: rebuild the task collection + stats from the ledger,
- create: encrypt a value and record a new task,
- decrypt_and_verify: reveal a task's value and anchor it on-chain.

Key invariants:
- each operation is single-flight: a call while the same operation is in
  flight is a no-op, and the flag is always released in `finally`
  (refresh alone queues one extra pass for the running call),
- the task collection is only written by refresh; create/verify reconcile
  through a trailing refresh, never by patching local state,
- every outcome goes through the one StatusChannel (latest wins),
- writes count as done only after their receipt is final.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from ..core.errors import AlreadyVerified, UserRejected
from ..core.ports import TaskLedger, Wallet
from ..core.state import AppState, blocking_screen
from ..core.status import StatusChannel
from ..fhe.decryption import DecryptionCoordinator
from ..fhe.session import EncryptionSession
from .task_models import (
    ACTIVE_WINDOW_SECONDS,
    Task,
    TaskDraft,
    TransactionReceipt,
    compute_stats,
    mint_task_id,
)

logger = logging.getLogger(__name__)

MSG_CONNECT_FIRST = "Please connect wallet first"
MSG_INIT_FAILED = "FHE initialization failed"
MSG_LOAD_FAILED = "Failed to load data"
MSG_FIELDS_REQUIRED = "Please fill in all required fields"
MSG_CREATING = "Creating compute task with FHE encryption..."
MSG_CONFIRMING = "Waiting for transaction confirmation..."
MSG_CREATED = "Compute task created successfully!"
MSG_REJECTED = "Transaction rejected by user"
MSG_ALREADY_VERIFIED_STORED = "Data already verified on-chain"
MSG_VERIFYING = "Verifying decryption on-chain..."
MSG_VERIFIED = "Data decrypted and verified successfully!"
MSG_ALREADY_VERIFIED_RACE = "Data is already verified on-chain"
MSG_AVAILABLE = "Contract is available!"
MSG_UNAVAILABLE = "Contract is not available"
MSG_AVAILABILITY_FAILED = "Availability check failed"


class TaskLifecycleOrchestrator:
    def __init__(
            self,
            *,
            wallet: Wallet,
            encryption: EncryptionSession,
            ledger: TaskLedger,
            decryption: DecryptionCoordinator,
            status: StatusChannel,
            state: AppState | None = None,
            active_window_seconds: float = ACTIVE_WINDOW_SECONDS,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self.wallet = wallet
        self.encryption = encryption
        self.ledger = ledger
        self.decryption = decryption
        self.status = status
        self.state = state or AppState()

        self._active_window = float(active_window_seconds)
        self._clock = clock
        self._background: set[asyncio.Task[None]] = set()
        self._refresh_again = False
        self._unsubscribe = wallet.subscribe(self._on_wallet_change)

    # ---- wiring ----

    def close(self) -> None:
        self._unsubscribe()

    def _on_wallet_change(self, connected: bool) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Wallet change (connected=%s) outside an event loop; ignored", connected)
            return
        task = loop.create_task(self.on_connection_changed(connected))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for connection-triggered work scheduled so far."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def on_connection_changed(self, connected: bool) -> None:
        if not connected:
            self.state.loading = False
            return

        self.state.loading = True
        await asyncio.gather(self.bootstrap(), self._initial_load())

    async def _initial_load(self) -> None:
        try:
            await self.refresh()
            self.state.contract_address = self.ledger.address
        except Exception:
            logger.exception("Initial load failed")
        finally:
            self.state.loading = False

    @property
    def blocking_screen(self) -> str | None:
        return blocking_screen(
            self.state,
            connected=self.wallet.is_connected,
            encryption_ready=self.encryption.is_initialized,
        )

    # ---- bootstrap ----

    async def bootstrap(self) -> None:
        if not self.wallet.is_connected:
            return
        if self.encryption.is_initialized or self.encryption.is_initializing:
            return
        if self.state.initializing:
            return

        self.state.initializing = True
        try:
            await self.encryption.initialize()
        except Exception:
            logger.exception("Encryption initialization failed")
            self.status.error(MSG_INIT_FAILED)
        finally:
            self.state.initializing = False

    # ---- refresh ----

    async def refresh(self) -> bool:
        if not self.wallet.is_connected:
            return False
        if self.state.refreshing:
            # The running refresh may have listed ids before a write landed.
            logger.debug("refresh() requested while refreshing; queued one more pass")
            self._refresh_again = True
            return False

        self.state.refreshing = True
        try:
            ok = await self._refresh_once()
            while ok and self._refresh_again:
                self._refresh_again = False
                ok = await self._refresh_once()
            return ok
        finally:
            self._refresh_again = False
            self.state.refreshing = False

    async def _refresh_once(self) -> bool:
        try:
            ids = await self.ledger.list_task_ids()

            tasks: list[Task] = []
            seen: set[str] = set()
            for task_id in ids:
                if task_id in seen:
                    continue
                seen.add(task_id)
                try:
                    tasks.append(await self.ledger.get_task(task_id))
                except Exception:
                    logger.warning("Skipping task %s: lookup failed", task_id, exc_info=True)

            self.state.tasks = tasks
            self.state.stats = compute_stats(
                tasks,
                now_ts=self._clock(),
                active_window_seconds=self._active_window,
            )
            logger.info("Refreshed %d/%d tasks", len(tasks), len(seen))
            return True
        except Exception:
            logger.exception("Refresh failed")
            self.status.error(MSG_LOAD_FAILED)
            return False

    # ---- create ----

    async def create_task(self, draft: TaskDraft | None = None) -> str | None:
        """Encrypt and record a new task. Returns the new id, or None on failure."""
        draft = draft if draft is not None else self.state.draft
        address = self.wallet.address

        if not self.wallet.is_connected or not address:
            self.status.error(MSG_CONNECT_FIRST)
            return None
        if self.state.creating:
            return None
        if not draft.is_complete():
            self.status.error(MSG_FIELDS_REQUIRED)
            return None

        self.state.creating = True
        self.status.pending(MSG_CREATING)
        try:
            task_id = mint_task_id(self._clock())
            encrypted = await self.encryption.encrypt(self.ledger.address, address, draft.value())

            pending_tx = await self.ledger.submit_task(
                task_id,
                draft.name.strip(),
                encrypted.ciphertext,
                encrypted.proof,
                0,
                0,
                draft.description.strip(),
            )

            self.status.pending(MSG_CONFIRMING)
            await pending_tx.wait()

            logger.info("Task %s created (tx=%s)", task_id, pending_tx.tx_hash)
            self.status.success(MSG_CREATED)

            await self.refresh()
            self.state.show_create_form = False
            self.state.draft = TaskDraft()
            return task_id
        except UserRejected:
            logger.info("Task creation rejected by signer")
            self.status.error(MSG_REJECTED)
            return None
        except Exception as e:
            logger.warning("Task creation failed: %s", e, exc_info=True)
            self.status.error(f"Submission failed: {str(e) or 'Unknown error'}")
            return None
        finally:
            self.state.creating = False

    # ---- decrypt / verify ----

    async def decrypt_and_verify(self, task_id: str) -> int | None:
        """
        Reveal a task's value and anchor it on-chain.

        Returns the cleartext, or None when there is no new value to report
        (failure, or another submitter verified it first).
        """
        if not self.wallet.is_connected or not self.wallet.address:
            self.status.error(MSG_CONNECT_FIRST)
            return None
        if self.state.decrypting:
            return None

        self.state.decrypting = True
        try:
            task = await self.ledger.get_task(task_id)
            if task.is_verified:
                self.status.success(MSG_ALREADY_VERIFIED_STORED)
                return task.decrypted_value

            handle = await self.ledger.get_encrypted_handle(task_id)

            async def _anchor(abi_encoded_clear_values: bytes, decryption_proof: bytes) -> TransactionReceipt:
                pending_tx = await self.ledger.submit_verification(
                    task_id, abi_encoded_clear_values, decryption_proof
                )
                return await pending_tx.wait()

            self.status.pending(MSG_VERIFYING)
            result = await self.decryption.verify_decryption([handle], self.ledger.address, _anchor)
            clear_value = next(iter(result.clear_values.values()))

            await self.refresh()
            self.status.success(MSG_VERIFIED)
            if self.state.selected_task_id == task_id:
                self.state.decrypted_value = clear_value
            logger.info("Task %s verified on-chain", task_id)
            return clear_value
        except AlreadyVerified:
            logger.info("Task %s was verified concurrently", task_id)
            self.status.success(MSG_ALREADY_VERIFIED_RACE)
            await self.refresh()
            return None
        except Exception as e:
            logger.warning("Decryption of %s failed: %s", task_id, e, exc_info=True)
            self.status.error(f"Decryption failed: {str(e) or 'Unknown error'}")
            return None
        finally:
            self.state.decrypting = False

    # ---- misc ----

    async def check_availability(self) -> bool:
        try:
            available = await self.ledger.is_available()
        except Exception:
            logger.warning("Availability probe failed", exc_info=True)
            self.status.error(MSG_AVAILABILITY_FAILED)
            return False

        if available:
            self.status.success(MSG_AVAILABLE)
        else:
            self.status.error(MSG_UNAVAILABLE)
        return available

    def filtered_tasks(self, term: str = "") -> list[Task]:
        return [t for t in self.state.tasks if t.matches(term)]

    def open_create_form(self) -> None:
        self.state.show_create_form = True

    def close_create_form(self) -> None:
        self.state.show_create_form = False

    def update_draft(self, **fields: str) -> TaskDraft:
        self.state.draft = self.state.draft.update(**fields)
        return self.state.draft

    def select_task(self, task_id: str) -> Task | None:
        task = self.state.task_by_id(task_id)
        self.state.selected_task_id = task.id if task is not None else None
        self.state.decrypted_value = None
        return task

    def clear_selection(self) -> None:
        self.state.selected_task_id = None
        self.state.decrypted_value = None
