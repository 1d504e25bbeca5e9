# src/fhe_market/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from ..cli.bootstrap import App
from ..cli.commands import registry as command_registry
from ..core.status import Status, StatusKind

logger = logging.getLogger(__name__)

_STATUS_MARKS = {
    StatusKind.PENDING: "...",
    StatusKind.SUCCESS: "ok",
    StatusKind.ERROR: "!!",
}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _print_status(status: Status) -> None:
    # Hidden statuses are auto-clears; nothing to show on a line-based console.
    if not status.visible:
        return
    _print_ts(f"[{_STATUS_MARKS[status.kind]}] {status.message}")


async def _read_line(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def confirm_transaction(tx: dict[str, Any]) -> bool:
    """Console stand-in for a wallet signature popup."""
    to = tx.get("to", "?")
    answer = await _read_line(f"[{_ts_local()}] Sign transaction to {to}? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


async def run_console_loop(app: App) -> None:
    logger.info("Console connector started (offline=%s).", app.offline)
    _print_ts("[CONSOLE] Use /connect to start, /help for commands, /exit to quit.\n")

    unsubscribe = app.status.subscribe(_print_status)
    try:
        while True:
            try:
                user_input = (await _read_line(">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                reply = await command_registry.handle(app, user_input)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is None:
                reply = "Commands start with '/'. Use /help to list them."
            _print_ts(reply)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
