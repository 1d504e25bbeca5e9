# src/fhe_market/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..core.errors import MarketError
from ..tasks.task_models import Task
from .bootstrap import App

CommandHandler = Callable[[App, list[str], str], Awaitable[str]]
# (app, args split on whitespace, raw argument text) -> reply

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, app: App, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        head, _, raw_args = line[1:].partition(" ")
        name = head.strip().lower()
        if not name:
            return "Empty command. Use /help to list available commands."

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(app, raw_args.split(), raw_args.strip())

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_date(ts: int) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d")


def _fmt_task_line(task: Task) -> str:
    badge = "verified" if task.is_verified else "pending"
    result = f" result={task.decrypted_value}" if task.is_verified else ""
    return f"  {task.id}  [{badge}] {task.name} ({task.short_creator()}, {_fmt_date(task.timestamp)}){result}"


def _gate_message(app: App) -> str | None:
    screen = app.orchestrator.blocking_screen
    if screen == "connect":
        return "Connect your wallet first: /connect"
    if screen == "initializing":
        return "FHE system is still initializing (or failed to start; try /connect again)."
    if screen == "loading":
        return "Still loading compute tasks..."
    return None


async def cmd_help(app: App, args: list[str], raw: str) -> str:
    return registry.build_help()


async def cmd_status(app: App, args: list[str], raw: str) -> str:
    st = app.orchestrator.state
    mode = "OFFLINE DEMO" if app.offline else "ON-CHAIN"
    wallet = app.wallet.address or "not connected"
    return (
        "Status:\n"
        f"  Mode: {mode}\n"
        f"  Wallet: {wallet}\n"
        f"  FHE: {app.encryption.status.value}\n"
        f"  Contract: {st.contract_address or app.ledger.address}\n"
        f"  Tasks: total={st.stats.total} verified={st.stats.verified} active={st.stats.active}"
    )


async def cmd_connect(app: App, args: list[str], raw: str) -> str:
    if app.wallet.is_connected and app.encryption.is_initialized:
        return f"Already connected as {app.wallet.address}."
    if app.wallet.is_connected:
        # Connected but the engine failed to start: retry bootstrap only.
        await app.orchestrator.bootstrap()
        return f"FHE: {app.encryption.status.value}"

    try:
        signer = app.make_signer()
    except MarketError as e:
        return str(e)

    app.wallet.connect(signer)
    await app.orchestrator.drain()
    return f"Connected as {signer.address}. {app.orchestrator.state.stats.total} task(s) loaded."


async def cmd_disconnect(app: App, args: list[str], raw: str) -> str:
    if not app.wallet.is_connected:
        return "Wallet is not connected."
    app.wallet.disconnect()
    await app.orchestrator.drain()
    return "Wallet disconnected."


async def cmd_refresh(app: App, args: list[str], raw: str) -> str:
    if not app.wallet.is_connected:
        return "Connect your wallet first: /connect"
    if app.orchestrator.state.refreshing:
        return "Refreshing..."
    ok = await app.orchestrator.refresh()
    if not ok:
        return "Refresh failed."
    return f"{app.orchestrator.state.stats.total} task(s) loaded."


async def cmd_tasks(app: App, args: list[str], raw: str) -> str:
    gate = _gate_message(app)
    if gate:
        return gate
    tasks = app.orchestrator.filtered_tasks(raw)
    if not tasks:
        return "No compute tasks found. Create one with /new <name> | <value> | <description>"
    stats = app.orchestrator.state.stats
    lines = [f"Tasks (total={stats.total} verified={stats.verified} active={stats.active}):"]
    lines.extend(_fmt_task_line(t) for t in tasks)
    return "\n".join(lines)


async def cmd_show(app: App, args: list[str], raw: str) -> str:
    gate = _gate_message(app)
    if gate:
        return gate
    if not args:
        app.orchestrator.clear_selection()
        return "Selection cleared. Usage: /show <task id>"
    task = app.orchestrator.select_task(args[0])
    if task is None:
        return f"Unknown task id: {args[0]}"

    if task.is_verified:
        value = f"{task.decrypted_value} (on-chain verified)"
    else:
        value = "FHE encrypted integer (use /decrypt to verify)"
    return (
        "Compute task:\n"
        f"  Id: {task.id}\n"
        f"  Name: {task.name}\n"
        f"  Creator: {task.creator}\n"
        f"  Created: {_fmt_date(task.timestamp)}\n"
        f"  Description: {task.description}\n"
        f"  Value: {value}"
    )


async def cmd_new(app: App, args: list[str], raw: str) -> str:
    """
    /new <name> | <integer value> | <description>
    """
    gate = _gate_message(app)
    if gate:
        return gate

    parts = [p.strip() for p in raw.split("|")]
    if len(parts) != 3:
        return "Usage: /new <name> | <integer value> | <description>"

    orch = app.orchestrator
    orch.open_create_form()
    orch.update_draft(name=parts[0], compute_value=parts[1], description=parts[2])
    task_id = await orch.create_task()
    if task_id is None:
        orch.close_create_form()
        return "Task was not created."
    return f"Created task {task_id}."


async def cmd_decrypt(app: App, args: list[str], raw: str) -> str:
    gate = _gate_message(app)
    if gate:
        return gate
    if not args:
        return "Usage: /decrypt <task id>"

    orch = app.orchestrator
    orch.select_task(args[0])
    value = await orch.decrypt_and_verify(args[0])
    if value is None:
        return "No new value revealed."
    return f"Task {args[0]} value: {value}"


async def cmd_check(app: App, args: list[str], raw: str) -> str:
    ok = await app.orchestrator.check_availability()
    return "Contract reachable." if ok else "Contract not reachable."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show wallet, FHE and contract status.")
registry.register("connect", cmd_connect, help_text="Connect the configured wallet key.")
registry.register("disconnect", cmd_disconnect, help_text="Disconnect the wallet.")
registry.register("refresh", cmd_refresh, help_text="Reload tasks from the ledger.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [search term].", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show one task: /show <id> (no id clears the selection).")
registry.register(
    "new", cmd_new, help_text="Create a task: /new <name> | <integer value> | <description>."
)
registry.register("decrypt", cmd_decrypt, help_text="Decrypt and verify a task: /decrypt <id>.")
registry.register("check", cmd_check, help_text="Check that the registry contract is available.")
