# src/fhe_market/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field

from ..tasks.task_models import Stats, Task, TaskDraft


@dataclass
class AppState:
    """
    Session-only application state owned by the orchestrator.

    tasks/stats are written by refresh only. The in-flight flags are the
    single-flight guards of the four operations.
    """

    tasks: list[Task] = field(default_factory=list)
    stats: Stats = field(default_factory=Stats)
    loading: bool = True
    contract_address: str = ""

    initializing: bool = False
    refreshing: bool = False
    creating: bool = False
    decrypting: bool = False

    show_create_form: bool = False
    draft: TaskDraft = field(default_factory=TaskDraft)
    selected_task_id: str | None = None
    # Locally revealed value for the selected task (before the next refresh shows it verified).
    decrypted_value: int | None = None

    def task_by_id(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    @property
    def selected_task(self) -> Task | None:
        if self.selected_task_id is None:
            return None
        return self.task_by_id(self.selected_task_id)


def blocking_screen(state: AppState, *, connected: bool, encryption_ready: bool) -> str | None:
    """Which full-screen gate the front-end must show, if any."""
    if not connected:
        return "connect"
    if not encryption_ready or state.initializing:
        return "initializing"
    if state.loading:
        return "loading"
    return None
