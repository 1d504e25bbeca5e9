# src/fhe_market/core/status.py

"""
Single-slot status channel.

At most one status is current. Posting a new one supersedes the previous
status, cancels its pending auto-clear and arms a fresh timer. Each post
bumps a generation counter; a timer only clears the slot if its generation
is still the current one, so a late timer can never hide a newer status.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)


class StatusKind(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class Status:
    visible: bool = False
    kind: StatusKind = StatusKind.PENDING
    message: str = ""


HIDDEN = Status()

StatusListener = Callable[[Status], None]


class StatusChannel:
    def __init__(
            self,
            *,
            success_clear_seconds: float = 2.0,
            error_clear_seconds: float = 3.0,
    ) -> None:
        self.success_clear_seconds = float(success_clear_seconds)
        self.error_clear_seconds = float(error_clear_seconds)

        self._current: Status = HIDDEN
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._listeners: list[StatusListener] = []

    @property
    def current(self) -> Status:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ---- posting ----

    def pending(self, message: str) -> None:
        # Pending statuses stay until superseded.
        self.post(StatusKind.PENDING, message, clear_after=None)

    def success(self, message: str) -> None:
        self.post(StatusKind.SUCCESS, message, clear_after=self.success_clear_seconds)

    def error(self, message: str) -> None:
        self.post(StatusKind.ERROR, message, clear_after=self.error_clear_seconds)

    def post(self, kind: StatusKind, message: str, *, clear_after: float | None) -> None:
        self._cancel_timer()
        self._generation += 1
        self._set(Status(visible=True, kind=kind, message=message))

        if clear_after is not None:
            self._arm(clear_after, self._generation)

    def clear(self) -> None:
        self._cancel_timer()
        self._generation += 1
        self._set(HIDDEN)

    # ---- internals ----

    def _arm(self, delay: float, generation: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; status %d will not auto-clear", generation)
            return
        self._timer = loop.call_later(max(0.0, delay), self._expire, generation)

    def _expire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._timer = None
        self._set(HIDDEN)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set(self, status: Status) -> None:
        self._current = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed")
