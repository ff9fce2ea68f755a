"""Transient run status: a one-line indicator and a final summary."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Protocol

from rich.console import Console
from rich.status import Status

REMOVAL_DELAY_SECONDS = 5.0

Scheduler = Callable[[float, Callable[[], None]], None]


class StatusIndicator(Protocol):
    def set_text(self, text: str) -> None: ...

    def remove(self) -> None: ...


class RichStatusIndicator:
    """Status line rendered on a ``rich`` console.

    The spinner line is replaced on every update; on removal the last text
    is printed so the summary stays in the terminal scrollback.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(stderr=True)
        self.text = ""
        self._status: Optional[Status] = None
        self._removed = False

    def set_text(self, text: str) -> None:
        self.text = text
        if self._removed:
            return
        if self._status is None:
            self._status = self.console.status(text)
            self._status.start()
        else:
            self._status.update(text)

    def remove(self) -> None:
        if self._removed:
            return
        self._removed = True
        if self._status is not None:
            self._status.stop()
        if self.text:
            self.console.print(self.text)


def timer_scheduler(delay: float, callback: Callable[[], None]) -> None:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()


def immediate_scheduler(delay: float, callback: Callable[[], None]) -> None:
    callback()


class ProgressReporter:
    """Drive one status indicator through a run."""

    def __init__(
        self,
        indicator_factory: Callable[[], StatusIndicator],
        *,
        clock: Callable[[], float] = time.monotonic,
        schedule: Scheduler = timer_scheduler,
        removal_delay: float = REMOVAL_DELAY_SECONDS,
    ) -> None:
        self._factory = indicator_factory
        self._clock = clock
        self._schedule = schedule
        self.removal_delay = removal_delay
        self.index = 0
        self.total = 0
        self.start_time: Optional[float] = None
        self.elapsed: Optional[float] = None
        self._indicator: Optional[StatusIndicator] = None

    def start(self, total: int) -> None:
        self.index = 0
        self.total = total
        self.start_time = self._clock()
        self.elapsed = None
        self._indicator = self._factory()

    def advance(self) -> str:
        self.index += 1
        text = f"Processing image {self.index} of {self.total}"
        self._set(text)
        return text

    def finish(self, processed: int) -> str:
        start = self.start_time
        if start is None:
            start = self._clock()
        self.elapsed = self._clock() - start
        text = (
            f"Finished processing {processed} images, "
            f"total time: {self.elapsed:.2f} seconds"
        )
        self._set(text)
        indicator = self._indicator
        if indicator is not None:
            self._schedule(self.removal_delay, indicator.remove)
        return text

    def notice(self, text: str) -> None:
        """Show a one-off message that removes itself after the delay."""

        indicator = self._factory()
        indicator.set_text(text)
        self._schedule(self.removal_delay, indicator.remove)

    def _set(self, text: str) -> None:
        if self._indicator is None:
            self._indicator = self._factory()
        self._indicator.set_text(text)


__all__ = [
    "REMOVAL_DELAY_SECONDS",
    "ProgressReporter",
    "RichStatusIndicator",
    "StatusIndicator",
    "immediate_scheduler",
    "timer_scheduler",
]
