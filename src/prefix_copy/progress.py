# src/prefix_copy/progress.py
"""
Request accounting and the terminal progress indicator.

Workers share a single `RequestCounter`, fed by the storage client for
every HTTP request it sends. After each key a worker drains the counter and
hands the count to a progress reporter, which prints one symbol per key.
"""

import logging
import threading
from typing import Optional

from rich.console import Console

logger: logging.Logger = logging.getLogger(__name__)

KEY_DONE: str = "."
KEY_RETRIED: str = "_"


class RequestCounter:
    """A thread-safe counter of storage API requests."""

    def __init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._value: int = 0
        self._total: int = 0

    def increment(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount
            self._total += amount

    def reset(self) -> int:
        """
        Returns the number of requests since the last reset and zeroes it.

        Returns:
            int: Requests counted since the previous reset.
        """
        with self._lock:
            value: int = self._value
            self._value = 0
            return value

    @property
    def total(self) -> int:
        """Requests counted over the lifetime of the counter."""
        with self._lock:
            return self._total


class NullProgressReporter:
    """Progress reporter used when the indicator is disabled."""

    def report(self, n: int, symbol: str = KEY_DONE) -> None:
        pass

    def finish(self) -> None:
        pass


class ProgressReporter(NullProgressReporter):
    """Prints a symbol per reported key to an interactive console."""

    def __init__(self, console: Console) -> None:
        self._console: Console = console
        self._lock: threading.Lock = threading.Lock()
        self._dirty: bool = False

    def report(self, n: int, symbol: str = KEY_DONE) -> None:
        """
        Writes `symbol` once if any requests were made, nothing otherwise.

        Args:
            n (int): Requests made while handling the key.
            symbol (str): The character to print.
        """
        if n <= 0:
            return
        with self._lock:
            self._console.print(symbol, end="", highlight=False, soft_wrap=True)
            self._dirty = True

    def finish(self) -> None:
        """Terminates the line of symbols, if one was started."""
        with self._lock:
            if self._dirty:
                self._console.print()
                self._dirty = False


def make_reporter(
    enabled: bool, threads: int, console: Optional[Console] = None
) -> NullProgressReporter:
    """
    Picks the progress reporter for this run.

    The indicator is only shown for single-threaded runs on a terminal.

    Args:
        enabled (bool): Whether progress was requested.
        threads (int): The configured worker thread count.
        console (Console, optional): The console to write to, stderr by default.

    Returns:
        NullProgressReporter: The reporter to hand to workers.
    """
    if not enabled:
        return NullProgressReporter()
    console = console or Console(stderr=True)
    if threads != 1:
        logger.warning("Progress indicator is only shown with a single thread.")
        return NullProgressReporter()
    if not console.is_terminal:
        logger.info("Progress indicator disabled: output is not a terminal.")
        return NullProgressReporter()
    return ProgressReporter(console)
