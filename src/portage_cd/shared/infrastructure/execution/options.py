"""
Invocation options for the command executor.

ExecOptions is an immutable, per-invocation value. Derive variants with
``options.replace(...)`` instead of mutating a shared instance.
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Callable


def _noop() -> None:
    return None


class CancellationSignal:
    """
    A one-shot, thread-safe cancellation signal.

    Fired once by ``cancel()``; callbacks registered before or after firing
    are invoked exactly once.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register ``callback`` to run when the signal fires.

        Returns a function that unregisters the callback. If the signal has
        already fired, the callback runs immediately.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                fired = False
            else:
                fired = True
        if fired:
            callback()

        def remove() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return remove


@dataclass(frozen=True)
class ExecOptions:
    """
    Parameters for a single command invocation.

    Attributes:
        stdin: Input stream for the command (None means /dev/null)
        stdout: Output stream for the command (None means /dev/null)
        stderr: Diagnostic stream for the command (None means /dev/null)
        dry_run: Log the command instead of running it
        error_only: Buffer stderr and write it to ``stderr`` only on failure
        cancel: Signal that terminates the running process when fired
        fail_trigger: Called once when the invocation fails
        wait_func: Called before the process is spawned; raising aborts the run
        cwd: Working directory for the command
        logger: Logger used for this invocation (executor default if None)
    """

    stdin: IO[Any] | None = None
    stdout: IO[Any] | None = None
    stderr: IO[Any] | None = None
    dry_run: bool = False
    error_only: bool = False
    cancel: CancellationSignal | None = None
    fail_trigger: Callable[[], None] = _noop
    wait_func: Callable[[], None] = _noop
    cwd: str | Path | None = None
    logger: Any = None

    def replace(self, **changes: Any) -> "ExecOptions":
        return dataclasses.replace(self, **changes)
