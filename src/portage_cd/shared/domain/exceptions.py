"""
Domain exceptions for Portage.

All application errors inherit from PortageError so the CLI can report them
uniformly. Subprocess failures carry the command name and exit code so a
failing tool is diagnosable from the error alone.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable

# Exit code used when the tool never produced a real exit status
# (could not be started, rejected before start, or killed on cancel).
EXIT_CODE_OTHER = 300


class PortageError(Exception):
    """Base class for all Portage exceptions."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class PreconditionError(PortageError):
    """Raised when a required parameter or input file is missing or unreadable."""

    pass


class ConfigurationError(PortageError):
    """Raised when pipeline configuration is invalid or corrupt."""

    pass


class CommandErrorKind(Enum):
    """Classification of a failed subprocess invocation."""

    EXIT = "exit"  # ran and exited non-zero
    EXEC = "exec"  # binary missing or unusable
    NOT_STARTED = "not_started"  # pre-run wait function rejected the run
    INTERRUPTED = "interrupted"  # killed after cancellation
    INTERRUPT_FAILED = "interrupt_failed"  # cancellation requested, kill failed


class CommandError(PortageError):
    """A classified subprocess failure."""

    kind: CommandErrorKind = CommandErrorKind.EXIT

    def __init__(
        self,
        cause: BaseException | str | None,
        command_name: str,
        exit_code: int = EXIT_CODE_OTHER,
    ):
        self.cause = cause
        self.command_name = command_name
        self.exit_code = exit_code
        super().__init__(
            f"[shell:{command_name}] {cause}",
            context={
                "command": command_name,
                "exit_code": exit_code,
                "kind": self.kind.value,
            },
        )


class CommandExitError(CommandError):
    """The command ran and returned a non-zero exit status."""

    kind = CommandErrorKind.EXIT


class CommandExecError(CommandError):
    """The command could not be executed (missing binary, permission denied)."""

    kind = CommandErrorKind.EXEC


class CommandNotStartedError(CommandError):
    """The command was canceled before it was run."""

    kind = CommandErrorKind.NOT_STARTED


class CommandInterruptedError(CommandError):
    """The command was killed because the cancellation signal fired."""

    kind = CommandErrorKind.INTERRUPTED


class CommandInterruptFailedError(CommandError):
    """Cancellation was requested but the process could not be killed."""

    kind = CommandErrorKind.INTERRUPT_FAILED


class WebhookError(PortageError):
    """Raised when a webhook delivery fails (transport error or non-2xx)."""

    def __init__(self, message: str, url: str, status_code: int | None = None):
        super().__init__(message, context={"url": url, "status_code": status_code})
        self.url = url
        self.status_code = status_code


class StageError(PortageError):
    """Stage-level failure, wrapping the error that stopped the stage."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(f"{stage}: {message}", context=context)
        self.stage = stage


class AggregateError(PortageError):
    """
    Several independent failures joined into one.

    Used by best-effort runners so that every failing step stays visible.
    """

    def __init__(self, errors: Iterable[BaseException]):
        self.errors = list(errors)
        message = "; ".join(str(e) for e in self.errors) or "no errors"
        super().__init__(message, context={"error_count": len(self.errors)})

    def __iter__(self):
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)
