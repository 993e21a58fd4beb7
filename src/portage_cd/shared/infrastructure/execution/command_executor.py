"""
Command Executor Service.

Runs one external tool per call and classifies the outcome.
Handles dry-run, error-only stderr buffering, cancellation and logging.
"""

import io
import os
import shlex
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import IO, Any, Sequence

from portage_cd.shared.domain.exceptions import (
    CommandError,
    CommandExecError,
    CommandExitError,
    CommandInterruptedError,
    CommandInterruptFailedError,
    CommandNotStartedError,
    PreconditionError,
)
from portage_cd.shared.infrastructure.execution.options import ExecOptions
from portage_cd.shared.infrastructure.logging import get_logger


@dataclass
class CommandResult:
    """Result of a successful (or dry-run) command execution."""
    command: str
    exit_code: int
    duration: float
    dry_run: bool = False

    @property
    def is_success(self) -> bool:
        """Check if command succeeded."""
        return self.exit_code == 0


def _fileno(stream: IO[Any]) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError, io.UnsupportedOperation):
        return None


def _write_to(stream: IO[Any] | None, data: bytes) -> None:
    """Copy captured bytes to a caller stream, text or binary."""
    if stream is None or not data:
        return
    if isinstance(stream, io.TextIOBase):
        stream.write(data.decode("utf-8", errors="replace"))
    else:
        try:
            stream.write(data)
        except TypeError:
            stream.write(data.decode("utf-8", errors="replace"))
    flush = getattr(stream, "flush", None)
    if flush is not None:
        flush()


class CommandExecutor:
    """
    Synchronous command executor.

    Streams backed by a real file descriptor are handed to the child
    process directly. In-memory streams are fed and collected through pipes
    and copied once the process exits.
    """

    def __init__(self, logger: Any = None):
        self.logger = logger if logger is not None else get_logger(__name__)

    def execute(self, command: Sequence[str], options: ExecOptions | None = None) -> CommandResult:
        """
        Execute a command and block until it finishes or is canceled.

        Args:
            command: Argument vector, first element is the executable
            options: Invocation options

        Returns:
            CommandResult for a successful or dry-run invocation

        Raises:
            CommandError: Classified failure (exit, exec, not started, interrupted)
            PreconditionError: Empty command
        """
        options = options or ExecOptions()
        log = options.logger or self.logger

        argv = [str(arg) for arg in command]
        if not argv:
            raise PreconditionError("command has invalid parameters: empty argument list")

        command_name = argv[0]
        cmd_str = shlex.join(argv)
        log.info("shell_exec", dry_run=options.dry_run, command=cmd_str, errors_only=options.error_only)

        if options.dry_run:
            return CommandResult(command=cmd_str, exit_code=0, duration=0.0, dry_run=True)

        stderr_buffer = io.BytesIO() if options.error_only else None
        start_time = time.perf_counter()

        try:
            options.wait_func()  # may block, by caller's design
        except Exception as e:
            raise self._fail(
                CommandNotStartedError(f"command canceled before run: {e}", command_name),
                options, stderr_buffer, log,
            ) from e

        stdin_arg, stdin_data = self._stdin_target(options.stdin)
        stdout_arg = self._output_target(options.stdout)
        stderr_arg = subprocess.PIPE if options.error_only else self._output_target(options.stderr)

        try:
            process = subprocess.Popen(
                argv,
                stdin=stdin_arg,
                stdout=stdout_arg,
                stderr=stderr_arg,
                cwd=options.cwd,
                start_new_session=True,  # own process group, cancel kills the whole tree
            )
        except (OSError, ValueError) as e:
            raise self._fail(CommandExecError(e, command_name), options, stderr_buffer, log) from e

        outcome: dict[str, Any] = {}
        finished = threading.Event()
        wake = threading.Event()

        def wait_for_process() -> None:
            try:
                outcome["output"] = process.communicate(input=stdin_data)
            except Exception as exc:
                outcome["error"] = exc
            finally:
                finished.set()
                wake.set()

        waiter = threading.Thread(target=wait_for_process, name=f"wait-{command_name}", daemon=True)
        waiter.start()

        remove_callback = options.cancel.add_callback(wake.set) if options.cancel is not None else None
        try:
            wake.wait()
        finally:
            if remove_callback is not None:
                remove_callback()

        if not finished.is_set():
            log.warning("command_canceled", command=cmd_str)
            try:
                self._kill_process_group(process)
            except OSError as e:
                raise self._fail(
                    CommandInterruptFailedError(f"command interrupted, kill requested but failed: {e}", command_name),
                    options, stderr_buffer, log,
                ) from e
            waiter.join()
            self._route_output(outcome, options, stdout_arg, stderr_arg, stderr_buffer)
            raise self._fail(
                CommandInterruptedError("command interrupted", command_name),
                options, stderr_buffer, log,
            )

        if "error" in outcome:
            raise self._fail(
                CommandExecError(outcome["error"], command_name), options, stderr_buffer, log,
            ) from outcome["error"]

        self._route_output(outcome, options, stdout_arg, stderr_arg, stderr_buffer)

        duration = time.perf_counter() - start_time
        exit_code = process.returncode
        if exit_code != 0:
            raise self._fail(
                CommandExitError(f"exit status {exit_code}", command_name, exit_code),
                options, stderr_buffer, log,
            )

        log.debug("command_success", command=cmd_str, duration=round(duration, 3))
        return CommandResult(command=cmd_str, exit_code=exit_code, duration=duration)

    @staticmethod
    def _kill_process_group(process: subprocess.Popen) -> None:
        """
        SIGKILL the process and everything it spawned.

        The group id equals the child's pid (``start_new_session``). A group
        that is already gone is not an error.
        """
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    @staticmethod
    def _stdin_target(stream: IO[Any] | None) -> tuple[Any, bytes | None]:
        if stream is None:
            return subprocess.DEVNULL, None
        if _fileno(stream) is not None:
            return stream, None
        data = stream.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        return subprocess.PIPE, data

    @staticmethod
    def _output_target(stream: IO[Any] | None) -> Any:
        if stream is None:
            return subprocess.DEVNULL
        if _fileno(stream) is not None:
            # pending buffered text must land before the child writes
            stream.flush()
            return stream
        return subprocess.PIPE

    @staticmethod
    def _route_output(
        outcome: dict[str, Any],
        options: ExecOptions,
        stdout_arg: Any,
        stderr_arg: Any,
        stderr_buffer: io.BytesIO | None,
    ) -> None:
        stdout_data, stderr_data = outcome.get("output") or (None, None)
        if stdout_arg is subprocess.PIPE and stdout_data:
            _write_to(options.stdout, stdout_data)
        if not stderr_data or stderr_arg is not subprocess.PIPE:
            return
        if stderr_buffer is not None:
            stderr_buffer.write(stderr_data)
        else:
            _write_to(options.stderr, stderr_data)

    @staticmethod
    def _fail(
        error: CommandError,
        options: ExecOptions,
        stderr_buffer: io.BytesIO | None,
        log: Any,
    ) -> CommandError:
        """
        Common failure path.

        1. Fire the fail trigger
        2. Dump buffered stderr when running in error-only mode
        3. Log the classified error
        """
        options.fail_trigger()

        if stderr_buffer is not None:
            log.warning("command_error_output_dump", command=error.command_name)
            try:
                _write_to(options.stderr, stderr_buffer.getvalue())
            except (OSError, ValueError) as e:
                log.error("command_error_output_dump_failed", command=error.command_name, error=str(e))

        log.error(
            "command_failed",
            command=error.command_name,
            exit_code=error.exit_code,
            kind=error.kind.value,
            error=str(error.cause),
        )
        return error
