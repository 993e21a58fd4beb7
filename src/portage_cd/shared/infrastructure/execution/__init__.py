"""Subprocess execution: options, cancellation and the command executor."""

from portage_cd.shared.infrastructure.execution.command_executor import CommandExecutor, CommandResult
from portage_cd.shared.infrastructure.execution.options import CancellationSignal, ExecOptions

__all__ = ["CancellationSignal", "CommandExecutor", "CommandResult", "ExecOptions"]
