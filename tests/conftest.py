"""Shared test fixtures for the Portage test suite."""

import io
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from portage_cd.pipeline.application.bundle_manager import BundleManager
from portage_cd.pipeline.application.stages import StageContext
from portage_cd.pipeline.domain.models import PipelineConfig
from portage_cd.shared.domain.exceptions import CommandExitError
from portage_cd.shared.infrastructure.execution import CommandResult, ExecOptions


class RecordingExecutor:
    """
    Executor double that records commands instead of running them.

    ``failures`` maps a command prefix (e.g. ``"semgrep scan"``) to the exit
    code the command should fail with. ``on_execute`` is called for every
    successful command, letting a test simulate files a tool would write.
    """

    def __init__(
        self,
        failures: Optional[Dict[str, int]] = None,
        on_execute: Optional[Callable[[List[str], ExecOptions], None]] = None,
    ):
        self.calls: List[Tuple[List[str], ExecOptions]] = []
        self.failures = failures or {}
        self.on_execute = on_execute

    @property
    def commands(self) -> List[List[str]]:
        return [argv for argv, _ in self.calls]

    @property
    def command_lines(self) -> List[str]:
        return [" ".join(argv) for argv in self.commands]

    def execute(self, command: Sequence[str], options: Optional[ExecOptions] = None) -> CommandResult:
        argv = [str(arg) for arg in command]
        options = options or ExecOptions()
        self.calls.append((argv, options))
        line = " ".join(argv)

        for prefix, exit_code in self.failures.items():
            if line.startswith(prefix):
                options.fail_trigger()
                raise CommandExitError(f"exit status {exit_code}", argv[0], exit_code)

        if self.on_execute is not None:
            self.on_execute(argv, options)
        return CommandResult(command=line, exit_code=0, duration=0.0, dry_run=options.dry_run)


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def make_executor():
    """Factory for executors with scripted failures."""
    return RecordingExecutor


@pytest.fixture
def pipeline_config(tmp_path):
    """Default configuration writing artifacts under tmp_path."""
    return PipelineConfig(artifact_dir=str(tmp_path / "artifacts"))


@pytest.fixture
def make_context(executor):
    """Build a StageContext around the recording executor."""

    def factory(**kwargs) -> StageContext:
        stdout = kwargs.pop("stdout", io.StringIO())
        stderr = kwargs.pop("stderr", io.StringIO())
        recording = kwargs.pop("executor", executor)
        return StageContext(
            stdout=stdout,
            stderr=stderr,
            executor=recording,
            bundle_manager=BundleManager(recording, stderr=stderr, cancel=kwargs.get("cancel")),
            **kwargs,
        )

    return factory
