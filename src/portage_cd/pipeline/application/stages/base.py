"""
Pipeline stage base class and shared execution context.

A stage is one independently enable-able phase of the pipeline. It checks
its enabled flag first and does nothing at all when disabled, so composite
runs can treat disabled stages as free no-ops.
"""

import sys
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Iterator, Optional

import httpx

from portage_cd.pipeline.application.bundle_manager import BundleManager
from portage_cd.pipeline.domain.enums import DockerAlias, StageName
from portage_cd.pipeline.domain.models import PipelineConfig
from portage_cd.shared.domain.exceptions import PortageError, PreconditionError, StageError
from portage_cd.shared.infrastructure.execution import CancellationSignal, CommandExecutor, ExecOptions
from portage_cd.shared.infrastructure.logging import get_logger

DEFAULT_DIR_MODE = 0o755


@dataclass
class StageContext:
    """
    Dependencies shared by every stage of a run.

    Passed explicitly into each stage instead of living in module globals.
    """

    stdout: IO[Any] = field(default_factory=lambda: sys.stdout)
    stderr: IO[Any] = field(default_factory=lambda: sys.stderr)
    dry_run: bool = False
    docker_alias: str = "docker"
    cancel: Optional[CancellationSignal] = None
    executor: Optional[CommandExecutor] = None
    bundle_manager: Optional[BundleManager] = None
    http_client: Optional[httpx.Client] = None
    logger: Any = None

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = get_logger("portage_cd.pipeline")
        if self.executor is None:
            self.executor = CommandExecutor(logger=self.logger)
        if self.bundle_manager is None:
            self.bundle_manager = BundleManager(
                self.executor, stderr=self.stderr, logger=self.logger, cancel=self.cancel
            )

    def exec_options(self, **overrides: Any) -> ExecOptions:
        """Options wired to this run's streams, dry-run flag and cancel signal."""
        options = ExecOptions(
            stdout=self.stdout,
            stderr=self.stderr,
            dry_run=self.dry_run,
            cancel=self.cancel,
            logger=self.logger,
        )
        return options.replace(**overrides) if overrides else options


class PipelineStage(ABC):
    """
    Base class for pipeline stages.

    Subclasses implement ``is_enabled`` and ``_run``. Errors raised by
    ``_run`` are wrapped in a StageError naming the stage.
    """

    name: StageName
    failure_message: str = "pipeline failed"

    def __init__(self, context: StageContext | None = None):
        self.context = context or StageContext()
        self.logger = self.context.logger
        self.config: PipelineConfig | None = None

    def with_config(self, config: PipelineConfig) -> "PipelineStage":
        self.config = config
        return self

    @property
    def executor(self) -> CommandExecutor:
        return self.context.executor

    @property
    def alias(self) -> DockerAlias:
        return DockerAlias.parse(self.context.docker_alias)

    @abstractmethod
    def is_enabled(self) -> bool:
        ...

    @abstractmethod
    def _run(self) -> None:
        ...

    def run(self) -> None:
        """
        Run the stage.

        Raises:
            PreconditionError: No configuration was provided
            StageError: Any failure inside the stage
        """
        if self.config is None:
            raise PreconditionError(f"{self.name.value}: no configuration provided")

        if not self.is_enabled():
            self.logger.warning("stage_disabled", stage=self.name.value)
            return

        self.logger.info("stage_started", stage=self.name.value, dry_run=self.context.dry_run)
        start_time = time.perf_counter()

        try:
            self._run()
        except StageError:
            raise
        except (PortageError, OSError) as e:
            self.logger.error("stage_failed", stage=self.name.value, error=str(e), error_type=type(e).__name__)
            raise StageError(
                self.name.value,
                f"{self.failure_message}: {e}",
                context=getattr(e, "context", {}),
            ) from e

        self.logger.info(
            "stage_completed",
            stage=self.name.value,
            duration=round(time.perf_counter() - start_time, 3),
        )

    def _make_artifact_dir(self) -> Path:
        artifact_dir = self.config.artifact_path
        self.logger.debug("make_directory", path=str(artifact_dir))
        artifact_dir.mkdir(mode=DEFAULT_DIR_MODE, parents=True, exist_ok=True)
        return artifact_dir

    def _add_to_bundle(self, file_path: Path) -> None:
        self.context.bundle_manager.add_file(self.context.dry_run, self.config.bundle_path, file_path)

    @contextmanager
    def _open_report(self, report: Path) -> Iterator[IO[bytes] | None]:
        """Report file to use as stdout; nothing is created in dry-run mode."""
        if self.context.dry_run:
            yield None
            return
        with open(report, "wb") as report_file:
            yield report_file
