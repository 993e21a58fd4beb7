"""
Artifact bundle management.

The bundle is append-only: the first file creates it, every later file is
added to it. The presence check and the gatecheck call are not atomic, so
callers must not write the same bundle concurrently.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import IO, Any

from portage_cd.pipeline.domain.models import PipelineConfig
from portage_cd.shell import gatecheck
from portage_cd.shared.infrastructure.execution import CancellationSignal, CommandExecutor, ExecOptions
from portage_cd.shared.infrastructure.logging import get_logger, is_debug_enabled

CONFIG_ARTIFACT_NAME = "portage-config.json"


class BundleManager:
    """Create-or-append logic for the gatecheck bundle."""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        stderr: IO[Any] | None = None,
        logger: Any = None,
        cancel: CancellationSignal | None = None,
    ):
        self.logger = logger if logger is not None else get_logger(__name__)
        self.executor = executor or CommandExecutor(logger=self.logger)
        self.stderr = stderr
        self.cancel = cancel

    def add_file(self, dry_run: bool, bundle_path: Path | str, file_path: Path | str) -> None:
        """
        Add ``file_path`` to the bundle, creating the bundle if it is absent.

        stderr is suppressed unless the command fails, or debug logging is on.

        Raises:
            CommandError: gatecheck failed
        """
        bundle_path = Path(bundle_path)
        file_path = Path(file_path)
        self.logger.debug(
            "bundle_add_file",
            bundle=str(bundle_path),
            file=str(file_path),
            dry_run=dry_run,
        )

        options = ExecOptions(
            dry_run=dry_run,
            stderr=self.stderr,
            error_only=not is_debug_enabled(),
            cancel=self.cancel,
            logger=self.logger,
        )

        if not bundle_path.exists():
            self.logger.debug("bundle_create", bundle=str(bundle_path))
            self.executor.execute(gatecheck.bundle_create(bundle_path, file_path), options)
            return

        self.logger.debug("bundle_append", bundle=str(bundle_path))
        self.executor.execute(gatecheck.bundle_add(bundle_path, file_path), options)

    def init_bundle(self, config: PipelineConfig, dry_run: bool) -> None:
        """
        Record the effective pipeline configuration in the bundle.

        The config is encoded to JSON in a temporary file which is removed
        once gatecheck has copied it into the bundle.
        """
        bundle_path = config.bundle_path
        state = "present" if bundle_path.exists() else "absent"
        self.logger.debug("bundle_init", bundle=str(bundle_path), state=state)

        with tempfile.TemporaryDirectory(prefix="portage-") as tmp_dir:
            config_file = Path(tmp_dir) / CONFIG_ARTIFACT_NAME
            config_file.write_text(json.dumps(config.to_document(), indent=2) + os.linesep, encoding="utf-8")
            self.add_file(dry_run, bundle_path, config_file)
