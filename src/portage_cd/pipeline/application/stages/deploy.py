"""
Deploy stage.

Resolve the gatecheck validation config, persist it next to the other
artifacts, add it to the bundle, validate the bundle against it and finally
notify every success webhook.
"""

from pathlib import Path

from portage_cd.pipeline.application.stages.base import PipelineStage, StageContext
from portage_cd.pipeline.application.validation_config import (
    default_resolvers,
    render_config,
    resolve_config,
)
from portage_cd.pipeline.domain.enums import StageName
from portage_cd.pipeline.infrastructure.webhooks import WebhookNotifier
from portage_cd.shell import gatecheck

GATECHECK_CONFIG_ARTIFACT = "gatecheck-config.yml"


class DeployStage(PipelineStage):
    name = StageName.DEPLOY
    failure_message = "deployment validation failed"

    def __init__(
        self,
        context: StageContext | None = None,
        notifier: WebhookNotifier | None = None,
        base_dir: Path | str = ".",
    ):
        super().__init__(context)
        self.notifier = notifier or WebhookNotifier(client=self.context.http_client, logger=self.logger)
        self.base_dir = Path(base_dir)

    def is_enabled(self) -> bool:
        return self.config.deploy.enabled

    def _run(self) -> None:
        artifact_dir = self._make_artifact_dir()

        resolved = resolve_config(default_resolvers(self.config.deploy.gatecheck_config_filename, self.base_dir))
        self.logger.info(
            "gatecheck_config_resolved",
            source=resolved.source,
            path=str(resolved.path) if resolved.path else None,
        )

        config_path = artifact_dir / GATECHECK_CONFIG_ARTIFACT
        config_path.write_text(render_config(resolved), encoding="utf-8")
        self.logger.debug("gatecheck_config_written", path=str(config_path))

        self._add_to_bundle(config_path)

        bundle = self.config.bundle_path
        self.executor.execute(gatecheck.validate(bundle, config_path), self.context.exec_options())

        webhooks = self.config.deploy.success_webhooks
        if self.context.dry_run:
            self.logger.info("webhooks_skipped_dry_run", count=len(webhooks))
            return

        self.notifier.notify_all(webhooks, bundle)
