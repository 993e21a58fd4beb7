"""Container image publish stage."""

from portage_cd.pipeline.application.stages.base import PipelineStage
from portage_cd.pipeline.domain.enums import StageName
from portage_cd.shell import docker, scanners


class ImagePublishStage(PipelineStage):
    name = StageName.IMAGE_PUBLISH
    failure_message = "image publish failed"

    def is_enabled(self) -> bool:
        return self.config.image_publish.enabled

    def _run(self) -> None:
        self.executor.execute(
            docker.push(self.alias, self.config.image_tag),
            self.context.exec_options(stdout=self.context.stderr),
        )

        bundle_tag = self.config.image_publish.bundle_tag
        if not bundle_tag:
            self.logger.debug("bundle_publish_skipped", reason="no bundle tag")
            return

        bundle = self.config.bundle_path
        # oras stores the file name as given, push from the bundle's directory
        self.executor.execute(
            scanners.oras_push_bundle(bundle_tag, bundle),
            self.context.exec_options(stdout=self.context.stderr, cwd=bundle.parent),
        )
