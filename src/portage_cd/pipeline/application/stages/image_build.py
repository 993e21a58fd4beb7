"""Container image build stage."""

from portage_cd.pipeline.application.stages.base import PipelineStage
from portage_cd.pipeline.domain.enums import DockerAlias, StageName
from portage_cd.shell import docker


class ImageBuildStage(PipelineStage):
    name = StageName.IMAGE_BUILD
    failure_message = "image build failed"

    def is_enabled(self) -> bool:
        return self.config.image_build.enabled

    def _run(self) -> None:
        build = self.config.image_build
        params = docker.ImageBuildParams(
            tag=self.config.image_tag,
            build_dir=build.build_dir,
            dockerfile=build.dockerfile,
            platform=build.platform,
            target=build.target,
            cache_to=build.cache_to,
            cache_from=build.cache_from,
            squash_layers=build.squash_layers,
            build_args=tuple(build.args),
        )
        if build.squash_layers and self.alias is not DockerAlias.PODMAN:
            self.logger.warning("squash_layers_unsupported", alias=self.alias.value)

        # build log goes to stderr
        self.executor.execute(
            docker.build(self.alias, params),
            self.context.exec_options(stdout=self.context.stderr),
        )
