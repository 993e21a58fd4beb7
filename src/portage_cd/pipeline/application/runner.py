"""
Composite pipeline runs.

Stages are sequenced fail-fast in a fixed order. Disabled stages are free
no-ops, so a composite run only performs the stages that are enabled.
"""

from typing import Dict, Iterable, Sequence, Type

from portage_cd.pipeline.application.stages import (
    CodeScanStage,
    DeployStage,
    ImageBuildStage,
    ImagePublishStage,
    ImageScanStage,
    PipelineStage,
    StageContext,
)
from portage_cd.pipeline.application.task_runner import Step, TaskRunner
from portage_cd.pipeline.domain.enums import AggregationStrategy, StageName
from portage_cd.pipeline.domain.models import PipelineConfig

STAGES: Dict[StageName, Type[PipelineStage]] = {
    StageName.CODE_SCAN: CodeScanStage,
    StageName.IMAGE_BUILD: ImageBuildStage,
    StageName.IMAGE_SCAN: ImageScanStage,
    StageName.IMAGE_PUBLISH: ImagePublishStage,
    StageName.DEPLOY: DeployStage,
}

SEQUENCES: Dict[str, Sequence[StageName]] = {
    "image-delivery": (StageName.IMAGE_BUILD, StageName.IMAGE_SCAN, StageName.IMAGE_PUBLISH),
    "all": (
        StageName.CODE_SCAN,
        StageName.IMAGE_BUILD,
        StageName.IMAGE_SCAN,
        StageName.IMAGE_PUBLISH,
        StageName.DEPLOY,
    ),
}


class PipelineRunner:
    """Runs one stage or a named sequence of stages against one config."""

    def __init__(self, context: StageContext, config: PipelineConfig):
        self.context = context
        self.config = config
        self.logger = context.logger

    def stage(self, name: StageName) -> PipelineStage:
        return STAGES[name](self.context).with_config(self.config)

    def run_stage(self, name: StageName) -> None:
        self.run_stages([name])

    def run_sequence(self, sequence: str) -> None:
        """
        Run a named sequence (``image-delivery`` or ``all``).

        Raises:
            KeyError: Unknown sequence name
            PortageError: The first stage failure
        """
        self.run_stages(SEQUENCES[sequence])

    def run_stages(self, names: Iterable[StageName]) -> None:
        stages = [self.stage(name) for name in names]
        if not any(stage.is_enabled() for stage in stages):
            self.logger.warning("no_stage_enabled", stages=[stage.name.value for stage in stages])
            return

        self._init_bundle()
        steps = [Step(stage.name.value, stage.run) for stage in stages]
        TaskRunner(AggregationStrategy.FAIL_FAST, cancel=self.context.cancel, logger=self.logger).run(steps)

    def _init_bundle(self) -> None:
        artifact_dir = self.config.artifact_path
        artifact_dir.mkdir(parents=True, exist_ok=True)
        self.context.bundle_manager.init_bundle(self.config, self.context.dry_run)
