from portage_cd.pipeline.application.stages.base import PipelineStage, StageContext
from portage_cd.pipeline.application.stages.code_scan import CodeScanStage
from portage_cd.pipeline.application.stages.deploy import DeployStage
from portage_cd.pipeline.application.stages.image_build import ImageBuildStage
from portage_cd.pipeline.application.stages.image_publish import ImagePublishStage
from portage_cd.pipeline.application.stages.image_scan import ImageScanStage

__all__ = [
    "CodeScanStage",
    "DeployStage",
    "ImageBuildStage",
    "ImagePublishStage",
    "ImageScanStage",
    "PipelineStage",
    "StageContext",
]
