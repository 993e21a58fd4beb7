from portage_cd.pipeline.application.tasks.code_scan import (
    CodeScanOptions,
    CodeScanTask,
    GitleaksScanTask,
    SemgrepScanTask,
    SnykCodeScanTask,
)
from portage_cd.pipeline.application.tasks.combined import CombinedTask

__all__ = [
    "CodeScanOptions",
    "CodeScanTask",
    "CombinedTask",
    "GitleaksScanTask",
    "SemgrepScanTask",
    "SnykCodeScanTask",
]
