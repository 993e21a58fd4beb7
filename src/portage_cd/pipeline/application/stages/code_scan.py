"""
Code scan stage.

Runs every configured scanning engine best-effort, adds whatever reports
were produced to the bundle, then surfaces every failure joined together.
"""

from pathlib import Path

from portage_cd.pipeline.application.stages.base import PipelineStage
from portage_cd.pipeline.application.tasks import (
    CodeScanOptions,
    CodeScanTask,
    CombinedTask,
    GitleaksScanTask,
    SemgrepScanTask,
    SnykCodeScanTask,
)
from portage_cd.pipeline.domain.enums import StageName
from portage_cd.shared.domain.exceptions import AggregateError, PortageError, PreconditionError, StageError


class CodeScanStage(PipelineStage):
    name = StageName.CODE_SCAN
    failure_message = "code scan failed"

    def is_enabled(self) -> bool:
        return self.config.code_scan.enabled

    def scan_options(self, artifact_dir: Path) -> CodeScanOptions:
        scan = self.config.code_scan
        return CodeScanOptions(
            semgrep_filename=str(artifact_dir / scan.semgrep_filename) if scan.semgrep_filename else "",
            semgrep_rules=scan.semgrep_rules,
            semgrep_experimental=scan.semgrep_experimental,
            semgrep_src_dir=scan.semgrep_src_dir,
            gitleaks_filename=str(artifact_dir / scan.gitleaks_filename) if scan.gitleaks_filename else "",
            gitleaks_src_dir=scan.gitleaks_src_dir,
            snyk_filename=str(artifact_dir / scan.snyk_filename) if scan.snyk_filename else "",
            snyk_src_dir=scan.snyk_src_dir,
        )

    def engines(self) -> list[CodeScanTask]:
        tasks: list[CodeScanTask] = [
            GitleaksScanTask(self.executor, self.logger),
            SemgrepScanTask(self.executor, self.logger),
        ]
        if self.config.code_scan.snyk_filename:
            tasks.append(SnykCodeScanTask(self.executor, self.logger))
        else:
            self.logger.debug("snyk_code_scan_skipped", reason="no snyk filename configured")
        return tasks

    def _run(self) -> None:
        artifact_dir = self._make_artifact_dir()
        opts = self.scan_options(artifact_dir)
        engines = self.engines()

        combined = CombinedTask(
            engines,
            display_writer=self.context.stdout,
            opts=opts,
            exec_options=self.context.exec_options(),
            logger=self.logger,
        )

        errors: list[BaseException] = []
        try:
            combined.run(self.context.cancel)
        except AggregateError as e:
            errors.extend(e.errors)
        engine_failures = len(errors)

        # reports of the engines that did succeed still belong in the bundle
        for engine in engines:
            report = engine.report_path(opts)
            if report is None:
                continue
            if report.is_file() or self.context.dry_run:
                self._collect(errors, report)
            else:
                self.logger.warning("report_missing", engine=engine.name, path=str(report))

        coverage_file = self.config.code_scan.coverage_file
        if coverage_file:
            coverage_path = Path(coverage_file)
            if coverage_path.is_file():
                self._collect(errors, coverage_path)
            else:
                errors.append(PreconditionError(
                    f"coverage file '{coverage_path}' does not exist",
                    context={"path": str(coverage_path)},
                ))

        if errors:
            joined = AggregateError(errors)
            others = len(errors) - engine_failures
            summary = f"{engine_failures} engine(s) failed" if engine_failures else f"{others} error(s)"
            if engine_failures and others:
                summary += f", {others} other error(s)"
            raise StageError(self.name.value, f"{self.failure_message}: {summary}: {joined}") from joined

    def _collect(self, errors: list[BaseException], file_path: Path) -> None:
        try:
            self._add_to_bundle(file_path)
        except (PortageError, OSError) as e:
            errors.append(e)
