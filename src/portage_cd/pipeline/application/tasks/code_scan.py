"""
Code scanning engines.

Every engine writes its raw report file, then summarizes it with
``gatecheck list`` into the display buffer it was handed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from portage_cd.shell import gatecheck, scanners
from portage_cd.shared.domain.exceptions import PortageError, PreconditionError
from portage_cd.shared.infrastructure.execution import CommandExecutor, ExecOptions
from portage_cd.shared.infrastructure.logging import get_logger


@dataclass(frozen=True)
class CodeScanOptions:
    """Report paths and source directories shared by all code-scan engines."""

    semgrep_filename: str = ""
    semgrep_rules: str = ""
    semgrep_experimental: bool = False
    semgrep_src_dir: str = "."
    gitleaks_filename: str = ""
    gitleaks_src_dir: str = "."
    snyk_filename: str = ""
    snyk_src_dir: str = ""


class CodeScanTask(ABC):
    """One code-scan engine."""

    name: str = "code-scan"

    def __init__(self, executor: CommandExecutor, logger: Any = None):
        self.executor = executor
        self.logger = logger if logger is not None else get_logger(__name__)

    @abstractmethod
    def report_path(self, opts: CodeScanOptions) -> Path | None:
        """Where this engine writes its report, None if it writes none."""

    @abstractmethod
    def run(self, opts: CodeScanOptions, exec_options: ExecOptions, display: IO[str]) -> None:
        ...

    def summarize(self, report: Path, exec_options: ExecOptions, display: IO[str]) -> None:
        self.executor.execute(gatecheck.list_report(report), exec_options.replace(stdout=display))


class GitleaksScanTask(CodeScanTask):
    name = "gitleaks"

    def report_path(self, opts: CodeScanOptions) -> Path | None:
        return Path(opts.gitleaks_filename) if opts.gitleaks_filename else None

    def run(self, opts: CodeScanOptions, exec_options: ExecOptions, display: IO[str]) -> None:
        report = self.report_path(opts)
        if report is None:
            raise PreconditionError("gitleaks report filename required")

        params = scanners.GitleaksParams(target_dir=opts.gitleaks_src_dir, report_path=report)
        # gitleaks writes the report itself, its console output goes to stderr
        self.executor.execute(scanners.gitleaks_detect(params), exec_options.replace(stdout=exec_options.stderr))
        self.summarize(report, exec_options, display)


class SemgrepScanTask(CodeScanTask):
    name = "semgrep"

    def report_path(self, opts: CodeScanOptions) -> Path | None:
        return Path(opts.semgrep_filename) if opts.semgrep_filename else None

    def run(self, opts: CodeScanOptions, exec_options: ExecOptions, display: IO[str]) -> None:
        if not opts.semgrep_rules:
            raise PreconditionError("semgrep rules are required")
        report = self.report_path(opts)
        if report is None:
            raise PreconditionError("semgrep report filename required")

        params = scanners.SemgrepParams(
            rules=opts.semgrep_rules,
            target_dir=opts.semgrep_src_dir,
            experimental=opts.semgrep_experimental,
        )
        if exec_options.dry_run:
            self.executor.execute(scanners.semgrep_scan(params), exec_options)
            self.summarize(report, exec_options, display)
            return

        try:
            with open(report, "wb") as report_file:
                self.executor.execute(scanners.semgrep_scan(params), exec_options.replace(stdout=report_file))
        except PortageError:
            # a partial report must not end up in the bundle
            self.logger.debug("semgrep_partial_report_removed", path=str(report))
            report.unlink(missing_ok=True)
            raise

        self.summarize(report, exec_options, display)


class SnykCodeScanTask(CodeScanTask):
    name = "snyk"

    def report_path(self, opts: CodeScanOptions) -> Path | None:
        return Path(opts.snyk_filename) if opts.snyk_filename else None

    def run(self, opts: CodeScanOptions, exec_options: ExecOptions, display: IO[str]) -> None:
        report = self.report_path(opts)
        if report is None:
            raise PreconditionError("snyk report filename required")
        if not opts.snyk_src_dir:
            raise PreconditionError("snyk src directory required")

        params = scanners.SnykCodeParams(target_dir=opts.snyk_src_dir, report_path=report)
        self.executor.execute(scanners.snyk_code_test(params), exec_options.replace(stdout=exec_options.stderr))
        self.summarize(report, exec_options, display)
