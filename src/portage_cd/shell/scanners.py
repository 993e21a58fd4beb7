"""
Security scanner commands.

Each builder returns the argument vector only; where a report goes is decided
by the caller through the executor's stdout binding or a report-path flag.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List


@dataclass(frozen=True)
class SemgrepParams:
    rules: str
    target_dir: str
    experimental: bool = False


@dataclass(frozen=True)
class GitleaksParams:
    target_dir: str
    report_path: Path


@dataclass(frozen=True)
class SnykCodeParams:
    target_dir: str
    report_path: Path


def syft_scan(image_tag: str) -> List[str]:
    """Output: CycloneDX SBOM JSON to STDOUT"""
    return ["syft", "scan", image_tag, "--scope", "squashed", "--output", "cyclonedx-json"]


def grype_sbom(sbom: Path, config: Path | None = None) -> List[str]:
    """Output: vulnerability report JSON to STDOUT"""
    args = ["grype", f"sbom:{sbom}", "--output", "json"]
    if config is not None:
        args += ["--config", str(config)]
    return args


def freshclam() -> List[str]:
    return ["freshclam"]


def clamscan(target: Path) -> List[str]:
    """Output: virus report to STDOUT"""
    return ["clamscan", "--infected", "--recursive", "--scan-archive=yes", str(target)]


def semgrep_scan(params: SemgrepParams) -> List[str]:
    """Output: JSON report to STDOUT"""
    if params.experimental:
        return ["osemgrep", "scan", "--json", "--experimental", "--config", params.rules, params.target_dir]
    return ["semgrep", "scan", "--json", "--config", params.rules, params.target_dir]


def gitleaks_detect(params: GitleaksParams) -> List[str]:
    """Output: JSON report written to ``report_path``"""
    return [
        "gitleaks",
        "detect",
        "--exit-code",
        "0",
        "--verbose",
        "--source",
        params.target_dir,
        "--report-path",
        str(params.report_path),
    ]


def snyk_code_test(params: SnykCodeParams) -> List[str]:
    """Output: SARIF report written to ``report_path``"""
    return [
        "snyk",
        "code",
        "test",
        "-d",
        f"--sarif-file-output={params.report_path}",
        params.target_dir,
    ]


def oras_push_bundle(bundle_tag: str, bundle: Path) -> List[str]:
    """Push the artifact bundle to a registry as an OCI artifact."""
    return [
        "oras",
        "push",
        bundle_tag,
        f"{bundle.name}:application/vnd.gatecheck.bundle.tar+gzip",
    ]
