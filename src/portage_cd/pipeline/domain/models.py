"""
Pipeline domain models.

The pipeline configuration tree. Keys are camelCase on disk
(``imageTag``, ``codeScan.semgrepRules``) and snake_case in Python.
"""

from pathlib import Path
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class WebhookTarget(_ConfigModel):
    """A success webhook invoked after the bundle validates."""

    url: str
    authorization_var: str = Field(
        default="",
        description="Name of the environment variable holding the Authorization header value",
    )


class ImageBuildConfig(_ConfigModel):
    enabled: bool = True
    build_dir: str = "."
    dockerfile: str = "Dockerfile"
    platform: str = ""
    target: str = ""
    cache_to: str = ""
    cache_from: str = ""
    squash_layers: bool = False
    args: List[str] = Field(default_factory=list)


class ImageScanConfig(_ConfigModel):
    enabled: bool = True
    syft_filename: str = "syft-sbom-report.json"
    grype_config_filename: str = ""
    grype_filename: str = "grype-vulnerability-report-full.json"
    clamav_filename: str = "clamav-virus-report.txt"
    freshclam_disabled: bool = False


class CodeScanConfig(_ConfigModel):
    enabled: bool = True
    gitleaks_filename: str = "gitleaks-secrets-report.json"
    gitleaks_src_dir: str = "."
    semgrep_filename: str = "semgrep-sast-report.json"
    semgrep_rules: str = "p/default"
    semgrep_experimental: bool = False
    semgrep_src_dir: str = "."
    snyk_filename: str = ""
    snyk_src_dir: str = "."
    coverage_file: str = ""


class ImagePublishConfig(_ConfigModel):
    enabled: bool = True
    bundle_tag: str = ""


class DeployConfig(_ConfigModel):
    enabled: bool = True
    gatecheck_config_filename: str = ""
    success_webhooks: List[WebhookTarget] = Field(default_factory=list)


class PipelineConfig(_ConfigModel):
    """
    Pipeline configuration.

    Every stage carries its own ``enabled`` flag; flags are independent of
    each other.
    """

    version: str = ""
    image_tag: str = "my-app:latest"
    artifact_dir: str = "artifacts"
    gatecheck_bundle_filename: str = "gatecheck-bundle.tar.gz"
    image_build: ImageBuildConfig = Field(default_factory=ImageBuildConfig)
    image_scan: ImageScanConfig = Field(default_factory=ImageScanConfig)
    code_scan: CodeScanConfig = Field(default_factory=CodeScanConfig)
    image_publish: ImagePublishConfig = Field(default_factory=ImagePublishConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)

    @property
    def artifact_path(self) -> Path:
        return Path(self.artifact_dir)

    @property
    def bundle_path(self) -> Path:
        return Path(self.artifact_dir) / self.gatecheck_bundle_filename

    def to_document(self) -> dict[str, Any]:
        """Serialize with on-disk (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True)
