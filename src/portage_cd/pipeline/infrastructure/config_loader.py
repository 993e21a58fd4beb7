"""
Pipeline configuration loading.

Precedence, lowest to highest: model defaults, config file, ``PORTAGE_*``
environment variables, explicit overrides (CLI flags).
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from portage_cd.pipeline.domain.models import PipelineConfig
from portage_cd.shared.domain.exceptions import ConfigurationError
from portage_cd.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_NAMES = (".portage.yml", ".portage.yaml", ".portage.json")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class ConfigField:
    """Binds a configuration key to its environment variable."""

    key: str
    env: str
    description: str
    kind: str = "str"  # str | bool | list


CONFIG_FIELDS: tuple[ConfigField, ...] = (
    ConfigField("imageTag", "PORTAGE_IMAGE_TAG", "The full image tag for the target container image"),
    ConfigField("artifactDir", "PORTAGE_ARTIFACT_DIR", "The target directory for all generated artifacts"),
    ConfigField(
        "gatecheckBundleFilename",
        "PORTAGE_GATECHECK_BUNDLE_FILENAME",
        "The filename for the gatecheck bundle, a validatable archive of security artifacts",
    ),
    ConfigField("imageBuild.enabled", "PORTAGE_IMAGE_BUILD_ENABLED", "Enable/Disable the image build pipeline", "bool"),
    ConfigField("imageBuild.buildDir", "PORTAGE_IMAGE_BUILD_DIR", "The build directory to use during an image build"),
    ConfigField("imageBuild.dockerfile", "PORTAGE_IMAGE_BUILD_DOCKERFILE", "The Dockerfile/Containerfile to use during an image build"),
    ConfigField("imageBuild.platform", "PORTAGE_IMAGE_BUILD_PLATFORM", "The target platform for build (e.g., linux/amd64)"),
    ConfigField("imageBuild.target", "PORTAGE_IMAGE_BUILD_TARGET", "The target build stage to build"),
    ConfigField("imageBuild.cacheTo", "PORTAGE_IMAGE_BUILD_CACHE_TO", "Cache export destinations"),
    ConfigField("imageBuild.cacheFrom", "PORTAGE_IMAGE_BUILD_CACHE_FROM", "External cache sources"),
    ConfigField(
        "imageBuild.squashLayers",
        "PORTAGE_IMAGE_BUILD_SQUASH_LAYERS",
        "Squash image layers - only supported with the podman CLI",
        "bool",
    ),
    ConfigField("imageBuild.args", "PORTAGE_IMAGE_BUILD_ARGS", "Comma separated list of build time variables", "list"),
    ConfigField("imageScan.enabled", "PORTAGE_IMAGE_SCAN_ENABLED", "Enable/Disable the image scan pipeline", "bool"),
    ConfigField("imageScan.syftFilename", "PORTAGE_IMAGE_SCAN_SYFT_FILENAME", "The filename for the syft SBOM report"),
    ConfigField(
        "imageScan.grypeConfigFilename",
        "PORTAGE_IMAGE_SCAN_GRYPE_CONFIG_FILENAME",
        "The config filename for the grype vulnerability scan",
    ),
    ConfigField("imageScan.grypeFilename", "PORTAGE_IMAGE_SCAN_GRYPE_FILENAME", "The filename for the grype vulnerability report"),
    ConfigField("imageScan.clamavFilename", "PORTAGE_IMAGE_SCAN_CLAMAV_FILENAME", "The filename for the clamscan virus report"),
    ConfigField(
        "imageScan.freshclamDisabled",
        "PORTAGE_IMAGE_SCAN_FRESHCLAM_DISABLED",
        "Skip the freshclam virus definition update",
        "bool",
    ),
    ConfigField("codeScan.enabled", "PORTAGE_CODE_SCAN_ENABLED", "Enable/Disable the code scan pipeline", "bool"),
    ConfigField("codeScan.gitleaksFilename", "PORTAGE_CODE_SCAN_GITLEAKS_FILENAME", "The filename for the gitleaks secret report"),
    ConfigField("codeScan.gitleaksSrcDir", "PORTAGE_CODE_SCAN_GITLEAKS_SRC_DIR", "The target directory for the gitleaks scan"),
    ConfigField("codeScan.semgrepFilename", "PORTAGE_CODE_SCAN_SEMGREP_FILENAME", "The filename for the semgrep SAST report"),
    ConfigField("codeScan.semgrepRules", "PORTAGE_CODE_SCAN_SEMGREP_RULES", "Semgrep ruleset manual override"),
    ConfigField(
        "codeScan.semgrepExperimental",
        "PORTAGE_CODE_SCAN_SEMGREP_EXPERIMENTAL",
        "Enable the use of the semgrep experimental CLI",
        "bool",
    ),
    ConfigField("codeScan.semgrepSrcDir", "PORTAGE_CODE_SCAN_SEMGREP_SRC_DIR", "The target directory for the semgrep scan"),
    ConfigField("codeScan.snykFilename", "PORTAGE_CODE_SCAN_SNYK_FILENAME", "The filename for the snyk code SARIF report"),
    ConfigField("codeScan.snykSrcDir", "PORTAGE_CODE_SCAN_SNYK_SRC_DIR", "The target directory for the snyk code scan"),
    ConfigField("codeScan.coverageFile", "PORTAGE_CODE_SCAN_COVERAGE_FILE", "An externally generated code coverage file to validate"),
    ConfigField("imagePublish.enabled", "PORTAGE_IMAGE_PUBLISH_ENABLED", "Enable/Disable the image publish pipeline", "bool"),
    ConfigField(
        "imagePublish.bundleTag",
        "PORTAGE_IMAGE_PUBLISH_BUNDLE_TAG",
        "The full image tag for the target gatecheck bundle image blob",
    ),
    ConfigField("deploy.enabled", "PORTAGE_DEPLOY_ENABLED", "Enable/Disable the deploy pipeline", "bool"),
    ConfigField(
        "deploy.gatecheckConfigFilename",
        "PORTAGE_DEPLOY_GATECHECK_CONFIG_FILENAME",
        "The filename for the gatecheck config",
    ),
)


def default_value(key: str) -> Any:
    """Look up the model default for a dotted camelCase key."""
    value: Any = PipelineConfig().to_document()
    for part in key.split("."):
        value = value[part]
    return value


def _parse_env(field: ConfigField, raw: str) -> Any:
    if field.kind == "bool":
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ConfigurationError(
            f"invalid boolean for {field.env}: '{raw}'",
            context={"env": field.env, "value": raw},
        )
    if field.kind == "list":
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def _set_path(document: dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    node = document
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def find_config_file(base_dir: Path | str = ".") -> Optional[Path]:
    for name in DEFAULT_CONFIG_NAMES:
        candidate = Path(base_dir) / name
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML (or JSON) pipeline config file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"cannot read config file '{path}': {e}", context={"path": str(path)}) from e
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid config file '{path}': {e}", context={"path": str(path)}) from e
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"invalid config file '{path}': top level must be a mapping", context={"path": str(path)})
    return document


def load_pipeline_config(
    config_file: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    base_dir: Path | str = ".",
) -> PipelineConfig:
    """
    Build a fully populated pipeline configuration.

    Args:
        config_file: Explicit config file; when None, ``.portage.yml`` and
            friends are looked up in ``base_dir``
        overrides: Dotted camelCase keys to values; None values are ignored
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigurationError: Unreadable/invalid file or invalid values
    """
    environ = os.environ if environ is None else environ

    path = Path(config_file) if config_file else find_config_file(base_dir)
    document: dict[str, Any] = {}
    if path is not None:
        logger.debug("config_file_used", path=str(path))
        document = read_config_file(path)
    else:
        logger.debug("config_file_not_found", base_dir=str(base_dir))

    for field in CONFIG_FIELDS:
        raw = environ.get(field.env)
        if raw is None:
            continue
        _set_path(document, field.key, _parse_env(field, raw))

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        _set_path(document, key, value)

    try:
        return PipelineConfig.model_validate(document)
    except ValidationError as e:
        raise ConfigurationError(f"invalid pipeline configuration: {e}") from e
