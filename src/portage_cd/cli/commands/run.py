"""
Portage run commands.

Run a single pipeline stage or a composite sequence of stages.
"""

import signal
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import typer
from rich.console import Console

from portage_cd.pipeline.application.runner import PipelineRunner
from portage_cd.pipeline.application.stages import StageContext
from portage_cd.pipeline.domain.enums import StageName
from portage_cd.pipeline.infrastructure.config_loader import load_pipeline_config
from portage_cd.shared.domain.exceptions import AggregateError, PortageError
from portage_cd.shared.infrastructure.execution import CancellationSignal
from portage_cd.shared.infrastructure.logging import get_logger

app = typer.Typer(no_args_is_help=True)
console = Console(stderr=True)
logger = get_logger(__name__)

# Shared by every run command
DRY_RUN = typer.Option(False, "--dry-run", "-n", help="Log commands but don't execute them")
CONFIG = typer.Option(None, "--config", "-f", help="Portage config file (yaml or json)")
CLI_INTERFACE = typer.Option("docker", "--cli-interface", "-i", help="[docker|podman] CLI to use for images")
ARTIFACT_DIR = typer.Option(None, "--artifact-dir", help="Target output directory for security report artifacts")
TAG = typer.Option(None, "--tag", help="Target image tag (ex. alpine:latest)")

# image-build
BUILD_DIR = typer.Option(None, "--build-dir", help="Image build context directory")
DOCKERFILE = typer.Option(None, "--dockerfile", help="Custom Dockerfile/Containerfile")
BUILD_ARG = typer.Option(None, "--build-arg", help="Build argument passed to the build command (repeatable)")
PLATFORM = typer.Option(None, "--platform", help="Target build platform")
TARGET = typer.Option(None, "--target", help="Target build stage")
CACHE_TO = typer.Option(None, "--cache-to", help="Cache export destination")
CACHE_FROM = typer.Option(None, "--cache-from", help="External cache source")
SQUASH_LAYERS = typer.Option(None, "--squash-layers/--no-squash-layers", help="Squash all layers into one (podman only)")

# image-scan
SBOM_FILENAME = typer.Option(None, "--sbom-filename", help="Output filename for the syft SBOM")
GRYPE_FILENAME = typer.Option(None, "--grype-filename", help="Output filename for the grype vulnerability report")
CLAMAV_FILENAME = typer.Option(None, "--clamav-filename", help="Output filename for the ClamAV scan report")

# image-publish
BUNDLE_TAG = typer.Option(None, "--bundle-tag", help="Image tag for publishing the artifact bundle")

# code-scan
GITLEAKS_FILENAME = typer.Option(None, "--gitleaks-filename", help="Output filename for the gitleaks report")
SEMGREP_FILENAME = typer.Option(None, "--semgrep-filename", help="Output filename for the semgrep report")
SEMGREP_RULES = typer.Option(None, "--semgrep-rules", help="Rules semgrep uses for the scan")
SEMGREP_EXPERIMENTAL = typer.Option(
    None, "--semgrep-experimental/--no-semgrep-experimental", help="Use the semgrep experimental CLI"
)
COVERAGE_FILE = typer.Option(None, "--coverage-file", help="Externally generated code coverage file to validate")

# deploy
GATECHECK_CONFIG = typer.Option(None, "--gatecheck-config", help="Gatecheck configuration file")


@contextmanager
def cancel_on_signal(cancel: CancellationSignal) -> Iterator[None]:
    """Fire ``cancel`` on SIGINT/SIGTERM while the block runs."""

    def handler(signum: int, frame: Any) -> None:
        logger.warning("signal_received", signal=signal.Signals(signum).name)
        cancel.cancel()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[signum] = signal.signal(signum, handler)
        except ValueError:
            # not the main thread
            continue
    try:
        yield
    finally:
        for signum, old_handler in previous.items():
            signal.signal(signum, old_handler)


def image_build_overrides(
    build_dir: Optional[str] = None,
    dockerfile: Optional[str] = None,
    build_arg: Optional[List[str]] = None,
    platform: Optional[str] = None,
    target: Optional[str] = None,
    cache_to: Optional[str] = None,
    cache_from: Optional[str] = None,
    squash_layers: Optional[bool] = None,
) -> Dict[str, Any]:
    return {
        "imageBuild.buildDir": build_dir,
        "imageBuild.dockerfile": dockerfile,
        "imageBuild.args": list(build_arg) if build_arg else None,
        "imageBuild.platform": platform,
        "imageBuild.target": target,
        "imageBuild.cacheTo": cache_to,
        "imageBuild.cacheFrom": cache_from,
        "imageBuild.squashLayers": squash_layers,
    }


def image_scan_overrides(
    sbom_filename: Optional[str] = None,
    grype_filename: Optional[str] = None,
    clamav_filename: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "imageScan.syftFilename": sbom_filename,
        "imageScan.grypeFilename": grype_filename,
        "imageScan.clamavFilename": clamav_filename,
    }


def code_scan_overrides(
    gitleaks_filename: Optional[str] = None,
    semgrep_filename: Optional[str] = None,
    semgrep_rules: Optional[str] = None,
    semgrep_experimental: Optional[bool] = None,
    coverage_file: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "codeScan.gitleaksFilename": gitleaks_filename,
        "codeScan.semgrepFilename": semgrep_filename,
        "codeScan.semgrepRules": semgrep_rules,
        "codeScan.semgrepExperimental": semgrep_experimental,
        "codeScan.coverageFile": coverage_file,
    }


def execute_pipeline(
    target: str,
    dry_run: bool,
    config_file: Optional[Path],
    cli_interface: str,
    artifact_dir: Optional[str],
    tag: Optional[str],
    overrides: Dict[str, Any],
) -> None:
    """
    Load the configuration and run ``target`` (a stage or a sequence name).

    Exits with code 1 on any pipeline failure.
    """
    start_time = time.perf_counter()
    overrides = {"artifactDir": artifact_dir, "imageTag": tag, **overrides}

    try:
        config = load_pipeline_config(config_file, overrides=overrides)
    except PortageError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=1)

    cancel = CancellationSignal()
    context = StageContext(
        stdout=sys.stdout,
        stderr=sys.stderr,
        dry_run=dry_run,
        docker_alias=cli_interface,
        cancel=cancel,
    )
    runner = PipelineRunner(context, config)

    try:
        with cancel_on_signal(cancel):
            if target in (stage.value for stage in StageName):
                runner.run_stage(StageName(target))
            else:
                runner.run_sequence(target)
    except AggregateError as e:
        for error in e.errors:
            console.print(f"[red]Error:[/red] {error}")
        raise typer.Exit(code=1)
    except PortageError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        logger.info("pipeline_finished", target=target, elapsed=round(time.perf_counter() - start_time, 3))


@app.command("image-build")
def image_build(
    dry_run: bool = DRY_RUN,
    config_file: Optional[Path] = CONFIG,
    cli_interface: str = CLI_INTERFACE,
    artifact_dir: Optional[str] = ARTIFACT_DIR,
    tag: Optional[str] = TAG,
    build_dir: Optional[str] = BUILD_DIR,
    dockerfile: Optional[str] = DOCKERFILE,
    build_arg: Optional[List[str]] = BUILD_ARG,
    platform: Optional[str] = PLATFORM,
    target: Optional[str] = TARGET,
    cache_to: Optional[str] = CACHE_TO,
    cache_from: Optional[str] = CACHE_FROM,
    squash_layers: Optional[bool] = SQUASH_LAYERS,
):
    """Build a container image"""
    overrides = image_build_overrides(
        build_dir, dockerfile, build_arg, platform, target, cache_to, cache_from, squash_layers
    )
    execute_pipeline(StageName.IMAGE_BUILD.value, dry_run, config_file, cli_interface, artifact_dir, tag, overrides)


@app.command("image-scan")
def image_scan(
    dry_run: bool = DRY_RUN,
    config_file: Optional[Path] = CONFIG,
    cli_interface: str = CLI_INTERFACE,
    artifact_dir: Optional[str] = ARTIFACT_DIR,
    tag: Optional[str] = TAG,
    sbom_filename: Optional[str] = SBOM_FILENAME,
    grype_filename: Optional[str] = GRYPE_FILENAME,
    clamav_filename: Optional[str] = CLAMAV_FILENAME,
):
    """Run security scans on a container image"""
    overrides = image_scan_overrides(sbom_filename, grype_filename, clamav_filename)
    execute_pipeline(StageName.IMAGE_SCAN.value, dry_run, config_file, cli_interface, artifact_dir, tag, overrides)


@app.command("image-publish")
def image_publish(
    dry_run: bool = DRY_RUN,
    config_file: Optional[Path] = CONFIG,
    cli_interface: str = CLI_INTERFACE,
    artifact_dir: Optional[str] = ARTIFACT_DIR,
    tag: Optional[str] = TAG,
    bundle_tag: Optional[str] = BUNDLE_TAG,
):
    """Push the image and, optionally, the artifact bundle"""
    overrides = {"imagePublish.bundleTag": bundle_tag}
    execute_pipeline(StageName.IMAGE_PUBLISH.value, dry_run, config_file, cli_interface, artifact_dir, tag, overrides)


@app.command("code-scan")
def code_scan(
    dry_run: bool = DRY_RUN,
    config_file: Optional[Path] = CONFIG,
    cli_interface: str = CLI_INTERFACE,
    artifact_dir: Optional[str] = ARTIFACT_DIR,
    tag: Optional[str] = TAG,
    gitleaks_filename: Optional[str] = GITLEAKS_FILENAME,
    semgrep_filename: Optional[str] = SEMGREP_FILENAME,
    semgrep_rules: Optional[str] = SEMGREP_RULES,
    semgrep_experimental: Optional[bool] = SEMGREP_EXPERIMENTAL,
    coverage_file: Optional[str] = COVERAGE_FILE,
):
    """Run source code security scans"""
    overrides = code_scan_overrides(
        gitleaks_filename, semgrep_filename, semgrep_rules, semgrep_experimental, coverage_file
    )
    execute_pipeline(StageName.CODE_SCAN.value, dry_run, config_file, cli_interface, artifact_dir, tag, overrides)


@app.command("deploy")
def deploy(
    dry_run: bool = DRY_RUN,
    config_file: Optional[Path] = CONFIG,
    cli_interface: str = CLI_INTERFACE,
    artifact_dir: Optional[str] = ARTIFACT_DIR,
    tag: Optional[str] = TAG,
    gatecheck_config: Optional[str] = GATECHECK_CONFIG,
):
    """Validate the artifact bundle and notify success webhooks"""
    # asking for deploy explicitly always runs it
    overrides = {"deploy.enabled": True, "deploy.gatecheckConfigFilename": gatecheck_config}
    execute_pipeline(StageName.DEPLOY.value, dry_run, config_file, cli_interface, artifact_dir, tag, overrides)


@app.command("image-delivery")
def image_delivery(
    dry_run: bool = DRY_RUN,
    config_file: Optional[Path] = CONFIG,
    cli_interface: str = CLI_INTERFACE,
    artifact_dir: Optional[str] = ARTIFACT_DIR,
    tag: Optional[str] = TAG,
    build_dir: Optional[str] = BUILD_DIR,
    dockerfile: Optional[str] = DOCKERFILE,
    build_arg: Optional[List[str]] = BUILD_ARG,
    platform: Optional[str] = PLATFORM,
    target: Optional[str] = TARGET,
    cache_to: Optional[str] = CACHE_TO,
    cache_from: Optional[str] = CACHE_FROM,
    squash_layers: Optional[bool] = SQUASH_LAYERS,
    sbom_filename: Optional[str] = SBOM_FILENAME,
    grype_filename: Optional[str] = GRYPE_FILENAME,
    clamav_filename: Optional[str] = CLAMAV_FILENAME,
    bundle_tag: Optional[str] = BUNDLE_TAG,
):
    """Build, scan and publish a container image"""
    overrides = {
        **image_build_overrides(
            build_dir, dockerfile, build_arg, platform, target, cache_to, cache_from, squash_layers
        ),
        **image_scan_overrides(sbom_filename, grype_filename, clamav_filename),
        "imagePublish.bundleTag": bundle_tag,
    }
    execute_pipeline("image-delivery", dry_run, config_file, cli_interface, artifact_dir, tag, overrides)


@app.command("all")
def run_all(
    dry_run: bool = DRY_RUN,
    config_file: Optional[Path] = CONFIG,
    cli_interface: str = CLI_INTERFACE,
    artifact_dir: Optional[str] = ARTIFACT_DIR,
    tag: Optional[str] = TAG,
    gitleaks_filename: Optional[str] = GITLEAKS_FILENAME,
    semgrep_filename: Optional[str] = SEMGREP_FILENAME,
    semgrep_rules: Optional[str] = SEMGREP_RULES,
    semgrep_experimental: Optional[bool] = SEMGREP_EXPERIMENTAL,
    coverage_file: Optional[str] = COVERAGE_FILE,
    build_dir: Optional[str] = BUILD_DIR,
    dockerfile: Optional[str] = DOCKERFILE,
    build_arg: Optional[List[str]] = BUILD_ARG,
    platform: Optional[str] = PLATFORM,
    target: Optional[str] = TARGET,
    cache_to: Optional[str] = CACHE_TO,
    cache_from: Optional[str] = CACHE_FROM,
    squash_layers: Optional[bool] = SQUASH_LAYERS,
    sbom_filename: Optional[str] = SBOM_FILENAME,
    grype_filename: Optional[str] = GRYPE_FILENAME,
    clamav_filename: Optional[str] = CLAMAV_FILENAME,
    bundle_tag: Optional[str] = BUNDLE_TAG,
    gatecheck_config: Optional[str] = GATECHECK_CONFIG,
):
    """
    Run every enabled stage

    code-scan, image-build, image-scan, image-publish, deploy
    """
    overrides = {
        **code_scan_overrides(
            gitleaks_filename, semgrep_filename, semgrep_rules, semgrep_experimental, coverage_file
        ),
        **image_build_overrides(
            build_dir, dockerfile, build_arg, platform, target, cache_to, cache_from, squash_layers
        ),
        **image_scan_overrides(sbom_filename, grype_filename, clamav_filename),
        "imagePublish.bundleTag": bundle_tag,
        "deploy.gatecheckConfigFilename": gatecheck_config,
    }
    execute_pipeline("all", dry_run, config_file, cli_interface, artifact_dir, tag, overrides)
