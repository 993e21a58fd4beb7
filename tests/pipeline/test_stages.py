"""
Tests for the image and code-scan pipeline stages.
"""

from pathlib import Path

import pytest

from portage_cd.pipeline.application.stages import (
    CodeScanStage,
    DeployStage,
    ImageBuildStage,
    ImagePublishStage,
    ImageScanStage,
)
from portage_cd.pipeline.domain import enums as enums_module
from portage_cd.pipeline.domain.enums import DockerAlias
from portage_cd.pipeline.domain.models import PipelineConfig
from portage_cd.shared.domain.exceptions import AggregateError, CommandExitError, PreconditionError, StageError

ALL_STAGES = [CodeScanStage, ImageBuildStage, ImageScanStage, ImagePublishStage, DeployStage]


def disabled_config(tmp_path):
    return PipelineConfig.model_validate(
        {
            "artifactDir": str(tmp_path / "artifacts"),
            "imageBuild": {"enabled": False},
            "imageScan": {"enabled": False},
            "codeScan": {"enabled": False},
            "imagePublish": {"enabled": False},
            "deploy": {"enabled": False},
        }
    )


class TestStageBase:
    """Test behaviour shared by every stage."""

    @pytest.mark.parametrize("stage_class", ALL_STAGES)
    def test_disabled_stage_has_no_side_effects(self, stage_class, make_context, executor, tmp_path):
        context = make_context()
        config = disabled_config(tmp_path)

        stage_class(context).with_config(config).run()

        assert executor.calls == []
        assert not config.artifact_path.exists()
        assert context.stdout.getvalue() == ""

    @pytest.mark.parametrize("stage_class", ALL_STAGES)
    def test_missing_config_is_precondition_error(self, stage_class, make_context):
        with pytest.raises(PreconditionError):
            stage_class(make_context()).run()

    def test_failure_wrapped_with_stage_name(self, make_context, make_executor, pipeline_config):
        executor = make_executor(failures={"docker build": 125})
        stage = ImageBuildStage(make_context(executor=executor)).with_config(pipeline_config)

        with pytest.raises(StageError) as exc_info:
            stage.run()

        assert exc_info.value.stage == "image-build"
        assert str(exc_info.value).startswith("image-build: image build failed")
        assert isinstance(exc_info.value.__cause__, CommandExitError)
        assert exc_info.value.__cause__.exit_code == 125

    @pytest.mark.parametrize(
        "value,expected",
        [("docker", DockerAlias.DOCKER), ("podman", DockerAlias.PODMAN), ("PODMAN", DockerAlias.PODMAN), ("", DockerAlias.DOCKER), ("nerdctl", DockerAlias.DOCKER)],
    )
    def test_alias_mapping(self, value, expected, make_context):
        assert ImageBuildStage(make_context(docker_alias=value)).alias is expected

    @pytest.mark.parametrize("value,warned", [("nerdctl", True), ("podman", False), ("docker", False), ("", False)])
    def test_unknown_alias_logs_warning(self, value, warned, monkeypatch):
        events = []

        class RecordingLogger:
            def warning(self, event, **fields):
                events.append((event, fields))

        monkeypatch.setattr(enums_module, "logger", RecordingLogger())

        DockerAlias.parse(value)

        if warned:
            assert events == [("docker_alias_unknown", {"value": value, "fallback": "docker"})]
        else:
            assert events == []


class TestImageBuildStage:
    """Test the image build command."""

    def test_build_command(self, make_context, executor, tmp_path):
        config = PipelineConfig.model_validate(
            {
                "imageTag": "registry.local/app:1.0",
                "artifactDir": str(tmp_path),
                "imageBuild": {
                    "buildDir": "app",
                    "dockerfile": "Containerfile",
                    "platform": "linux/amd64",
                    "target": "runtime",
                    "cacheTo": "type=inline",
                    "cacheFrom": "registry.local/app:cache",
                    "args": ["A=1", "B=2"],
                },
            }
        )

        ImageBuildStage(make_context()).with_config(config).run()

        assert executor.commands == [
            [
                "docker", "build",
                "--file", "Containerfile",
                "--tag", "registry.local/app:1.0",
                "--build-arg", "A=1",
                "--build-arg", "B=2",
                "--platform", "linux/amd64",
                "--target", "runtime",
                "--cache-to", "type=inline",
                "--cache-from", "registry.local/app:cache",
                "app",
            ]
        ]

    @pytest.mark.parametrize("alias,squashed", [("podman", True), ("docker", False)])
    def test_squash_layers_podman_only(self, alias, squashed, make_context, executor, tmp_path):
        config = PipelineConfig.model_validate({"artifactDir": str(tmp_path), "imageBuild": {"squashLayers": True}})

        ImageBuildStage(make_context(docker_alias=alias)).with_config(config).run()

        assert executor.commands[0][0] == alias
        assert ("--squash-all" in executor.commands[0]) is squashed

    def test_dry_run_forwarded(self, make_context, executor, pipeline_config):
        ImageBuildStage(make_context(dry_run=True)).with_config(pipeline_config).run()

        _, options = executor.calls[0]
        assert options.dry_run is True


class TestImageScanStage:
    """Test the image scan sequence."""

    def test_scan_sequence(self, make_context, executor, pipeline_config):
        ImageScanStage(make_context()).with_config(pipeline_config).run()

        artifact_dir = pipeline_config.artifact_path
        programs = [argv[0] if argv[0] != "gatecheck" else " ".join(argv[:3]) for argv in executor.commands]
        assert programs == [
            "syft",
            "gatecheck bundle create",
            "grype",
            f"gatecheck list {artifact_dir / 'grype-vulnerability-report-full.json'}",
            "gatecheck bundle create",
            "docker",
            "freshclam",
            "clamscan",
            "gatecheck bundle create",
        ]
        assert (artifact_dir / "syft-sbom-report.json").exists()
        assert executor.commands[5][:2] == ["docker", "save"]

    def test_freshclam_can_be_disabled(self, make_context, executor, tmp_path):
        config = PipelineConfig.model_validate(
            {"artifactDir": str(tmp_path), "imageScan": {"freshclamDisabled": True, "grypeConfigFilename": "grype.yml"}}
        )

        ImageScanStage(make_context()).with_config(config).run()

        assert "freshclam" not in [argv[0] for argv in executor.commands]
        grype = next(argv for argv in executor.commands if argv[0] == "grype")
        assert "grype.yml" in grype

    def test_dry_run_writes_no_reports(self, make_context, pipeline_config):
        ImageScanStage(make_context(dry_run=True)).with_config(pipeline_config).run()

        assert list(pipeline_config.artifact_path.iterdir()) == []


class TestImagePublishStage:
    """Test image and bundle publishing."""

    def test_push_only_without_bundle_tag(self, make_context, executor, pipeline_config):
        ImagePublishStage(make_context(docker_alias="podman")).with_config(pipeline_config).run()

        assert executor.commands == [["podman", "push", "my-app:latest"]]

    def test_bundle_pushed_from_bundle_directory(self, make_context, executor, tmp_path):
        config = PipelineConfig.model_validate(
            {"artifactDir": str(tmp_path), "imagePublish": {"bundleTag": "registry.local/app-bundle:1"}}
        )

        ImagePublishStage(make_context()).with_config(config).run()

        argv, options = executor.calls[1]
        assert argv[:3] == ["oras", "push", "registry.local/app-bundle:1"]
        assert argv[3].startswith("gatecheck-bundle.tar.gz:")
        assert Path(options.cwd) == config.bundle_path.parent


class TestCodeScanStage:
    """Test the code scan stage."""

    @staticmethod
    def write_reports(argv, options):
        if argv[0] == "gitleaks":
            Path(argv[argv.index("--report-path") + 1]).write_text("[]")
        if argv[0] == "semgrep":
            options.stdout.write(b"{}")

    def test_reports_added_to_bundle(self, make_context, make_executor, pipeline_config):
        executor = make_executor(on_execute=self.write_reports)
        context = make_context(executor=executor)

        CodeScanStage(context).with_config(pipeline_config).run()

        artifact_dir = pipeline_config.artifact_path
        added = [argv[-1] for argv in executor.commands if argv[:2] == ["gatecheck", "bundle"]]
        assert added == [
            str(artifact_dir / "gitleaks-secrets-report.json"),
            str(artifact_dir / "semgrep-sast-report.json"),
        ]

    def test_snyk_only_runs_when_configured(self, make_context, executor, tmp_path):
        config = PipelineConfig.model_validate({"artifactDir": str(tmp_path), "codeScan": {"snykFilename": "snyk.sarif"}})

        CodeScanStage(make_context()).with_config(config).run()

        programs = [argv[0] for argv in executor.commands if argv[0] != "gatecheck"]
        assert programs == ["gitleaks", "semgrep", "snyk"]

    def test_snyk_skipped_by_default(self, make_context, executor, pipeline_config):
        CodeScanStage(make_context()).with_config(pipeline_config).run()

        assert "snyk" not in [argv[0] for argv in executor.commands]

    def test_engine_failure_keeps_other_reports(self, make_context, make_executor, pipeline_config):
        executor = make_executor(failures={"gitleaks": 1}, on_execute=self.write_reports)
        context = make_context(executor=executor)

        with pytest.raises(StageError) as exc_info:
            CodeScanStage(context).with_config(pipeline_config).run()

        assert exc_info.value.stage == "code-scan"
        assert "1 engine(s) failed" in str(exc_info.value)
        added = [argv[-1] for argv in executor.commands if argv[:2] == ["gatecheck", "bundle"]]
        assert added == [str(pipeline_config.artifact_path / "semgrep-sast-report.json")]

    def test_missing_coverage_file_fails(self, make_context, make_executor, tmp_path):
        executor = make_executor(on_execute=self.write_reports)
        config = PipelineConfig.model_validate(
            {"artifactDir": str(tmp_path / "artifacts"), "codeScan": {"coverageFile": str(tmp_path / "missing.xml")}}
        )

        with pytest.raises(StageError, match="coverage file"):
            CodeScanStage(make_context(executor=executor)).with_config(config).run()

    def test_coverage_file_added(self, make_context, make_executor, tmp_path):
        coverage = tmp_path / "coverage.xml"
        coverage.write_text("<coverage/>")
        executor = make_executor(on_execute=self.write_reports)
        config = PipelineConfig.model_validate(
            {"artifactDir": str(tmp_path / "artifacts"), "codeScan": {"coverageFile": str(coverage)}}
        )

        CodeScanStage(make_context(executor=executor)).with_config(config).run()

        assert executor.commands[-1][-1] == str(coverage)

    def test_engine_failure_and_missing_coverage_both_reported(self, make_context, make_executor, tmp_path):
        executor = make_executor(failures={"gitleaks": 1}, on_execute=self.write_reports)
        config = PipelineConfig.model_validate(
            {"artifactDir": str(tmp_path / "artifacts"), "codeScan": {"coverageFile": str(tmp_path / "missing.xml")}}
        )

        with pytest.raises(StageError) as exc_info:
            CodeScanStage(make_context(executor=executor)).with_config(config).run()

        message = str(exc_info.value)
        assert "[shell:gitleaks]" in message
        assert "coverage file" in message
        cause = exc_info.value.__cause__
        assert isinstance(cause, AggregateError)
        assert len(cause) == 2
        assert isinstance(cause.errors[0], CommandExitError)
        assert isinstance(cause.errors[1], PreconditionError)

    def test_bundling_failure_does_not_hide_engine_failure(self, make_context, make_executor, pipeline_config):
        executor = make_executor(failures={"gitleaks": 1, "gatecheck bundle": 2}, on_execute=self.write_reports)

        with pytest.raises(StageError) as exc_info:
            CodeScanStage(make_context(executor=executor)).with_config(pipeline_config).run()

        assert "1 engine(s) failed, 1 other error(s)" in str(exc_info.value)
        cause = exc_info.value.__cause__
        assert [error.command_name for error in cause.errors] == ["gitleaks", "gatecheck"]
