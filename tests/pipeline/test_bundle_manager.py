"""
Tests for BundleManager create/append logic.
"""

import json
from pathlib import Path

from portage_cd.pipeline.application.bundle_manager import CONFIG_ARTIFACT_NAME, BundleManager
from portage_cd.pipeline.application.stages.base import StageContext
from portage_cd.pipeline.domain.models import PipelineConfig
from portage_cd.shared.infrastructure.execution import CancellationSignal


class TestAddFile:
    """Test create vs append selection."""

    def test_absent_bundle_is_created(self, executor, tmp_path):
        bundle = tmp_path / "bundle.tar.gz"
        report = tmp_path / "report.json"

        BundleManager(executor).add_file(False, bundle, report)

        assert executor.commands == [["gatecheck", "bundle", "create", str(bundle), str(report)]]

    def test_present_bundle_is_appended(self, executor, tmp_path):
        bundle = tmp_path / "bundle.tar.gz"
        bundle.write_bytes(b"existing")
        report = tmp_path / "report.json"

        BundleManager(executor).add_file(False, bundle, report)

        assert executor.commands == [["gatecheck", "bundle", "add", str(bundle), str(report)]]

    def test_presence_checked_on_every_call(self, make_executor, tmp_path):
        bundle = tmp_path / "bundle.tar.gz"

        def create_bundle(argv, options):
            if argv[2] == "create":
                Path(argv[3]).write_bytes(b"bundle")

        executor = make_executor(on_execute=create_bundle)
        manager = BundleManager(executor)

        manager.add_file(False, bundle, tmp_path / "one.json")
        manager.add_file(False, bundle, tmp_path / "two.json")

        assert [argv[2] for argv in executor.commands] == ["create", "add"]

    def test_dry_run_is_forwarded(self, executor, tmp_path):
        BundleManager(executor).add_file(True, tmp_path / "bundle.tar.gz", tmp_path / "report.json")

        _, options = executor.calls[0]
        assert options.dry_run is True

    def test_cancel_signal_is_forwarded(self, executor, tmp_path):
        cancel = CancellationSignal()

        BundleManager(executor, cancel=cancel).add_file(False, tmp_path / "bundle.tar.gz", tmp_path / "report.json")

        _, options = executor.calls[0]
        assert options.cancel is cancel

    def test_stage_context_shares_its_cancel_signal(self, executor):
        cancel = CancellationSignal()

        context = StageContext(executor=executor, cancel=cancel)

        assert context.bundle_manager.cancel is cancel


class TestInitBundle:
    """Test recording the pipeline configuration in the bundle."""

    def test_config_encoded_as_json(self, make_executor, tmp_path):
        captured = {}

        def capture(argv, options):
            config_file = Path(argv[-1])
            captured["name"] = config_file.name
            captured["document"] = json.loads(config_file.read_text())

        executor = make_executor(on_execute=capture)
        config = PipelineConfig(artifact_dir=str(tmp_path), image_tag="registry.local/app:1.2.3")

        BundleManager(executor).init_bundle(config, dry_run=False)

        assert captured["name"] == CONFIG_ARTIFACT_NAME
        assert captured["document"]["imageTag"] == "registry.local/app:1.2.3"
        assert captured["document"]["codeScan"]["semgrepRules"] == "p/default"
        assert executor.commands[0][:4] == ["gatecheck", "bundle", "create", str(config.bundle_path)]

    def test_temporary_config_removed(self, executor, tmp_path):
        config = PipelineConfig(artifact_dir=str(tmp_path))

        BundleManager(executor).init_bundle(config, dry_run=True)

        assert not Path(executor.commands[0][-1]).exists()
