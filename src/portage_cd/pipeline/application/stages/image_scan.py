"""
Container image scan stage.

1. syft generates an SBOM of the image
2. grype scans the SBOM for vulnerabilities
3. the image is exported to a tar archive and scanned by clamscan

Every report is added to the artifact bundle.
"""

import tempfile
from pathlib import Path

from portage_cd.pipeline.application.stages.base import PipelineStage
from portage_cd.pipeline.domain.enums import StageName
from portage_cd.shell import docker, gatecheck, scanners


class ImageScanStage(PipelineStage):
    name = StageName.IMAGE_SCAN
    failure_message = "image scan failed"

    def is_enabled(self) -> bool:
        return self.config.image_scan.enabled

    def _run(self) -> None:
        artifact_dir = self._make_artifact_dir()
        scan = self.config.image_scan

        sbom_report = artifact_dir / scan.syft_filename
        grype_report = artifact_dir / scan.grype_filename
        clamav_report = artifact_dir / scan.clamav_filename

        self._sbom(sbom_report)
        self._vulnerabilities(sbom_report, grype_report)
        self._antivirus(clamav_report)

    def _sbom(self, report: Path) -> None:
        with self._open_report(report) as report_file:
            self.executor.execute(
                scanners.syft_scan(self.config.image_tag),
                self.context.exec_options(stdout=report_file),
            )
        self._add_to_bundle(report)

    def _vulnerabilities(self, sbom: Path, report: Path) -> None:
        grype_config = self.config.image_scan.grype_config_filename
        config_path = Path(grype_config) if grype_config else None

        with self._open_report(report) as report_file:
            self.executor.execute(
                scanners.grype_sbom(sbom, config_path),
                self.context.exec_options(stdout=report_file),
            )

        self.executor.execute(gatecheck.list_report(report), self.context.exec_options())
        self._add_to_bundle(report)

    def _antivirus(self, report: Path) -> None:
        with tempfile.TemporaryDirectory(prefix="portage-image-") as tmp_dir:
            image_tar = Path(tmp_dir) / "image.tar"
            self.executor.execute(
                docker.save(self.alias, self.config.image_tag, image_tar),
                self.context.exec_options(stdout=self.context.stderr),
            )

            if self.config.image_scan.freshclam_disabled:
                self.logger.info("freshclam_skipped")
            else:
                self.executor.execute(
                    scanners.freshclam(),
                    self.context.exec_options(stdout=self.context.stderr),
                )

            with self._open_report(report) as report_file:
                self.executor.execute(
                    scanners.clamscan(image_tar),
                    self.context.exec_options(stdout=report_file),
                )

        self._add_to_bundle(report)
