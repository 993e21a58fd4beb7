"""
Tests for gatecheck validation config resolution.
"""

import pytest
import yaml

from portage_cd.pipeline.application.validation_config import (
    DotfileResolver,
    EmbeddedDefaultResolver,
    ExplicitFileResolver,
    ResolvedConfig,
    default_resolvers,
    load_default_config_text,
    render_config,
    resolve_config,
)
from portage_cd.shared.domain.exceptions import ConfigurationError, PreconditionError


class TestResolvers:
    """Test each resolver in isolation."""

    def test_explicit_unset_is_skipped(self):
        assert ExplicitFileResolver("").resolve() is None

    def test_explicit_missing_is_fatal(self, tmp_path):
        with pytest.raises(PreconditionError):
            ExplicitFileResolver(str(tmp_path / "nope.yml")).resolve()

    def test_dotfile_absent_is_not_an_error(self, tmp_path):
        assert DotfileResolver(tmp_path).resolve() is None

    def test_dotfile_first_candidate_wins(self, tmp_path):
        (tmp_path / ".gatecheck.yml").write_text("version: yml\n")
        (tmp_path / ".gatecheck.yaml").write_text("version: yaml\n")

        resolved = DotfileResolver(tmp_path).resolve()

        assert resolved.path == tmp_path / ".gatecheck.yml"
        assert resolved.source == "dotfile"

    def test_dotfile_second_candidate_used(self, tmp_path):
        (tmp_path / ".gatecheck.yaml").write_text("version: yaml\n")

        assert DotfileResolver(tmp_path).resolve().path == tmp_path / ".gatecheck.yaml"

    def test_empty_dotfile_counts_as_absent(self, tmp_path):
        (tmp_path / ".gatecheck.yml").write_text("  \n")

        assert DotfileResolver(tmp_path).resolve() is None

    def test_unreadable_dotfile_is_fatal(self, tmp_path):
        # a directory exists under the name but cannot be read as a file
        (tmp_path / ".gatecheck.yml").mkdir()

        with pytest.raises(PreconditionError):
            DotfileResolver(tmp_path).resolve()

    def test_embedded_default_is_not_an_override(self):
        resolved = EmbeddedDefaultResolver().resolve()

        assert resolved.is_override is False
        assert resolved.text == load_default_config_text()


class TestResolutionOrder:
    """Test the ordered resolver chain."""

    def test_falls_through_to_default(self, tmp_path):
        resolved = resolve_config(default_resolvers("", tmp_path))

        assert resolved.source == "default"

    def test_empty_chain_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            resolve_config([])


class TestRenderConfig:
    """Test rendering of the persisted document."""

    def test_override_merged(self):
        resolved = ResolvedConfig(source="dotfile", text="metadata:\n  tags: [release]\ncoverage:\n  lineThreshold: 80\n")

        document = yaml.safe_load(render_config(resolved))
        default = yaml.safe_load(load_default_config_text())

        assert document["metadata"]["tags"] == ["release"]
        assert document["coverage"]["lineThreshold"] == 80
        assert document["grype"] == default["grype"]

    def test_invalid_override_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            render_config(ResolvedConfig(source="dotfile", text="- just\n- a list\n"))
