"""
Tests for the replace-array / override-map config merge.
"""

import copy

import pytest

from portage_cd.pipeline.application.config_merger import merge


class TestMerge:
    """Test merge semantics."""

    def test_override_map_keys_replace_base_keys(self):
        base = {"grype": {"severityLimit": {"critical": {"enabled": True, "limit": 0}}, "epssLimit": {"enabled": False}}}
        override = {"grype": {"severityLimit": {"critical": {"limit": 5}}}}

        merged = merge(base, override)

        assert merged == {
            "grype": {
                "severityLimit": {"critical": {"enabled": True, "limit": 5}},
                "epssLimit": {"enabled": False},
            }
        }

    def test_override_array_replaces_base_array(self):
        base = {"gitleaks": {"allowList": ["a", "b", "c"]}}
        override = {"gitleaks": {"allowList": ["z"]}}

        assert merge(base, override) == {"gitleaks": {"allowList": ["z"]}}

    def test_base_keys_retained(self):
        base = {"version": "1", "coverage": {"lineThreshold": 0}}

        assert merge(base, {"semgrep": {"enabled": True}}) == {
            "version": "1",
            "coverage": {"lineThreshold": 0},
            "semgrep": {"enabled": True},
        }

    def test_scalar_replaces_map_and_map_replaces_scalar(self):
        assert merge({"a": {"b": 1}}, {"a": 7}) == {"a": 7}
        assert merge({"a": 7}, {"a": {"b": 1}}) == {"a": {"b": 1}}

    @pytest.mark.parametrize(
        "base,override",
        [
            ({}, {}),
            ({"a": [1, 2]}, {"a": []}),
            ({"a": {"b": {"c": [1]}}}, {"a": {"b": {"d": 2}}}),
            ({"x": None}, {"x": {"y": [3]}}),
        ],
    )
    def test_inputs_never_mutated(self, base, override):
        base_before = copy.deepcopy(base)
        override_before = copy.deepcopy(override)

        merged = merge(base, override)

        assert base == base_before
        assert override == override_before
        for key, value in override.items():
            if not isinstance(value, dict):
                assert merged[key] == value

    def test_result_does_not_alias_override(self):
        override = {"list": [1, 2]}

        merged = merge({}, override)
        merged["list"].append(3)

        assert override == {"list": [1, 2]}
