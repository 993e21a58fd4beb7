"""
Gatecheck CLI commands.

Gatecheck owns the artifact bundle format: it creates bundles, appends files
to them, validates them against a config, and summarizes reports as tables.
"""

from pathlib import Path
from typing import List


def list_report(report: Path) -> List[str]:
    """
    Summarize a report file.

    Output: table to STDOUT
    """
    return ["gatecheck", "list", str(report)]


def bundle_create(bundle: Path, target: Path) -> List[str]:
    """Create a new bundle containing only ``target``."""
    return ["gatecheck", "bundle", "create", str(bundle), str(target)]


def bundle_add(bundle: Path, target: Path) -> List[str]:
    """Append ``target`` to an existing bundle."""
    return ["gatecheck", "bundle", "add", str(bundle), str(target)]


def validate(bundle: Path, config: Path | None = None) -> List[str]:
    """Validate every artifact in a bundle, optionally against a config file."""
    args = ["gatecheck", "validate", str(bundle)]
    if config is not None:
        args += ["--config", str(config)]
    return args
