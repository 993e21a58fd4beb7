"""
Docker compatible CLI commands (docker / podman).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from portage_cd.pipeline.domain.enums import DockerAlias


@dataclass(frozen=True)
class ImageBuildParams:
    """Parameters for an image build. ``tag`` and ``build_dir`` are required."""

    tag: str
    build_dir: str
    dockerfile: str = "Dockerfile"
    platform: str = ""
    target: str = ""
    cache_to: str = ""
    cache_from: str = ""
    squash_layers: bool = False
    build_args: Tuple[str, ...] = field(default_factory=tuple)


def build(alias: DockerAlias, params: ImageBuildParams) -> List[str]:
    """
    Build an image.

    Output: build log to STDERR
    """
    args = [alias.value, "build", "--file", params.dockerfile, "--tag", params.tag]
    for build_arg in params.build_args:
        args += ["--build-arg", build_arg]
    if params.platform:
        args += ["--platform", params.platform]
    if params.target:
        args += ["--target", params.target]
    if params.cache_to:
        args += ["--cache-to", params.cache_to]
    if params.cache_from:
        args += ["--cache-from", params.cache_from]
    # only podman can squash everything into a single layer
    if params.squash_layers and alias is DockerAlias.PODMAN:
        args.append("--squash-all")
    args.append(params.build_dir)
    return args


def push(alias: DockerAlias, image_tag: str) -> List[str]:
    """Push an image tag to its registry."""
    return [alias.value, "push", image_tag]


def save(alias: DockerAlias, image_tag: str, output: Path) -> List[str]:
    """Export an image to a tar archive."""
    return [alias.value, "save", "--output", str(output), image_tag]
