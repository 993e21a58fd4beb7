"""
Pipeline domain enums.
"""

from enum import Enum

from portage_cd.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class DockerAlias(Enum):
    """
    Docker compatible CLI used for image commands.

    ``docker build`` and ``podman build`` can be used interchangeably.
    """

    DOCKER = "docker"
    PODMAN = "podman"

    @classmethod
    def parse(cls, value: str | None) -> "DockerAlias":
        """Map a CLI interface name to an alias, defaulting to docker."""
        name = (value or "").strip().lower()
        if name == "podman":
            return cls.PODMAN
        if name and name != "docker":
            logger.warning("docker_alias_unknown", value=value, fallback=cls.DOCKER.value)
        return cls.DOCKER


class AggregationStrategy(Enum):
    """
    How a task runner reacts to a failing step.

    BEST_EFFORT runs every step and joins the errors.
    FAIL_FAST stops at the first failing step.
    """

    BEST_EFFORT = "best_effort"
    FAIL_FAST = "fail_fast"


class StageName(str, Enum):
    """Pipeline stages, declared in composite execution order."""

    CODE_SCAN = "code-scan"
    IMAGE_BUILD = "image-build"
    IMAGE_SCAN = "image-scan"
    IMAGE_PUBLISH = "image-publish"
    DEPLOY = "deploy"
