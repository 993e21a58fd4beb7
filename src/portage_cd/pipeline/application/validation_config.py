"""
Gatecheck validation config resolution.

Exactly one source is used, tried in order, first hit wins:

1. the config file named explicitly in the pipeline configuration
2. an implicit ``.gatecheck.yml`` / ``.gatecheck.yaml`` in the working directory
3. the embedded default document

Only a read error on the explicit file, or on an implicit file that exists,
is fatal. A missing implicit file just falls through.
"""

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol, Sequence

import yaml

from portage_cd.pipeline.application.config_merger import merge
from portage_cd.shared.domain.exceptions import ConfigurationError, PreconditionError

DOTFILE_NAMES = (".gatecheck.yml", ".gatecheck.yaml")
DEFAULTS_RESOURCE = "gatecheck.defaults.yml"


def load_default_config_text() -> str:
    """The embedded default gatecheck config, verbatim."""
    return resources.files("portage_cd.pipeline.resources").joinpath(DEFAULTS_RESOURCE).read_text(encoding="utf-8")


@dataclass(frozen=True)
class ResolvedConfig:
    """A validation config source that was found."""

    source: str
    text: str
    path: Optional[Path] = None
    is_override: bool = True


class ConfigResolver(Protocol):
    def resolve(self) -> Optional[ResolvedConfig]:
        ...


class ExplicitFileResolver:
    """The file named by ``deploy.gatecheckConfigFilename``; unreadable is fatal."""

    def __init__(self, filename: str):
        self.filename = filename

    def resolve(self) -> Optional[ResolvedConfig]:
        if not self.filename:
            return None
        path = Path(self.filename)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise PreconditionError(
                f"cannot read gatecheck config file '{path}': {e}",
                context={"path": str(path)},
            ) from e
        return ResolvedConfig(source="explicit", text=text, path=path)


class DotfileResolver:
    """An optional dotfile; the first existing candidate wins."""

    def __init__(self, base_dir: Path | str = ".", names: Sequence[str] = DOTFILE_NAMES):
        self.base_dir = Path(base_dir)
        self.names = tuple(names)

    def resolve(self) -> Optional[ResolvedConfig]:
        for name in self.names:
            path = self.base_dir / name
            try:
                text = path.read_text(encoding="utf-8")
            except FileNotFoundError:
                continue
            except OSError as e:
                # exists but is not readable
                raise PreconditionError(
                    f"cannot read gatecheck config file '{path}': {e}",
                    context={"path": str(path)},
                ) from e
            if not text.strip():
                return None
            return ResolvedConfig(source="dotfile", text=text, path=path)
        return None


class EmbeddedDefaultResolver:
    def resolve(self) -> Optional[ResolvedConfig]:
        return ResolvedConfig(source="default", text=load_default_config_text(), is_override=False)


def default_resolvers(explicit_filename: str, base_dir: Path | str = ".") -> list[ConfigResolver]:
    return [
        ExplicitFileResolver(explicit_filename),
        DotfileResolver(base_dir),
        EmbeddedDefaultResolver(),
    ]


def resolve_config(resolvers: Iterable[ConfigResolver]) -> ResolvedConfig:
    """Evaluate resolvers in order and return the first hit."""
    for resolver in resolvers:
        resolved = resolver.resolve()
        if resolved is not None:
            return resolved
    raise ConfigurationError("no gatecheck config source available")


def _load_mapping(text: str, source: str) -> dict[str, Any]:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid gatecheck config ({source}): {e}", context={"source": source}) from e
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(
            f"invalid gatecheck config ({source}): top level must be a mapping",
            context={"source": source},
        )
    return document


def render_config(resolved: ResolvedConfig) -> str:
    """
    Produce the document to persist.

    An override is merged onto the embedded default. Without an override the
    default is returned as-is.
    """
    default_text = load_default_config_text()
    if not resolved.is_override:
        return default_text

    base = _load_mapping(default_text, "default")
    override = _load_mapping(resolved.text, str(resolved.path or resolved.source))
    return yaml.safe_dump(merge(base, override), sort_keys=False, default_flow_style=False)
