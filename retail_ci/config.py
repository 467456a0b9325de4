"""Configuration objects for retail-ci.

The configuration is read from an optional `.retail-ci.yaml` file at the root
of the repository. Any field that is not set uses the defaults for the retail
store sample application, for example:

```yaml
trunk_branch: main
services:
  - name: ui
    paths:
      - src/ui/**
repository_template: "{registry}/retail-store-sample-{service}"
```
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any

import yaml
from mashumaro import DataClassDictMixin
from mashumaro.config import BaseConfig

from .exceptions import InputException

__all__ = [
    "ServiceRule",
    "PipelineConfig",
    "load_config",
    "CONFIG_FILE",
]

_LOGGER = logging.getLogger(__name__)

CONFIG_FILE = ".retail-ci.yaml"
DEFAULT_SERVICES = ["ui", "catalog", "cart", "checkout", "orders"]
GLOB_SUFFIX = "**"


@dataclass
class ServiceRule(DataClassDictMixin):
    """Maps a service name to the repository paths that belong to it."""

    name: str
    """The name of the service, used for tags and chart lookups."""

    paths: list[str] = field(default_factory=list)
    """Path prefixes, either plain (`src/ui/`) or as a glob (`src/ui/**`)."""

    @property
    def prefixes(self) -> list[str]:
        """Return the paths normalized to plain prefixes."""
        result = []
        for path in self.paths:
            prefix = path.removeprefix("./")
            if prefix.endswith(GLOB_SUFFIX):
                prefix = prefix[: -len(GLOB_SUFFIX)]
            result.append(prefix)
        return result

    @classmethod
    def for_service(cls, name: str) -> "ServiceRule":
        """Return the default rule for a service in the `src/` tree."""
        return cls(name=name, paths=[f"src/{name}/**"])

    class Config(BaseConfig):
        forbid_extra_keys = True


def _default_services() -> list[ServiceRule]:
    return [ServiceRule.for_service(name) for name in DEFAULT_SERVICES]


@dataclass
class PipelineConfig(DataClassDictMixin):
    """Configuration for a pipeline run."""

    trunk_branch: str = "main"
    """Pushes to this branch persist chart updates."""

    services: list[ServiceRule] = field(default_factory=_default_services)
    """The known services, in the order they are reported."""

    values_path: str = "src/{service}/chart/values.yaml"
    """Template for the chart values file of a service, relative to the repo root."""

    image_key: str = "image"
    """Dotted key of the image mapping inside the values file."""

    repository_template: str = "{registry}/retail-store-sample-{service}"
    """Template for the image repository of a service."""

    latest_tag: str = "latest"
    """Constant tag produced alongside the commit tag."""

    commit_message: str = "chore: update {services} image tag to {tag}"
    """Template for the chart update commit message."""

    git_author_name: str = "github-actions[bot]"
    git_author_email: str = "github-actions[bot]@users.noreply.github.com"

    remote: str = "origin"
    """Remote to push chart update commits to."""

    push: bool = True
    """If false, chart update commits are created locally but not pushed."""

    push_retries: int = 3
    """Attempts to push when the trunk branch moved during the run."""

    @property
    def service_names(self) -> list[str]:
        """Return the names of all known services."""
        return [rule.name for rule in self.services]

    def validate(self) -> None:
        """Check the configuration for values that can't be used."""
        seen: set[str] = set()
        for rule in self.services:
            if not rule.name:
                raise InputException("Service rule is missing a name")
            if rule.name in seen:
                raise InputException(f"Duplicate service rule '{rule.name}'")
            seen.add(rule.name)
            if not rule.paths:
                raise InputException(f"Service rule '{rule.name}' has no paths")
        if not self.trunk_branch:
            raise InputException("Configuration trunk_branch must not be empty")
        if self.push_retries < 1:
            raise InputException(
                f"Configuration push_retries must be positive, got {self.push_retries}"
            )
        if "{service}" not in self.values_path:
            raise InputException(
                f"Configuration values_path must contain '{{service}}': {self.values_path}"
            )

    class Config(BaseConfig):
        forbid_extra_keys = True


def parse_config(doc: dict[str, Any] | None) -> PipelineConfig:
    """Parse a PipelineConfig from a yaml document."""
    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise InputException(f"Expected configuration to be a dict, found {type(doc)}")
    try:
        config = PipelineConfig.from_dict(doc)
    except (ValueError, LookupError, TypeError) as err:
        raise InputException(f"Invalid configuration: {err}") from err
    config.validate()
    return config


def load_config(root: Path, path: Path | None = None) -> PipelineConfig:
    """Load the configuration file, falling back to defaults when absent.

    An explicit `path` must exist, while the default `.retail-ci.yaml` at the
    repository root is optional.
    """
    if path is None:
        path = root / CONFIG_FILE
        if not path.exists():
            _LOGGER.debug("No configuration file at %s, using defaults", path)
            return parse_config({})
    _LOGGER.debug("Loading configuration from %s", path)
    try:
        content = path.read_text()
    except OSError as err:
        raise InputException(f"Unable to read configuration {path}: {err}") from err
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise InputException(f"Configuration {path} is not valid yaml: {err}") from err
    return parse_config(doc)
