"""Library for mapping changed files to the services that need a build.

Example usage:

```python
from retail_ci import config, detector

rules = config.PipelineConfig().services
services = detector.detect_services(["src/catalog/main.go"], rules)
assert services == ["catalog"]
```
"""

from collections.abc import Iterable
import logging
from pathlib import PurePosixPath

from .config import ServiceRule

__all__ = [
    "detect_services",
    "match_rule",
]

_LOGGER = logging.getLogger(__name__)


def _normalize(path: str) -> str:
    """Return the path relative to the repo root in posix form."""
    return str(PurePosixPath(path.strip().removeprefix("./")))


def match_rule(rule: ServiceRule, path: str) -> bool:
    """Return true if the changed path belongs to the service rule."""
    path = _normalize(path)
    for prefix in rule.prefixes:
        if prefix.endswith("/"):
            # A directory prefix also matches the directory itself
            if path.startswith(prefix) or path == prefix.rstrip("/"):
                return True
        elif path.startswith(prefix):
            return True
    return False


def detect_services(
    changed_paths: Iterable[str],
    rules: list[ServiceRule],
    build_all: bool = False,
) -> list[str]:
    """Return the names of services affected by the changed paths.

    Services are returned in rule order without duplicates. When `build_all`
    is set every known service is returned regardless of the changed paths.
    """
    if build_all:
        _LOGGER.debug("Build all requested, selecting all %d services", len(rules))
        return [rule.name for rule in rules]

    paths = [path for path in changed_paths if path.strip()]
    services: list[str] = []
    for rule in rules:
        if rule.name in services:
            continue
        if matched := next((path for path in paths if match_rule(rule, path)), None):
            _LOGGER.debug("Service '%s' affected by '%s'", rule.name, matched)
            services.append(rule.name)
    if not services:
        _LOGGER.info("No services affected by %d changed path(s)", len(paths))
    return services
