"""Module for pointing a service's Helm chart values at a new image.

Each service in the repository ships a chart with a values file containing an
image mapping:

```yaml
image:
  repository: public.ecr.aws/aws-containers/retail-store-sample-ui
  tag: "1.0.0"
```

The updater locates this mapping, replaces the `repository` and `tag` scalars
in place (leaving comments and formatting in the rest of the file alone) and
either writes the result back or only reports the diff.
"""

from dataclasses import dataclass, field
import difflib
import logging
from pathlib import Path
from typing import Any

import aiofiles
import yaml
from mashumaro import DataClassDictMixin
from mashumaro.config import BaseConfig

from .config import PipelineConfig
from .exceptions import ConfigNotFoundError
from .tags import image_reference
from .trigger import EventKind, TriggerContext

__all__ = [
    "ChartValue",
    "ChartUpdate",
    "values_path",
    "repository_for",
    "should_persist",
    "update_chart",
    "update_values",
    "summarize",
]

_LOGGER = logging.getLogger(__name__)

REPOSITORY_KEY = "repository"
TAG_KEY = "tag"
DOUBLE_QUOTE = '"'
SINGLE_QUOTE = "'"


@dataclass
class ChartValue(DataClassDictMixin):
    """The image settings inside a chart values file."""

    repository: str
    tag: str

    @property
    def image(self) -> str:
        """Return the full image reference."""
        return image_reference(self.repository, self.tag)


@dataclass
class ChartUpdate(DataClassDictMixin):
    """The result of updating the chart values of one service."""

    service: str
    """The name of the service."""

    path: str
    """The values file, relative to the repository root."""

    previous: ChartValue
    """The image settings before the update."""

    current: ChartValue
    """The image settings after the update."""

    persisted: bool = False
    """True when the new values were written to the file."""

    diff: str = field(metadata={"serialize": "omit"}, default="")
    """Unified diff of the values file."""

    @property
    def changed(self) -> bool:
        """Return true if the update modifies the values file."""
        return self.previous != self.current

    class Config(BaseConfig):
        omit_none = True


def values_path(config: PipelineConfig, service: str) -> Path:
    """Return the path of the values file for the service, relative to the root."""
    return Path(config.values_path.format(service=service))


def repository_for(config: PipelineConfig, registry: str, service: str) -> str:
    """Return the image repository for the service in the registry."""
    return config.repository_template.format(
        registry=registry.rstrip("/"), service=service
    )


def should_persist(context: TriggerContext, trunk_branch: str) -> bool:
    """Return true if chart updates for this trigger are committed.

    Only a push to the trunk branch persists; pull requests and manual runs
    only report what would change.
    """
    return context.event == EventKind.PUSH and context.branch == trunk_branch


def _find_node(root: yaml.Node | None, keys: list[str]) -> yaml.Node | None:
    """Walk the composed document along the mapping keys."""
    node = root
    for key in keys:
        if not isinstance(node, yaml.MappingNode):
            return None
        for key_node, value_node in reversed(node.value):
            if isinstance(key_node, yaml.ScalarNode) and key_node.value == key:
                node = value_node
                break
        else:
            return None
    return node


def _field_node(
    service: str, mapping: yaml.MappingNode, key: str, image_key: str
) -> yaml.ScalarNode:
    if not isinstance(node := _find_node(mapping, [key]), yaml.ScalarNode):
        raise ConfigNotFoundError(
            service, f"'{image_key}.{key}' is missing or not a string"
        )
    return node


def _render_scalar(value: str, style: str | None) -> str:
    """Render a scalar, keeping the original quoting when possible."""
    if style == SINGLE_QUOTE and SINGLE_QUOTE not in value:
        return f"'{value}'"
    if style is None:
        try:
            parsed = yaml.safe_load(value)
        except yaml.YAMLError:
            parsed = None
        if parsed == value:
            return value
    # Double quotes are needed for values that would parse as another type
    rendered = yaml.dump(value, default_style=DOUBLE_QUOTE, width=1024)
    return rendered.strip().removesuffix("...").strip()


def _redump(doc: Any, keys: list[str], value: ChartValue) -> str:
    """Fallback that rewrites the whole document."""
    mapping = doc
    for key in keys:
        mapping = mapping[key]
    mapping[REPOSITORY_KEY] = value.repository
    mapping[TAG_KEY] = value.tag
    return str(yaml.dump(doc, sort_keys=False))


def update_values(
    service: str, content: str, image_key: str, value: ChartValue
) -> tuple[ChartValue, str]:
    """Replace the image repository and tag in the values file content.

    Returns the previous image settings and the new content.
    """
    keys = image_key.split(".")
    try:
        root = yaml.compose(content, Loader=yaml.SafeLoader)
    except yaml.YAMLError as err:
        raise ConfigNotFoundError(
            service, f"values file is not valid yaml: {err}"
        ) from err
    if not isinstance(mapping := _find_node(root, keys), yaml.MappingNode):
        raise ConfigNotFoundError(service, f"'{image_key}' mapping not found")

    repository_node = _field_node(service, mapping, REPOSITORY_KEY, image_key)
    tag_node = _field_node(service, mapping, TAG_KEY, image_key)
    previous = ChartValue(repository=repository_node.value, tag=tag_node.value)

    edits = []
    for node, new_value in (
        (repository_node, value.repository),
        (tag_node, value.tag),
    ):
        if node.style in ("|", ">") or (not node.value and node.style is None):
            # Block and empty plain scalars have no simple span to replace
            _LOGGER.debug("Rewriting %s values for '%s'", image_key, service)
            return previous, _redump(yaml.safe_load(content), keys, value)
        edits.append(
            (
                node.start_mark.index,
                node.end_mark.index,
                _render_scalar(new_value, node.style),
            )
        )

    result = content
    for start, end, text in sorted(edits, reverse=True):
        result = result[:start] + text + result[end:]
    return previous, result


def _unified_diff(path: Path, before: str, after: str) -> str:
    return "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
        )
    )


async def update_chart(
    root: Path,
    config: PipelineConfig,
    service: str,
    registry: str,
    tag: str,
    persist: bool,
) -> ChartUpdate:
    """Point the chart values of a service at the image for the tag.

    The values file is only written when `persist` is set, otherwise the
    update is computed and returned with its diff.
    """
    relative_path = values_path(config, service)
    full_path = root / relative_path
    try:
        async with aiofiles.open(
            full_path, mode="r", encoding="utf-8", newline=""
        ) as fd:
            content = await fd.read()
    except FileNotFoundError as err:
        raise ConfigNotFoundError(
            service, f"values file {relative_path} does not exist"
        ) from err
    except (OSError, UnicodeDecodeError) as err:
        raise ConfigNotFoundError(
            service, f"Unable to read values file {relative_path}: {err}"
        ) from err

    value = ChartValue(repository=repository_for(config, registry, service), tag=tag)
    previous, new_content = update_values(service, content, config.image_key, value)
    update = ChartUpdate(
        service=service,
        path=str(relative_path),
        previous=previous,
        current=value,
        diff=_unified_diff(relative_path, content, new_content),
    )
    if not update.changed:
        _LOGGER.info("Chart for '%s' already points at %s", service, value.image)
        update.diff = ""
        return update
    if persist:
        _LOGGER.info("Updating %s to %s", relative_path, value.image)
        try:
            async with aiofiles.open(
                full_path, mode="w", encoding="utf-8", newline=""
            ) as fd:
                await fd.write(new_content)
        except OSError as err:
            raise ConfigNotFoundError(
                service, f"Unable to write values file {relative_path}: {err}"
            ) from err
        update.persisted = True
    else:
        _LOGGER.debug("Not persisting update of %s:\n%s", relative_path, update.diff)
    return update


def summarize(updates: list[ChartUpdate]) -> str:
    """Return a markdown summary of the chart updates."""
    if not updates:
        return "No chart updates.\n"
    lines = ["| Service | Image | Status |", "| --- | --- | --- |"]
    for update in updates:
        if not update.changed:
            status = "unchanged"
        elif update.persisted:
            status = "committed"
        else:
            status = "not persisted"
        lines.append(f"| {update.service} | `{update.current.image}` | {status} |")
    lines.append("")
    for update in updates:
        if not update.diff:
            continue
        lines.extend(
            [
                f"<details><summary>{update.path}</summary>",
                "",
                "```diff",
                update.diff.rstrip("\n"),
                "```",
                "",
                "</details>",
                "",
            ]
        )
    return "\n".join(lines)
