"""Library for running the pipeline decisions for a build trigger.

A run detects the affected services, computes the image tags, then points the
chart values of every affected service at the new image. Services are updated
concurrently and independently. When the trigger is a push to the trunk
branch all updates are committed together in a single commit.

Example usage:

```python
from retail_ci import config, pipeline, trigger

context = trigger.TriggerContext(
    event=trigger.EventKind.PUSH, branch="main", commit_sha="abc123ef456"
)
result = await pipeline.run_pipeline(
    root, config.PipelineConfig(), context, ["src/ui/app.py"], registry
)
```
"""

import asyncio
from dataclasses import dataclass, field
import logging
from pathlib import Path

import git
from mashumaro import DataClassDictMixin
from mashumaro.config import BaseConfig

from . import chart, git_repo
from .config import PipelineConfig
from .context import trace_context
from .detector import detect_services
from .exceptions import InputException, PipelineFailedError, RetailCIException
from .tags import generate_tags
from .trigger import EventKind, TriggerContext

__all__ = [
    "PipelineResult",
    "changed_paths_for",
    "run_pipeline",
]

_LOGGER = logging.getLogger(__name__)


@dataclass
class PipelineResult(DataClassDictMixin):
    """The decisions and side effects of a pipeline run."""

    services: list[str] = field(default_factory=list)
    """The affected services, empty when nothing needs a build."""

    tags: list[str] = field(default_factory=list)
    """The image tags built for every affected service."""

    persist: bool = False
    """True when chart updates are committed to the trunk branch."""

    updates: list[chart.ChartUpdate] = field(default_factory=list)
    """The chart updates, one per affected service."""

    commit: str | None = None
    """The sha of the chart update commit, if one was pushed."""

    @property
    def has_changes(self) -> bool:
        return bool(self.services)

    class Config(BaseConfig):
        omit_none = True


def changed_paths_for(
    repo: git.repo.Repo,
    context: TriggerContext,
    trunk_branch: str = "main",
    remote: str = "origin",
) -> list[str] | None:
    """Return the changed paths for the trigger, or None if all services build.

    A manual run carries no base commit, so it is compared with the previous
    commit of the branch. There is nothing to compare against for a push
    without a base commit, for example the first push of a new branch.
    """
    if context.build_all:
        return None
    base_sha = context.base_sha if context.has_base else None
    if base_sha is None and context.event == EventKind.MANUAL:
        base_sha = git_repo.previous_commit(
            repo, context.branch, trunk_branch, remote
        )
    if base_sha is None:
        _LOGGER.warning(
            "No base commit for %s on '%s', building all services",
            context.event.value,
            context.branch,
        )
        return None
    return git_repo.changed_paths(repo, base_sha, context.commit_sha or "HEAD")


async def _update_services(
    root: Path,
    config: PipelineConfig,
    services: list[str],
    registry: str,
    tag: str,
    persist: bool,
) -> list[chart.ChartUpdate]:
    """Update the chart of every service, failing after all have been attempted."""
    errors: dict[str, RetailCIException] = {}

    async def update(service: str) -> chart.ChartUpdate | None:
        with trace_context(f"Chart '{service}'"):
            try:
                return await chart.update_chart(
                    root, config, service, registry, tag, persist
                )
            except RetailCIException as err:
                _LOGGER.error("Chart update failed for '%s': %s", service, err)
                errors[service] = err
                return None

    results = await asyncio.gather(*[update(service) for service in services])
    if errors:
        raise PipelineFailedError(errors)
    return [result for result in results if result is not None]


async def run_pipeline(
    root: Path,
    config: PipelineConfig,
    context: TriggerContext,
    changed_paths: list[str] | None,
    registry: str,
    repo: git.repo.Repo | None = None,
) -> PipelineResult:
    """Run detection, tagging and chart updates for the trigger.

    A `changed_paths` of None selects every known service. Chart updates are
    only written and committed for a push to the trunk branch, and a run
    where any service fails commits nothing.
    """
    with trace_context("Pipeline"):
        with trace_context("Detect"):
            services = detect_services(
                changed_paths or [],
                config.services,
                build_all=context.build_all or changed_paths is None,
            )
        if not services:
            _LOGGER.info("No affected services, skipping build and chart updates")
            return PipelineResult()
        if not registry:
            raise InputException("A registry is required to update chart values")

        tags = generate_tags(context, config.latest_tag)
        persist = chart.should_persist(context, config.trunk_branch)
        _LOGGER.info(
            "Building %s with tags %s (persist=%s)",
            ", ".join(services),
            ", ".join(tags),
            persist,
        )
        updates = await _update_services(
            root, config, services, registry, tags.primary, persist
        )
        result = PipelineResult(
            services=services, tags=tags.names, persist=persist, updates=updates
        )

        if persisted := [update for update in updates if update.persisted]:
            with trace_context("Commit"):
                if repo is None:
                    repo = git_repo.git_repo(root)
                message = config.commit_message.format(
                    services=", ".join(update.service for update in persisted),
                    tag=tags.primary,
                )
                result.commit = git_repo.commit_and_push(
                    repo,
                    [str(root / update.path) for update in persisted],
                    message,
                    git.Actor(config.git_author_name, config.git_author_email),
                    branch=config.trunk_branch,
                    remote=config.remote,
                    push=config.push,
                    retries=config.push_retries,
                )
        return result
