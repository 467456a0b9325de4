"""Retail-ci run action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import json
import logging
import os
from typing import cast

from retail_ci import chart, git_repo, github, pipeline

from . import common
from .format import PrintFormatter, struct_formatter

_LOGGER = logging.getLogger(__name__)


def _status(update: chart.ChartUpdate) -> str:
    if not update.changed:
        return "unchanged"
    return "committed" if update.persisted else "diff-only"


class RunAction:
    """Retail-ci run action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "run",
                help="Run change detection, tagging and chart updates",
                description=(
                    "Detect the affected services for the trigger, compute the "
                    "image tags and update each service chart. Chart updates "
                    "are committed in a single commit for a push to the trunk "
                    "branch."
                ),
            ),
        )
        args.add_argument(
            "--paths",
            type=common.CSV,
            default=None,
            help="Comma separated list of changed paths (default: from git)",
        )
        common.add_registry_flag(args)
        common.add_repo_flags(args)
        common.add_trigger_flags(args)
        common.add_output_flags(args, ["wide", "json", "yaml"])
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        paths: list[str] | None,
        registry: str | None,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        root, config = common.load_config(**kwargs)
        context = common.require_context(**kwargs)
        repo = None
        if paths is not None:
            changed: list[str] | None = [path for path in paths if path]
        else:
            repo = git_repo.git_repo(root)
            changed = pipeline.changed_paths_for(
                repo, context, config.trunk_branch, config.remote
            )

        result = await pipeline.run_pipeline(
            root,
            config,
            context,
            changed,
            common.registry(registry, required=False),
            repo=repo,
        )

        outputs = {
            "services": json.dumps(result.services),
            "has-changes": "true" if result.has_changes else "false",
            "tags": ",".join(result.tags),
        }
        if result.commit:
            outputs["commit"] = result.commit
        github.write_outputs(os.environ, outputs)
        github.write_summary(os.environ, chart.summarize(result.updates))

        if output == "wide":
            if not result.services:
                print("No affected services")
                return
            PrintFormatter(["service", "image", "status"]).print(
                [
                    {
                        "service": update.service,
                        "image": update.current.image,
                        "status": _status(update),
                    }
                    for update in result.updates
                ]
            )
            if result.commit:
                print(f"Committed {result.commit}")
            return
        struct_formatter(output).print(result.to_dict())
