"""Retail-ci update-chart action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import os
from typing import cast

import git

from retail_ci import chart, git_repo, github
from retail_ci.context import trace_context
from retail_ci.exceptions import InputException
from retail_ci.tags import generate_tags

from . import common
from .format import struct_formatter

_LOGGER = logging.getLogger(__name__)


class UpdateChartAction:
    """Retail-ci update-chart action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "update-chart",
                help="Point a service chart at a new image",
                description=(
                    "Update the image repository and tag in the chart values "
                    "of a service. The change is written and committed only "
                    "for a push to the trunk branch, otherwise the diff is "
                    "printed."
                ),
            ),
        )
        args.add_argument(
            "service", type=str, help="The name of the service to update"
        )
        args.add_argument(
            "--tag",
            type=str,
            default=None,
            help="The image tag (default: computed from the trigger)",
        )
        common.add_registry_flag(args)
        common.add_repo_flags(args)
        common.add_trigger_flags(args)
        common.add_output_flags(args, ["diff", "json", "yaml"])
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        service: str,
        tag: str | None,
        registry: str | None,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        root, config = common.load_config(**kwargs)
        if service not in config.service_names:
            raise InputException(
                f"Unknown service '{service}', expected one of: "
                + ", ".join(config.service_names)
            )
        context = common.require_context(**kwargs)
        if tag is None:
            tag = generate_tags(context, config.latest_tag).primary
        persist = chart.should_persist(context, config.trunk_branch)

        with trace_context(f"Chart '{service}'"):
            update = await chart.update_chart(
                root, config, service, common.registry(registry), tag, persist
            )
        commit: str | None = None
        if update.persisted:
            commit = git_repo.commit_and_push(
                git_repo.git_repo(root),
                [str(root / update.path)],
                config.commit_message.format(services=service, tag=tag),
                git.Actor(config.git_author_name, config.git_author_email),
                branch=config.trunk_branch,
                remote=config.remote,
                push=config.push,
                retries=config.push_retries,
            )
        if commit:
            github.write_outputs(os.environ, {"commit": commit})

        if output == "diff":
            if update.diff:
                print(update.diff, end="")
            return
        result = update.to_dict()
        if commit:
            result["commit"] = commit
        struct_formatter(output).print(result)
