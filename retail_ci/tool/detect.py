"""Retail-ci detect action."""

from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
import json
import logging
import os
from typing import cast

from retail_ci import detector, git_repo, github, pipeline
from retail_ci.config import PipelineConfig
from retail_ci.exceptions import InputException

from . import common
from .format import PrintFormatter, struct_formatter

_LOGGER = logging.getLogger(__name__)


def _changed_paths(  # type: ignore[no-untyped-def]
    pipeline_config: PipelineConfig, **kwargs
) -> list[str] | None:
    """Return the changed paths from the flags, or None to select everything."""
    if kwargs.get("build_all"):
        return None
    if (paths := kwargs.get("paths")) is not None:
        return [path for path in paths if path]
    if base_sha := kwargs.get("base_sha"):
        repo = git_repo.git_repo(kwargs.get("path"))
        return git_repo.changed_paths(repo, base_sha, kwargs.get("sha") or "HEAD")
    if github.EVENT_NAME in os.environ:
        context = github.context_from_env(os.environ)
        repo = git_repo.git_repo(kwargs.get("path"))
        return pipeline.changed_paths_for(
            repo, context, pipeline_config.trunk_branch, pipeline_config.remote
        )
    raise InputException(
        "Unable to determine changed paths: pass --paths, --base-sha or --build-all"
    )


class DetectAction:
    """Retail-ci detect action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "detect",
                help="Print the services affected by changed paths",
                description=(
                    "Map the changed files of a commit range or explicit list "
                    "of paths to the services that need a new image."
                ),
            ),
        )
        common.add_repo_flags(args)
        args.add_argument(
            "--paths",
            type=common.CSV,
            default=None,
            help="Comma separated list of changed paths",
        )
        args.add_argument(
            "--base-sha",
            type=str,
            default=None,
            help="Detect changes between this commit and --sha",
        )
        args.add_argument(
            "--sha",
            type=str,
            default=None,
            help="The commit to compare with --base-sha (default: HEAD)",
        )
        args.add_argument(
            "--build-all",
            type=bool,
            default=False,
            action=BooleanOptionalAction,
            help="Select all known services regardless of changed paths",
        )
        common.add_output_flags(args, ["name", "wide", "json", "yaml"])
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        _, config = common.load_config(**kwargs)
        changed = _changed_paths(config, **kwargs)
        services = detector.detect_services(
            changed or [], config.services, build_all=changed is None
        )
        github.write_outputs(
            os.environ,
            {
                "services": json.dumps(services),
                "has-changes": "true" if services else "false",
            },
        )

        if output == "name":
            for service in services:
                print(service)
        elif output == "wide":
            rules = {rule.name: rule for rule in config.services}
            PrintFormatter(["name", "paths"]).print(
                [
                    {"name": name, "paths": ",".join(rules[name].paths)}
                    for name in services
                ]
            )
        else:
            struct_formatter(output).print({"services": services})
