"""Retail-ci tags action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import os
from typing import cast

from retail_ci import github
from retail_ci.tags import generate_tags

from . import common
from .format import struct_formatter

_LOGGER = logging.getLogger(__name__)


class TagsAction:
    """Retail-ci tags action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "tags",
                help="Print the image tags for the trigger",
                description=(
                    "Print the tags images are pushed with: the commit sha for "
                    "pushes, pr-<number>-<sha> for pull requests, and latest."
                ),
            ),
        )
        common.add_trigger_flags(args)
        common.add_output_flags(args, ["name", "json", "yaml"])
        args.add_argument(
            "--latest-tag",
            type=str,
            default="latest",
            help="The constant tag produced for every build",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        output: str,
        latest_tag: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        context = common.require_context(**kwargs)
        tags = generate_tags(context, latest_tag)
        github.write_outputs(
            os.environ,
            {"tags": ",".join(tags), "primary-tag": tags.primary},
        )
        if output == "name":
            for tag in tags:
                print(tag)
        else:
            struct_formatter(output).print(tags.to_dict())
