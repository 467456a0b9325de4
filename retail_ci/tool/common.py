"""Library for command line flags shared by the retail-ci actions."""

from argparse import ArgumentParser, BooleanOptionalAction
import functools
import logging
import os
import pathlib
from typing import Any

from retail_ci import config, git_repo, github
from retail_ci.exceptions import InputException
from retail_ci.trigger import EventKind, TriggerContext

_LOGGER = logging.getLogger(__name__)

REGISTRY_ENV = "ECR_REGISTRY"

# Type for command line flags of comma separated list
CSV = functools.partial(str.split, sep=",")


def add_repo_flags(args: ArgumentParser) -> None:
    """Add flags that locate the repository and its configuration."""
    args.add_argument(
        "--path",
        help="Root of the repository (default: the enclosing git repo)",
        type=pathlib.Path,
        default=None,
    )
    args.add_argument(
        "--config",
        help=f"Path to the configuration file (default: {config.CONFIG_FILE})",
        type=pathlib.Path,
        default=None,
    )


def add_trigger_flags(args: ArgumentParser) -> None:
    """Add flags that describe the trigger, overriding the GitHub environment."""
    args.add_argument(
        "--event",
        choices=[kind.value for kind in EventKind],
        default=None,
        help="The trigger event, read from GITHUB_EVENT_NAME when omitted",
    )
    args.add_argument(
        "--branch",
        type=str,
        default=None,
        help="The pushed branch or pull request head branch",
    )
    args.add_argument("--sha", type=str, default=None, help="The commit sha to build")
    args.add_argument("--pr", type=int, default=None, help="The pull request number")
    args.add_argument(
        "--base-sha",
        type=str,
        default=None,
        help="The commit to compare against when detecting changes",
    )
    args.add_argument(
        "--build-all",
        type=bool,
        default=False,
        action=BooleanOptionalAction,
        help="Select all known services regardless of changed paths",
    )


def add_output_flags(args: ArgumentParser, choices: list[str]) -> None:
    """Add the output format flag."""
    args.add_argument(
        "--output",
        "-o",
        choices=choices,
        default=choices[0],
        help="Output format of the command",
    )


def repo_path(path: pathlib.Path | None) -> pathlib.Path:
    """Return the repository root for the flag value."""
    if path is not None:
        return path
    return git_repo.repo_root(git_repo.git_repo())


def load_config(  # type: ignore[no-untyped-def]
    **kwargs,
) -> tuple[pathlib.Path, config.PipelineConfig]:
    """Return the repository root and its configuration from the flags."""
    root = repo_path(kwargs.get("path"))
    return (root, config.load_config(root, kwargs.get("config")))


def build_context(**kwargs: Any) -> TriggerContext | None:
    """Build the trigger from flags, falling back to the GitHub environment.

    Returns None when neither describes a trigger.
    """
    if event := kwargs.get("event"):
        _LOGGER.debug("Building trigger from flags")
        return TriggerContext.parse_doc(
            {
                "event": event,
                "branch": kwargs.get("branch"),
                "commit_sha": kwargs.get("sha"),
                "pr_number": kwargs.get("pr"),
                "build_all": kwargs.get("build_all", False),
                "base_sha": kwargs.get("base_sha"),
            }
        )
    if github.EVENT_NAME not in os.environ:
        return None
    context = github.context_from_env(os.environ)
    if kwargs.get("build_all"):
        context.build_all = True
    return context


def require_context(**kwargs: Any) -> TriggerContext:
    """Build the trigger, failing when it can't be determined."""
    if (context := build_context(**kwargs)) is None:
        raise InputException(
            f"Unable to determine the trigger: pass --event or set {github.EVENT_NAME}"
        )
    return context


def registry(value: str | None, required: bool = True) -> str:
    """Return the registry from the flag or environment.

    An empty string is returned for a missing registry that is not required.
    """
    if value:
        return value
    env_value = os.environ.get(REGISTRY_ENV, "")
    if not env_value and required:
        raise InputException(
            f"A registry is required: pass --registry or set {REGISTRY_ENV}"
        )
    return env_value


def add_registry_flag(args: ArgumentParser) -> None:
    args.add_argument(
        "--registry",
        type=str,
        default=None,
        help=f"Container registry URL (default: ${REGISTRY_ENV})",
    )
