"""Integration with the GitHub Actions runner environment.

GitHub Actions describes the triggering event with environment variables and
a JSON event payload, and collects step outputs and job summaries from files
named by environment variables. See
https://docs.github.com/en/actions/learn-github-actions/variables
"""

from collections.abc import Mapping
import json
import logging
from pathlib import Path
from typing import Any
import uuid

from .exceptions import InputException
from .trigger import EventKind, TriggerContext

__all__ = [
    "context_from_env",
    "write_outputs",
    "write_summary",
]

_LOGGER = logging.getLogger(__name__)

EVENT_NAME = "GITHUB_EVENT_NAME"
EVENT_PATH = "GITHUB_EVENT_PATH"
REF_NAME = "GITHUB_REF_NAME"
HEAD_REF = "GITHUB_HEAD_REF"
SHA = "GITHUB_SHA"
OUTPUT = "GITHUB_OUTPUT"
STEP_SUMMARY = "GITHUB_STEP_SUMMARY"
BUILD_ALL_INPUT = "build_all"


def _read_payload(environ: Mapping[str, str]) -> dict[str, Any]:
    """Read the event payload, if the runner provided one."""
    if not (event_path := environ.get(EVENT_PATH)):
        return {}
    try:
        payload = json.loads(Path(event_path).read_text())
    except (OSError, ValueError) as err:
        raise InputException(
            f"Unable to read event payload {event_path}: {err}"
        ) from err
    if not isinstance(payload, dict):
        raise InputException(f"Expected event payload to be an object: {event_path}")
    return payload


def _parse_bool(value: Any) -> bool:
    """Parse a workflow_dispatch boolean input, which may arrive as a string."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() == "true"


def context_from_env(environ: Mapping[str, str]) -> TriggerContext:
    """Build the trigger context from the GitHub Actions environment."""
    if not (event_name := environ.get(EVENT_NAME)):
        raise InputException(f"Environment variable {EVENT_NAME} is not set")
    event = EventKind.parse(event_name)
    payload = _read_payload(environ)
    commit_sha = environ.get(SHA) or payload.get("after") or ""

    pr_number: int | None = None
    base_sha: str | None = None
    build_all = False
    if event == EventKind.PULL_REQUEST:
        pull_request = payload.get("pull_request", {})
        branch = environ.get(HEAD_REF) or pull_request.get("head", {}).get("ref", "")
        number = pull_request.get("number", payload.get("number"))
        pr_number = int(number) if number is not None else None
        base_sha = pull_request.get("base", {}).get("sha")
    else:
        branch = environ.get(REF_NAME, "")
        if event == EventKind.PUSH:
            base_sha = payload.get("before")
        else:
            build_all = _parse_bool(payload.get("inputs", {}).get(BUILD_ALL_INPUT))

    context = TriggerContext(
        event=event,
        branch=branch,
        commit_sha=commit_sha,
        pr_number=pr_number,
        build_all=build_all,
        base_sha=base_sha,
    )
    _LOGGER.debug("Trigger from environment: %s", context)
    return context


def _format_output(key: str, value: str) -> str:
    if "\n" not in value:
        return f"{key}={value}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{key}<<{delimiter}\n{value}\n{delimiter}\n"


def write_outputs(environ: Mapping[str, str], outputs: dict[str, str]) -> None:
    """Append step outputs to the runner's output file."""
    if not (output_path := environ.get(OUTPUT)):
        _LOGGER.debug("No %s set, skipping step outputs", OUTPUT)
        return
    with open(output_path, "a") as fd:
        for key, value in outputs.items():
            fd.write(_format_output(key, value))


def write_summary(environ: Mapping[str, str], text: str) -> None:
    """Append markdown to the job summary."""
    if not (summary_path := environ.get(STEP_SUMMARY)):
        _LOGGER.debug("No %s set, skipping job summary", STEP_SUMMARY)
        return
    with open(summary_path, "a") as fd:
        fd.write(text)
        if not text.endswith("\n"):
            fd.write("\n")
