"""Representation of the event that triggered a pipeline run."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mashumaro import DataClassDictMixin
from mashumaro.config import BaseConfig

from .exceptions import InputException, UnsupportedEventError

__all__ = [
    "EventKind",
    "TriggerContext",
    "ZERO_SHA",
]

# Sha reported for `before` when a push creates a new branch.
ZERO_SHA = "0" * 40


class EventKind(str, Enum):
    """The kind of event that started the workflow."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: str) -> "EventKind":
        """Parse an event name, accepting the GitHub name for manual runs."""
        if value == "workflow_dispatch":
            return cls.MANUAL
        try:
            return cls(value)
        except ValueError as err:
            raise UnsupportedEventError(value) from err


@dataclass
class TriggerContext(DataClassDictMixin):
    """The inputs of a build trigger that decide tags and persistence."""

    event: EventKind
    """The kind of trigger."""

    branch: str
    """The branch that was pushed, or the head branch of a pull request."""

    commit_sha: str
    """The commit being built."""

    pr_number: int | None = None
    """The pull request number, for pull request events."""

    build_all: bool = False
    """Manual dispatch input that forces all services to build."""

    base_sha: str | None = field(default=None)
    """The commit to compare against when detecting changed paths."""

    @property
    def has_base(self) -> bool:
        """Return true if changed paths can be computed against a base commit."""
        return bool(self.base_sha) and self.base_sha != ZERO_SHA

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "TriggerContext":
        """Parse a TriggerContext from a dictionary of command line values."""
        if not (event := doc.get("event")):
            raise InputException("Trigger is missing an event kind")
        if not (commit_sha := doc.get("commit_sha")):
            raise InputException("Trigger is missing a commit sha")
        pr_number = doc.get("pr_number")
        if pr_number is not None:
            try:
                pr_number = int(pr_number)
            except (TypeError, ValueError) as err:
                raise InputException(
                    f"Invalid pull request number '{pr_number}'"
                ) from err
        return cls(
            event=EventKind.parse(event),
            branch=doc.get("branch") or "",
            commit_sha=commit_sha,
            pr_number=pr_number,
            build_all=bool(doc.get("build_all", False)),
            base_sha=doc.get("base_sha"),
        )

    class Config(BaseConfig):
        omit_none = True
