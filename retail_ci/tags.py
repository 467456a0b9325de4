"""Helper functions for computing container image tags for a trigger."""

from dataclasses import dataclass
import logging
from typing import Iterator

from mashumaro import DataClassDictMixin

from .exceptions import InputException, UnsupportedEventError
from .trigger import EventKind, TriggerContext

__all__ = [
    "ImageTags",
    "generate_tags",
    "image_reference",
]

_LOGGER = logging.getLogger(__name__)

LATEST_TAG = "latest"
PR_TAG_PREFIX = "pr"


@dataclass
class ImageTags(DataClassDictMixin):
    """The tags an image is pushed with for a single build."""

    primary: str
    """The unique tag that chart values point at."""

    latest: str = LATEST_TAG
    """The constant moving tag."""

    def __iter__(self) -> Iterator[str]:
        """Iterate over all tags, primary first."""
        return iter([self.primary, self.latest])

    @property
    def names(self) -> list[str]:
        """Return all tags as a list."""
        return list(self)


def generate_tags(context: TriggerContext, latest: str = LATEST_TAG) -> ImageTags:
    """Return the image tags for the build trigger.

    A push or manual run is tagged with the commit sha, and a pull request is
    tagged `pr-<number>-<sha>`. The `latest` tag is always included.
    """
    if not context.commit_sha:
        raise InputException("Unable to tag image without a commit sha")
    if context.event in (EventKind.PUSH, EventKind.MANUAL):
        primary = context.commit_sha
    elif context.event == EventKind.PULL_REQUEST:
        if context.pr_number is None:
            raise InputException("Pull request trigger is missing a pull request number")
        primary = f"{PR_TAG_PREFIX}-{context.pr_number}-{context.commit_sha}"
    else:
        raise UnsupportedEventError(str(context.event))
    _LOGGER.debug("Tags for %s: %s, %s", context.event.value, primary, latest)
    return ImageTags(primary=primary, latest=latest)


def image_reference(repository: str, tag: str) -> str:
    """Render the full image reference for a repository and tag."""
    return f"{repository}:{tag}"
