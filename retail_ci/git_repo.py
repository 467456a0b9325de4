"""Library for the git operations of a pipeline run.

This finds the files that changed between two commits for change detection,
and commits chart updates back to the trunk branch. Pushing is retried after
rebasing when another run moved the branch in the meantime, since several
workflow runs may race to update the same branch.
"""

from collections.abc import Iterable
from functools import cache
import logging
import os
from pathlib import Path

import git

from .exceptions import GitException, InputException

__all__ = [
    "git_repo",
    "repo_root",
    "changed_paths",
    "previous_commit",
    "commit_and_push",
]

_LOGGER = logging.getLogger(__name__)

ERROR_DETAIL_SHALLOW = "Is the checkout shallow? Try fetching with fetch-depth: 0"


@cache
def git_repo(path: Path | None = None) -> git.repo.Repo:
    """Return the local git repo."""
    try:
        if path is None:
            return git.repo.Repo(os.getcwd(), search_parent_directories=True)
        return git.repo.Repo(str(path), search_parent_directories=True)
    except git.GitError as err:
        raise InputException(f"Unable to find git repo for {path}: {err}") from err


def repo_root(repo: git.repo.Repo | None = None) -> Path:
    """Return the local git repo path."""
    if repo is None:
        repo = git_repo()
    return Path(repo.git.rev_parse("--show-toplevel"))


def changed_paths(repo: git.repo.Repo, base: str, head: str = "HEAD") -> list[str]:
    """Return the paths of files changed between the two commits."""
    _LOGGER.debug("Computing changed paths %s..%s", base, head)
    try:
        output = repo.git.diff("--name-only", base, head)
    except git.GitCommandError as err:
        raise GitException(
            f"Unable to diff {base}..{head}: {err}. {ERROR_DETAIL_SHALLOW}"
        ) from err
    return [line for line in output.splitlines() if line]


def previous_commit(
    repo: git.repo.Repo,
    branch: str,
    trunk_branch: str,
    remote: str = "origin",
) -> str | None:
    """Return the commit a run without a base should compare against.

    A branch other than the trunk is compared with the point it forked from
    the remote trunk, and the trunk itself with its parent commit. Returns
    None when there is no such commit.
    """
    if branch and branch != trunk_branch:
        try:
            return str(repo.git.merge_base(f"{remote}/{trunk_branch}", "HEAD"))
        except git.GitCommandError as err:
            _LOGGER.debug("No merge base with %s/%s: %s", remote, trunk_branch, err)
    try:
        return str(repo.git.rev_parse("--verify", "HEAD~1"))
    except git.GitCommandError as err:
        _LOGGER.debug("HEAD has no parent commit: %s", err)
    return None


def _push(repo: git.repo.Repo, remote: str, branch: str, retries: int) -> None:
    """Push HEAD to the remote branch, rebasing onto it when rejected."""
    for attempt in range(1, retries + 1):
        try:
            repo.git.push(remote, f"HEAD:{branch}")
            return
        except git.GitCommandError as err:
            if attempt == retries:
                raise GitException(
                    f"Unable to push to {remote}/{branch} after {retries} attempt(s): {err}"
                ) from err
            _LOGGER.warning(
                "Push to %s/%s rejected (attempt %d/%d), rebasing: %s",
                remote,
                branch,
                attempt,
                retries,
                err.stderr.strip() if isinstance(err.stderr, str) else err,
            )
        try:
            repo.git.pull("--rebase", remote, branch)
        except git.GitCommandError as err:
            raise GitException(
                f"Unable to rebase onto {remote}/{branch}: {err}"
            ) from err


def commit_and_push(
    repo: git.repo.Repo,
    paths: Iterable[str],
    message: str,
    author: git.Actor,
    branch: str,
    remote: str = "origin",
    push: bool = True,
    retries: int = 3,
) -> str | None:
    """Commit the changed files and push them to the branch.

    Returns the sha of the new commit, or None when the files have no changes.
    """
    paths = list(paths)
    try:
        repo.index.add(paths)
        if not repo.index.diff("HEAD"):
            _LOGGER.info("No changes to commit in %s", ", ".join(paths))
            return None
        commit = repo.index.commit(message, author=author, committer=author)
    except (git.GitError, OSError) as err:
        raise GitException(f"Unable to commit {', '.join(paths)}: {err}") from err
    _LOGGER.info("Created commit %s: %s", commit.hexsha, message)

    if not push:
        return str(commit.hexsha)

    with repo.git.custom_environment(
        GIT_COMMITTER_NAME=author.name or "",
        GIT_COMMITTER_EMAIL=author.email or "",
    ):
        _push(repo, remote, branch, retries)
    # A rebase rewrites the commit
    sha = str(repo.head.commit.hexsha)
    _LOGGER.info("Pushed %s to %s/%s", sha, remote, branch)
    return sha
