"""Fixtures for retail-ci tests."""

from collections.abc import Generator
from pathlib import Path

import git
import pytest

from retail_ci import git_repo

from .common import SERVICES, VALUES, commit_all, values_file

ENV_VARS = [
    "GITHUB_EVENT_NAME",
    "GITHUB_EVENT_PATH",
    "GITHUB_REF_NAME",
    "GITHUB_HEAD_REF",
    "GITHUB_SHA",
    "GITHUB_OUTPUT",
    "GITHUB_STEP_SUMMARY",
    "ECR_REGISTRY",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate tests from a GitHub Actions runner environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    git_repo.git_repo.cache_clear()
    yield
    git_repo.git_repo.cache_clear()


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    """A git repository with a chart for every service."""
    root = tmp_path / "repo"
    for service in SERVICES:
        values = values_file(root, service)
        values.parent.mkdir(parents=True)
        values.write_text(VALUES.format(service=service))
    (root / "README.md").write_text("# Retail store\n")
    repo = git.Repo.init(root)
    repo.git.symbolic_ref("HEAD", "refs/heads/main")
    commit_all(repo, "Initial commit")
    return root


@pytest.fixture
def repo(repo_root: Path) -> git.Repo:
    """The git repository object for the test repository."""
    return git.Repo(repo_root)


@pytest.fixture
def remote(tmp_path: Path, repo: git.Repo) -> Path:
    """A bare repository configured as the origin remote."""
    bare = tmp_path / "remote.git"
    repo.clone(str(bare), bare=True)
    repo.create_remote("origin", str(bare))
    return bare
