"""Shared values and helpers for retail-ci tests."""

from pathlib import Path

import git

SERVICES = ["ui", "catalog", "cart", "checkout", "orders"]
REGISTRY = "123456789012.dkr.ecr.us-east-1.amazonaws.com"
SHA = "abc123ef456"
AUTHOR = git.Actor("Test User", "test@example.com")

VALUES = """\
# Default values for {service}.
replicaCount: 1

image:
  repository: public.ecr.aws/aws-containers/retail-store-sample-{service}
  # Overrides the image tag whose default is the chart appVersion.
  tag: "1.0.0"
  pullPolicy: IfNotPresent
"""


def commit_all(repo: git.Repo, message: str) -> git.Commit:
    """Stage every file in the working tree and commit."""
    repo.git.add("--all")
    return repo.index.commit(message, author=AUTHOR, committer=AUTHOR)


def values_file(root: Path, service: str) -> Path:
    """Return the chart values file of a service."""
    return root / "src" / service / "chart" / "values.yaml"
