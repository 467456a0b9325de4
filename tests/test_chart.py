"""Tests for the chart library."""

from pathlib import Path

import pytest
import yaml

from retail_ci.chart import (
    ChartUpdate,
    ChartValue,
    repository_for,
    should_persist,
    summarize,
    update_chart,
    update_values,
    values_path,
)
from retail_ci.config import PipelineConfig
from retail_ci.exceptions import ConfigNotFoundError
from retail_ci.trigger import EventKind, TriggerContext

from .common import REGISTRY, SHA, VALUES, values_file

CATALOG_REPOSITORY = f"{REGISTRY}/retail-store-sample-catalog"
NEW_VALUE = ChartValue(repository="registry/catalog", tag="abc123ef456")


def test_values_path() -> None:
    """Test locating the values file of a service."""
    config = PipelineConfig()
    assert values_path(config, "cart") == Path("src/cart/chart/values.yaml")


def test_repository_for() -> None:
    """Test rendering the repository of a service."""
    config = PipelineConfig()
    assert repository_for(config, f"{REGISTRY}/", "catalog") == CATALOG_REPOSITORY


@pytest.mark.parametrize(
    ("event", "branch", "expected"),
    [
        (EventKind.PUSH, "main", True),
        (EventKind.PUSH, "feature/cart", False),
        (EventKind.PULL_REQUEST, "main", False),
        (EventKind.MANUAL, "main", False),
    ],
)
def test_should_persist(event: EventKind, branch: str, expected: bool) -> None:
    """Test only pushes to the trunk branch persist updates."""
    context = TriggerContext(event=event, branch=branch, commit_sha=SHA, pr_number=1)
    assert should_persist(context, "main") == expected


def test_update_values_preserves_formatting() -> None:
    """Test only the repository and tag scalars are replaced."""
    content = VALUES.format(service="catalog")
    previous, result = update_values("catalog", content, "image", NEW_VALUE)
    assert previous == ChartValue(
        repository="public.ecr.aws/aws-containers/retail-store-sample-catalog",
        tag="1.0.0",
    )
    assert result == """\
# Default values for catalog.
replicaCount: 1

image:
  repository: registry/catalog
  # Overrides the image tag whose default is the chart appVersion.
  tag: "abc123ef456"
  pullPolicy: IfNotPresent
"""


@pytest.mark.parametrize(
    ("tag_line", "tag", "expected"),
    [
        ("tag: 1.0.0", "abc123ef456", "tag: abc123ef456"),
        ("tag: 1.0.0", "1234567", 'tag: "1234567"'),
        ("tag: '1.0.0'", "abc123ef456", "tag: 'abc123ef456'"),
        ('tag: "1.0.0"', "pr-42-abc123ef456", 'tag: "pr-42-abc123ef456"'),
    ],
)
def test_update_values_quoting(tag_line: str, tag: str, expected: str) -> None:
    """Test the replaced tag keeps its quoting and stays a string."""
    content = f"image:\n  repository: old\n  {tag_line}\n"
    _, result = update_values(
        "catalog", content, "image", ChartValue(repository="new", tag=tag)
    )
    assert result == f"image:\n  repository: new\n  {expected}\n"
    assert yaml.safe_load(result)["image"]["tag"] == tag


def test_update_values_nested_key() -> None:
    """Test an image mapping nested under another key."""
    content = "app:\n  image: {repository: old, tag: v1}\n"
    _, result = update_values("catalog", content, "app.image", NEW_VALUE)
    assert result == "app:\n  image: {repository: registry/catalog, tag: abc123ef456}\n"


def test_update_values_empty_tag() -> None:
    """Test an empty plain tag falls back to rewriting the document."""
    content = "image:\n  repository: old\n  tag:\nservice:\n  port: 80\n"
    previous, result = update_values("catalog", content, "image", NEW_VALUE)
    assert previous == ChartValue(repository="old", tag="")
    assert yaml.safe_load(result) == {
        "image": {"repository": "registry/catalog", "tag": "abc123ef456"},
        "service": {"port": 80},
    }


def test_update_values_duplicate_key() -> None:
    """Test the last of duplicate image mappings is updated, as yaml loads it."""
    content = (
        "image:\n  repository: a\n  tag: v1\n"
        "image:\n  repository: b\n  tag: v2\n"
    )
    previous, result = update_values("catalog", content, "image", NEW_VALUE)
    assert previous == ChartValue(repository="b", tag="v2")
    assert result.startswith("image:\n  repository: a\n  tag: v1\n")
    assert yaml.safe_load(result)["image"] == NEW_VALUE.to_dict()


@pytest.mark.parametrize(
    ("content", "match"),
    [
        ("", "'image' mapping not found"),
        ("replicaCount: 1\n", "'image' mapping not found"),
        ("image: nginx\n", "'image' mapping not found"),
        ("image:\n  tag: v1\n", "'image.repository' is missing"),
        ("image:\n  repository: old\n", "'image.tag' is missing"),
        ("image:\n  repository: old\n  tag: [v1]\n", "'image.tag' is missing"),
        ("image: [\n", "not valid yaml"),
    ],
)
def test_update_values_not_found(content: str, match: str) -> None:
    """Test values files without an image mapping."""
    with pytest.raises(ConfigNotFoundError, match=match) as exc_info:
        update_values("catalog", content, "image", NEW_VALUE)
    assert exc_info.value.service == "catalog"


async def test_update_chart_persist(repo_root: Path) -> None:
    """Test updating the chart values file on disk."""
    update = await update_chart(
        repo_root, PipelineConfig(), "catalog", REGISTRY, SHA, persist=True
    )
    assert update.persisted
    assert update.changed
    assert update.path == "src/catalog/chart/values.yaml"
    assert update.current == ChartValue(repository=CATALOG_REPOSITORY, tag=SHA)
    assert update.current.image == f"{CATALOG_REPOSITORY}:{SHA}"
    values = yaml.safe_load(values_file(repo_root, "catalog").read_text())
    assert values["image"] == {
        "repository": CATALOG_REPOSITORY,
        "tag": SHA,
        "pullPolicy": "IfNotPresent",
    }
    assert '-  tag: "1.0.0"' in update.diff
    assert f'+  tag: "{SHA}"' in update.diff


async def test_update_chart_without_persist(repo_root: Path) -> None:
    """Test computing an update without touching the values file."""
    before = values_file(repo_root, "cart").read_text()
    update = await update_chart(
        repo_root, PipelineConfig(), "cart", REGISTRY, SHA, persist=False
    )
    assert not update.persisted
    assert update.changed
    assert update.diff.startswith("--- a/src/cart/chart/values.yaml\n")
    assert values_file(repo_root, "cart").read_text() == before


async def test_update_chart_unchanged(repo_root: Path) -> None:
    """Test a chart that already points at the image is left alone."""
    config = PipelineConfig()
    await update_chart(repo_root, config, "ui", REGISTRY, SHA, persist=True)
    update = await update_chart(repo_root, config, "ui", REGISTRY, SHA, persist=True)
    assert not update.changed
    assert not update.persisted
    assert update.diff == ""


async def test_update_chart_missing_file(tmp_path: Path) -> None:
    """Test a service without a values file."""
    with pytest.raises(ConfigNotFoundError, match="does not exist"):
        await update_chart(
            tmp_path, PipelineConfig(), "orders", REGISTRY, SHA, persist=True
        )


async def test_update_chart_undecodable(repo_root: Path) -> None:
    """Test a values file that is not utf-8."""
    values_file(repo_root, "cart").write_bytes(b"image:\n  tag: \xff\xfe\n")
    with pytest.raises(ConfigNotFoundError, match="Unable to read values file"):
        await update_chart(
            repo_root, PipelineConfig(), "cart", REGISTRY, SHA, persist=True
        )


async def test_update_chart_directory(repo_root: Path) -> None:
    """Test a values path that is a directory."""
    path = values_file(repo_root, "orders")
    path.unlink()
    path.mkdir()
    with pytest.raises(ConfigNotFoundError, match="Unable to read values file"):
        await update_chart(
            repo_root, PipelineConfig(), "orders", REGISTRY, SHA, persist=True
        )


async def test_update_chart_keeps_line_endings(repo_root: Path) -> None:
    """Test a values file with CRLF line endings keeps them."""
    path = values_file(repo_root, "catalog")
    content = VALUES.format(service="catalog").replace("\n", "\r\n")
    path.write_bytes(content.encode())
    await update_chart(
        repo_root, PipelineConfig(), "catalog", REGISTRY, SHA, persist=True
    )
    result = path.read_bytes().decode()
    assert result.count("\r\n") == content.count("\r\n")
    assert f'  tag: "{SHA}"\r\n' in result
    assert f"  repository: {CATALOG_REPOSITORY}\r\n" in result


def test_serialize_update() -> None:
    """Test the diff is not part of the serialized update."""
    update = ChartUpdate(
        service="ui",
        path="src/ui/chart/values.yaml",
        previous=ChartValue(repository="old", tag="v1"),
        current=ChartValue(repository="new", tag="v2"),
        diff="--- a\n+++ b\n",
    )
    assert update.to_dict() == {
        "service": "ui",
        "path": "src/ui/chart/values.yaml",
        "previous": {"repository": "old", "tag": "v1"},
        "current": {"repository": "new", "tag": "v2"},
        "persisted": False,
    }


def test_summarize() -> None:
    """Test the markdown summary of chart updates."""
    updates = [
        ChartUpdate(
            service="ui",
            path="src/ui/chart/values.yaml",
            previous=ChartValue(repository="old", tag="v1"),
            current=ChartValue(repository="new", tag="v2"),
            persisted=True,
            diff="-  tag: v1\n+  tag: v2\n",
        ),
        ChartUpdate(
            service="cart",
            path="src/cart/chart/values.yaml",
            previous=ChartValue(repository="new", tag="v2"),
            current=ChartValue(repository="new", tag="v2"),
        ),
    ]
    summary = summarize(updates)
    assert "| ui | `new:v2` | committed |" in summary
    assert "| cart | `new:v2` | unchanged |" in summary
    assert "<details><summary>src/ui/chart/values.yaml</summary>" in summary
    assert "src/cart/chart/values.yaml" not in summary
    assert summarize([]) == "No chart updates.\n"
