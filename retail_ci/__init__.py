"""
retail-ci makes the decisions of the retail store CI/CD pipeline: which
services changed, which tags their images get, and how their Helm chart
values are updated and committed for ArgoCD to sync.
"""

__all__ = [
    "chart",
    "config",
    "detector",
    "exceptions",
    "git_repo",
    "github",
    "pipeline",
    "tags",
    "trigger",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
