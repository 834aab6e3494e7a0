"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import tomlkit

from lazy_release.commits import parse_message
from lazy_release.config import ReleaseConfig
from lazy_release.models import (
    BranchRef,
    Commit,
    PackageDescriptor,
    PRCategory,
    PRInfo,
    PRStats,
    RawCommit,
)
from lazy_release.packages import describe_package


@pytest.fixture
def config() -> ReleaseConfig:
    return ReleaseConfig()


@pytest.fixture
def api_package(config: ReleaseConfig) -> PackageDescriptor:
    """An application package at apps/api."""
    return describe_package("api", config)


@pytest.fixture
def core_package(config: ReleaseConfig) -> PackageDescriptor:
    """A namespaced library at packages/core."""
    return describe_package("repo-core", config)


@pytest.fixture
def root_package(config: ReleaseConfig) -> PackageDescriptor:
    return describe_package("root", config)


@pytest.fixture
def make_commit() -> Callable[..., Commit]:
    """Build a Commit from a message without touching git."""

    def _make(
        sha: str,
        message: str,
        files: list[str] | None = None,
        date: str = "2024-05-01T12:00:00+00:00",
        parents: list[str] | None = None,
        pr_commits: list[Commit] | None = None,
        category: PRCategory = PRCategory.OTHER,
        number: str = "",
    ) -> Commit:
        subject, _, body = message.partition("\n")
        raw = RawCommit(
            hash=sha,
            parents=parents if parents is not None else ["p" + sha],
            author="Dev",
            date=date,
            subject=subject,
            body_lines=[line for line in body.splitlines() if line.strip()],
        )
        pr = None
        if pr_commits is not None:
            pr = PRInfo(
                number=number,
                category=category,
                stats=PRStats(commit_count=len(pr_commits)),
                commits=pr_commits,
                branch=BranchRef(name="x", full_name="feature/x", prefix="feature"),
            )
        return Commit(raw=raw, message=parse_message(message), files=files or [], pr=pr)

    return _make


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A small uv workspace: root, apps/api and packages/core."""
    (tmp_path / ".git").mkdir()
    (tmp_path / "pyproject.toml").write_text(
        """\
[project]
name = "acme"
version = "1.0.0"

[tool.uv.workspace]
members = ["apps/*", "packages/*"]
"""
    )
    api = tmp_path / "apps" / "api"
    api.mkdir(parents=True)
    (api / "pyproject.toml").write_text(
        """\
[project]
name = "api"
# keep in sync with tags
version = "0.1.0"
dependencies = ["repo-core>=0.1", "click>=8.0"]
"""
    )
    core = tmp_path / "packages" / "core"
    core.mkdir(parents=True)
    (core / "pyproject.toml").write_text(
        """\
[project]
name = "repo-core"
dynamic = ["version"]
"""
    )
    return tmp_path


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "My_Package"
version = "2.0.0"
dependencies = ["click>=8.0", "repo-core>=1.0"]
classifiers = ["Programming Language :: Python :: 3"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0", {include-group = "dev"}]

[tool.uv.sources]
repo-core = { workspace = true }
Repo_Utils = { path = "../../packages/utils", editable = true }
requests = { git = "https://github.com/psf/requests" }
"""
    return tomlkit.parse(content)
