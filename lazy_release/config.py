"""Repository configuration for lazy-release.

Settings live in the [tool.lazy-release] table of the workspace root
pyproject.toml. Every component takes the resulting ReleaseConfig as an
explicit argument; there is no module-level configuration state.

Example:

    [tool.lazy-release]
    namespace = "acme-"
    libs-dir = "libs"
    workspace-paths = ["docker/", "scripts/"]
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tomlkit.exceptions import TOMLKitError

from .exceptions import ConfigError

TOOL_TABLE = "lazy-release"


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class ReleaseConfig(BaseModel):
    """Settings shared by every lazy-release component.

    Attributes:
        root_package: Name under which the workspace root is versioned.
        namespace: Name prefix marking internal library packages.
        libs_dir: Directory holding namespaced library packages.
        apps_dir: Directory holding application packages.
        default_branch: Branch assumed when a merge names no source branch.
        branch_prefixes: Recognized `<prefix>/<name>` branch prefixes.
        merge_markers: Subject prefixes identifying merge commits.
        bot_markers: Author markers identifying dependency-bot commits.
        dependency_scopes: Commit scopes that mark dependency updates.
        workspace_paths: Extra path prefixes treated as workspace-level
            (top-level files and dot-directories always are).
        unreleased_label: Changelog label for changes without a release.
        changelog_file: Changelog file name inside each package.
        extends: Path of a TOML file whose [tool.uv.sources] this one extends.
        git_timeout: Seconds before a git subprocess is killed.
        max_workers: Upper bound on concurrent git queries.
    """

    model_config = ConfigDict(
        alias_generator=_kebab, populate_by_name=True, extra="forbid", frozen=True
    )

    root_package: str = "root"
    namespace: str = "repo-"
    libs_dir: str = "packages"
    apps_dir: str = "apps"
    default_branch: str = "main"
    branch_prefixes: list[str] = Field(
        default_factory=lambda: [
            "feature", "fix", "hotfix", "release", "docs",
            "refactor", "ci", "chore", "wip", "renovate", "dependabot",
        ]
    )
    merge_markers: list[str] = Field(
        default_factory=lambda: ["Merge pull request", "Merge branch"]
    )
    bot_markers: list[str] = Field(
        default_factory=lambda: ["renovate[bot]", "dependabot[bot]"]
    )
    dependency_scopes: list[str] = Field(
        default_factory=lambda: ["deps", "dependencies", "dep", "renovate", "dependabot"]
    )
    workspace_paths: list[str] = Field(default_factory=list)
    unreleased_label: str = "Unreleased"
    changelog_file: str = "CHANGELOG.md"
    extends: str | None = None
    git_timeout: float = Field(default=60.0, gt=0)
    max_workers: int = Field(default=8, ge=1)


def config_from_table(table: dict[str, Any]) -> ReleaseConfig:
    """Validate a raw [tool.lazy-release] mapping.

    Raises:
        ConfigError: On unknown keys or values of the wrong type.
    """
    try:
        return ReleaseConfig.model_validate(table)
    except ValidationError as exc:
        raise ConfigError(f"Invalid [tool.{TOOL_TABLE}] configuration:\n{exc}") from exc


def load_config(root: Path | None = None) -> ReleaseConfig:
    """Load configuration from the workspace root pyproject.toml.

    A missing file or table yields the defaults.
    """
    pyproject = (root or Path.cwd()) / "pyproject.toml"
    if not pyproject.exists():
        return ReleaseConfig()
    try:
        doc = tomlkit.parse(pyproject.read_text())
    except TOMLKitError as exc:
        raise ConfigError(f"Cannot parse {pyproject}: {exc}") from exc
    table = doc.get("tool", {}).get(TOOL_TABLE)
    if table is None:
        return ReleaseConfig()
    return config_from_table(table.unwrap())
