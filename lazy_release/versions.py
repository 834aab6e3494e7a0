"""Version parsing, bumping and the release bump decision.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0"),
and decides how far a package's version moves for a set of commits.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import semver

from .config import ReleaseConfig
from .exceptions import VersionStateError
from .models import BumpType, Commit, PackageDescriptor, VersionDecision
from .packages import touches_path

if TYPE_CHECKING:
    from .tags import PackageTags

WORKSPACE_LEVEL_TYPES = ("feat", "fix", "refactor")


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Only the first 3 components are used (major.minor.patch).
    """
    parts = version_str.split(".")
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def bump_version(version_str: str, bump: BumpType) -> str:
    """Increment one component, zeroing the lower ones.

    Examples:
        "1.2.3", MAJOR → "2.0.0"
        "1.2.3", MINOR → "1.3.0"
        "1.2", PATCH → "1.2.1"
    """
    version = parse_version(version_str)
    if bump is BumpType.MAJOR:
        return str(version.bump_major())
    if bump is BumpType.MINOR:
        return str(version.bump_minor())
    if bump is BumpType.PATCH:
        return str(version.bump_patch())
    return str(version)


def compare_versions(a: str, b: str) -> int:
    """-1, 0 or 1 as a is lower than, equal to or higher than b."""
    return parse_version(a).compare(parse_version(b))


def is_workspace_file(path: str, config: ReleaseConfig) -> bool:
    """Top-level files, dot-directories and configured workspace paths."""
    if "/" not in path or path.startswith("."):
        return True
    return any(path.startswith(prefix) for prefix in config.workspace_paths)


class VersionCalculator:
    """Decides the next version of one package.

    Args:
        package: The package being released.
        tags: Tag series reader used for the latest version and collisions.
        config: Layout settings for the root rules.
    """

    def __init__(
        self, package: PackageDescriptor, tags: PackageTags, config: ReleaseConfig
    ) -> None:
        self.package = package
        self.tags = tags
        self.config = config

    def _is_workspace_commit(self, commit: Commit) -> bool:
        if self.config.root_package in commit.message.scopes:
            return True
        return any(is_workspace_file(f, self.config) for f in commit.files)

    def _confined_to_apps(self, commit: Commit) -> bool:
        prefix = self.config.apps_dir.rstrip("/") + "/"
        return bool(commit.files) and all(f.startswith(prefix) for f in commit.files)

    def _root_bump_type(self, commits: list[Commit]) -> BumpType:
        breaking = [c for c in commits if c.message.is_breaking]
        if any(self._is_workspace_commit(c) for c in breaking):
            return BumpType.MAJOR
        if any(self._confined_to_apps(c) for c in breaking):
            return BumpType.MINOR
        if any(
            c.message.type in WORKSPACE_LEVEL_TYPES and self._is_workspace_commit(c)
            for c in commits
        ):
            return BumpType.MINOR
        if any(
            touches_path(c.files, self.config.apps_dir)
            or touches_path(c.files, self.config.libs_dir)
            for c in commits
        ):
            return BumpType.PATCH
        return BumpType.NONE

    def calculate_bump_type(self, commits: list[Commit]) -> BumpType:
        """Bump type implied by the package's commits.

        Merges count by their own message; the commits of their PR may
        touch other packages and are not consulted.
        """
        if not commits:
            return BumpType.NONE
        if self.package.is_root:
            return self._root_bump_type(commits)
        if any(c.message.is_breaking for c in commits):
            return BumpType.MAJOR
        if any(c.message.type == "feat" for c in commits):
            return BumpType.MINOR
        return BumpType.PATCH

    def calculate_version_data(
        self,
        current_version: str,
        commits: list[Commit],
        override_bump: BumpType | None = None,
    ) -> VersionDecision:
        """Decide whether and how far to bump.

        The bump is applied to the latest tagged version of the series, or
        to the on-disk version when nothing has been tagged yet.

        Args:
            current_version: Version currently in the package manifest.
            commits: Commits relevant to the package since its last release.
            override_bump: Replaces the computed bump type outright.

        Raises:
            VersionStateError: If the on-disk version is ahead of the latest
                tag and is not the version this release would produce.
            ValueError: If override_bump is SYNCED.
        """
        latest = self.tags.latest_version()
        base = latest or current_version

        if override_bump is BumpType.SYNCED:
            raise ValueError("synced is a result, not a bump type")
        if override_bump is not None:
            bump = override_bump
            reason = f"Bump type overridden to {bump.value}"
        elif not commits and latest is None and compare_versions(current_version, "0.0.0") == 0:
            bump = BumpType.MINOR
            reason = "First version bump from 0.0.0"
        elif not commits:
            bump = BumpType.NONE
            reason = "No commits in range"
        else:
            bump = self.calculate_bump_type(commits)
            reason = "No version bump needed" if bump is BumpType.NONE else ""

        if bump is BumpType.NONE:
            self._check_disk_not_ahead(current_version, latest)
            return VersionDecision(
                current_version=current_version,
                bump_type=BumpType.NONE,
                should_bump=False,
                target_version=current_version,
                reason=reason,
            )

        target = bump_version(base, bump)
        if self.tags.tag_exists(target):
            return VersionDecision(
                current_version=current_version,
                bump_type=BumpType.NONE,
                should_bump=False,
                target_version=current_version,
                reason=f"Version {target} already exists as tag {self.tags.tag_name(target)}",
            )
        if compare_versions(target, current_version) == 0:
            return VersionDecision(
                current_version=current_version,
                bump_type=BumpType.SYNCED,
                should_bump=False,
                target_version=target,
                reason=f"Version {target} already synced on disk",
            )
        self._check_disk_not_ahead(current_version, latest)
        if reason:
            reason = f"{reason}: {current_version} => {target}"
        else:
            reason = f"New {bump.value} version bump to {target}"
        return VersionDecision(
            current_version=current_version,
            bump_type=bump,
            should_bump=True,
            target_version=target,
            reason=reason,
        )

    def _check_disk_not_ahead(self, current_version: str, latest: str | None) -> None:
        if latest is not None and compare_versions(current_version, latest) > 0:
            raise VersionStateError(self.package.name, current_version, latest)


def calculate_version_data(
    package: PackageDescriptor,
    current_version: str,
    commits: list[Commit],
    override_bump: BumpType | None = None,
    config: ReleaseConfig | None = None,
) -> VersionDecision:
    """Convenience wrapper building a VersionCalculator over the package's tags."""
    from .tags import PackageTags

    config = config or ReleaseConfig()
    calculator = VersionCalculator(package, PackageTags(package, config), config)
    return calculator.calculate_version_data(current_version, commits, override_bump)
