"""lazy-release: semantic versions and changelogs from monorepo git history."""

from lazy_release.changelog import build_changelog
from lazy_release.package_commits import resolve_commit_range
from lazy_release.versions import calculate_version_data

__all__ = ["build_changelog", "calculate_version_data", "resolve_commit_range"]
