"""Commit range resolution for a single package.

Turns "everything between two refs" into the commits that matter to one
package: commits touching its directory, commits touching an internal
dependency it had at that point in history, and merges whose PRs did
either. Merges come first, then the remaining direct commits, each group
newest first.
"""

from __future__ import annotations

import logging

from . import vcs
from .commits import CommitFetcher
from .config import ReleaseConfig
from .deps import DependencyAnalyzer
from .models import Commit, PackageDescriptor
from .packages import touches_path

logger = logging.getLogger(__name__)


class PackageCommits:
    """Resolves the commits relevant to one package.

    Args:
        package: The package to resolve commits for.
        config: Shared settings (timeouts, concurrency, layout).
        analyzer: Dependency analyzer; built from known_packages if omitted.
        fetcher: Commit fetcher; a default CommitFetcher if omitted.
        known_packages: Workspace package names for the default analyzer.
    """

    def __init__(
        self,
        package: PackageDescriptor,
        config: ReleaseConfig,
        analyzer: DependencyAnalyzer | None = None,
        fetcher: CommitFetcher | None = None,
        known_packages: set[str] | None = None,
    ) -> None:
        self.package = package
        self.config = config
        self.analyzer = analyzer or DependencyAnalyzer(package, config, known_packages)
        self.fetcher = fetcher or CommitFetcher(config)

    def resolve_commit_range(self, from_ref: str | None, to_ref: str = "HEAD") -> list[Commit]:
        """Commits relevant to the package in from_ref..to_ref.

        An empty from_ref means the whole history up to to_ref. Failures
        are logged and produce an empty list rather than an exception.
        """
        try:
            return self._resolve(from_ref, to_ref)
        except Exception as exc:
            logger.warning(
                "Could not resolve commits for %s in %s..%s: %s",
                self.package.name, from_ref or "", to_ref, exc,
            )
            return []

    def _resolve(self, from_ref: str | None, to_ref: str) -> list[Commit]:
        revisions = f"{from_ref}..{to_ref}" if from_ref else to_ref
        timeout = self.config.git_timeout

        all_hashes = vcs.log_hashes(revisions, timeout=timeout)
        merge_hashes = vcs.log_hashes(revisions, merges=True, timeout=timeout)
        merge_set = set(merge_hashes)

        if self.package.is_root:
            merges = merge_hashes
        else:
            touched = vcs.fan_out(
                self._merge_touches_package,
                merge_hashes,
                self.config.max_workers,
                on_error=self._skip_merge,
            )
            merges = [h for h, keep in zip(merge_hashes, touched) if keep]

        hashes = list(dict.fromkeys([h for h in all_hashes if h not in merge_set] + merges))
        fetched = vcs.fan_out(
            self.fetcher.fetch, hashes, self.config.max_workers, on_error=self._skip_commit
        )
        candidates = [c for c in fetched if c is not None]

        relevant = vcs.fan_out(
            self.is_relevant, candidates, self.config.max_workers, on_error=self._irrelevant
        )
        commits = [c for c, keep in zip(candidates, relevant) if keep]
        return order_commits(commits)

    def _merge_touches_package(self, merge_hash: str) -> bool:
        return bool(
            vcs.log_hashes(
                f"{merge_hash}^..{merge_hash}^2",
                paths=[self.package.path],
                timeout=self.config.git_timeout,
            )
        )

    def _skip_merge(self, merge_hash: str, exc: Exception) -> bool:
        logger.warning("Skipping merge %s: %s", merge_hash, exc)
        return False

    def _skip_commit(self, commit_hash: str, exc: Exception) -> None:
        logger.warning("Skipping commit %s: %s", commit_hash, exc)
        return None

    def _irrelevant(self, commit: Commit, exc: Exception) -> bool:
        logger.warning("Dropping commit %s from %s: %s", commit.short_hash, self.package.name, exc)
        return False

    def is_relevant(self, commit: Commit) -> bool:
        """Whether a commit belongs in the package's release.

        Root takes every commit that changed a file. Other packages take
        commits inside their directory, or inside the directory of an
        internal dependency as declared at that commit.
        """
        if self.package.is_root:
            return bool(commit.files)
        if touches_path(commit.files, self.package.path):
            return True
        if not commit.files:
            return False
        return any(
            touches_path(commit.files, dep_path)
            for dep_path in self.analyzer.dependency_paths_at(commit.hash)
        )

    def first_commit(self) -> str | None:
        """Oldest commit of the package: the repository root for root,
        else the first commit touching its directory (falling back to root).
        """
        timeout = self.config.git_timeout
        if not self.package.is_root:
            found = vcs.first_commit([self.package.path], timeout=timeout)
            if found:
                return found
        return vcs.first_commit(timeout=timeout)


def order_commits(commits: list[Commit]) -> list[Commit]:
    """Merges first, then commits not already inside a merge's PR; newest first.

    Unparseable dates sort as the oldest.
    """
    merges = [c for c in commits if c.is_merge]
    in_prs = {pc.hash for m in merges if m.pr is not None for pc in m.pr.commits}
    orphans = [c for c in commits if not c.is_merge and c.hash not in in_prs]
    merges.sort(key=lambda c: c.timestamp, reverse=True)
    orphans.sort(key=lambda c: c.timestamp, reverse=True)
    return merges + orphans


def resolve_commit_range(
    package: PackageDescriptor,
    from_ref: str | None,
    to_ref: str = "HEAD",
    config: ReleaseConfig | None = None,
    known_packages: set[str] | None = None,
) -> list[Commit]:
    """Module-level shortcut for PackageCommits(...).resolve_commit_range()."""
    config = config or ReleaseConfig()
    return PackageCommits(package, config, known_packages=known_packages).resolve_commit_range(
        from_ref, to_ref
    )
