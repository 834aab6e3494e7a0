"""Exception types raised by lazy-release.

Only input errors and invariant violations are raised. Missing or malformed
git data is logged and degraded instead (see the individual modules).
"""

from __future__ import annotations


class ReleaseError(RuntimeError):
    """Base class for all errors that abort a release command."""


class ConfigError(ReleaseError):
    """The [tool.lazy-release] table is malformed."""


class InvalidReferenceError(ReleaseError):
    """A user-supplied git reference does not resolve to a commit."""

    def __init__(self, ref: str) -> None:
        super().__init__(f"Invalid git reference: {ref!r} does not resolve to a commit")
        self.ref = ref


class PackageNotVersionedError(ReleaseError):
    """The requested package has no version series."""

    def __init__(self, package: str) -> None:
        super().__init__(
            f"Package {package!r} is not versioned "
            "(no static [project].version, or marked private)"
        )
        self.package = package


class VersionStateError(ReleaseError):
    """On-disk version and tag history disagree in a way we must not paper over."""

    def __init__(self, package: str, disk_version: str, tag_version: str) -> None:
        super().__init__(
            f"Package {package!r} version on disk ({disk_version}) is higher than "
            f"its latest git tag version ({tag_version}). Revert the manifest "
            "change or tag the release before preparing a new one."
        )
        self.package = package
        self.disk_version = disk_version
        self.tag_version = tag_version


class TagError(ReleaseError):
    """Creating, deleting or pushing a tag failed."""


class CommitNotFoundError(ReleaseError):
    """A commit hash could not be read. Always recovered by callers."""

    def __init__(self, commit_hash: str) -> None:
        super().__init__(f"Commit {commit_hash} not found")
        self.commit_hash = commit_hash
