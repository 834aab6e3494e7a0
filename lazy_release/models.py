"""Data models for lazy-release.

These Pydantic models represent the values passed between the release
components. They are built fresh for every invocation and never persisted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class BumpType(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    NONE = "none"
    SYNCED = "synced"


class PRCategory(str, Enum):
    """Closed set of categories a reconstructed pull request falls into."""

    FEATURES = "features"
    BUGFIXES = "bugfixes"
    DEPENDENCIES = "dependencies"
    INFRASTRUCTURE = "infrastructure"
    DOCUMENTATION = "documentation"
    REFACTORING = "refactoring"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self][1]

    @property
    def emoji(self) -> str:
        return _CATEGORY_LABELS[self][0]


_CATEGORY_LABELS = {
    PRCategory.FEATURES: ("🚀", "Feature Releases"),
    PRCategory.BUGFIXES: ("🐛", "Bug Fixes & Improvements"),
    PRCategory.DEPENDENCIES: ("📦", "Dependency Updates"),
    PRCategory.INFRASTRUCTURE: ("🏗️", "Infrastructure & Tooling"),
    PRCategory.DOCUMENTATION: ("📚", "Documentation"),
    PRCategory.REFACTORING: ("♻️", "Code Quality & Refactoring"),
    PRCategory.OTHER: ("🔄", "Other Changes"),
}


class RawCommit(BaseModel):
    """Commit metadata exactly as git reports it.

    Attributes:
        hash: Full commit sha.
        parents: Parent shas; more than one means a merge commit.
        author: Author name.
        date: ISO-8601 author date. May be empty or unparseable.
        subject: First line of the message.
        body_lines: Non-blank lines after the subject.
    """

    model_config = ConfigDict(frozen=True)

    hash: str
    parents: list[str] = Field(default_factory=list)
    author: str = ""
    date: str = ""
    subject: str = ""
    body_lines: list[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return "\n".join([self.subject, *self.body_lines])


class ParsedMessage(BaseModel):
    """Structured view of a commit message.

    Attributes:
        subject: The original first line.
        type: Conventional type, or merge/deps/other for unconventional messages.
        scopes: Scopes in the order written; may be empty.
        description: Text after "type(scope): ", or the full subject.
        body_lines: Non-blank body lines.
        is_breaking: The subject carried a "!" marker.
        is_merge: The subject starts with a merge marker.
        is_dependency: A dependency scope or bot marker was found.
    """

    model_config = ConfigDict(frozen=True)

    subject: str
    type: str
    scopes: list[str] = Field(default_factory=list)
    description: str
    body_lines: list[str] = Field(default_factory=list)
    is_breaking: bool = False
    is_merge: bool = False
    is_dependency: bool = False


class BranchRef(BaseModel):
    """Source branch of a pull request.

    Attributes:
        name: Branch name without its prefix ("login" for "feature/login").
        full_name: Branch name as it appears after remote/owner stripping.
        prefix: Recognized prefix such as "feature", if any.
    """

    name: str
    full_name: str
    prefix: str | None = None


class PRStats(BaseModel):
    commit_count: int = 0
    file_count: int | None = None
    lines_added: int | None = None
    lines_deleted: int | None = None


class PRInfo(BaseModel):
    """Pull request reconstructed from a merge commit.

    Attributes:
        number: PR number as written in the merge message, or "" if absent.
        category: Dominant kind of change across the PR's commits.
        stats: Commit, file and line counts.
        commits: The commits the merge brought in.
        branch: Source branch of the merge.
    """

    number: str = ""
    category: PRCategory = PRCategory.OTHER
    stats: PRStats = Field(default_factory=PRStats)
    commits: list[Commit] = Field(default_factory=list)
    branch: BranchRef


class Commit(BaseModel):
    """A fully parsed commit. Equality and hashing go by commit sha."""

    raw: RawCommit
    message: ParsedMessage
    files: list[str] = Field(default_factory=list)
    pr: PRInfo | None = None

    @property
    def hash(self) -> str:
        return self.raw.hash

    @property
    def short_hash(self) -> str:
        return self.raw.hash[:7]

    @property
    def date(self) -> str:
        return self.raw.date

    @property
    def is_merge(self) -> bool:
        return self.message.is_merge or len(self.raw.parents) > 1

    @property
    def timestamp(self) -> datetime:
        """Parsed author date; EPOCH when missing or unparseable."""
        try:
            parsed = datetime.fromisoformat(self.raw.date.strip())
        except ValueError:
            return EPOCH
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Commit):
            return NotImplemented
        return self.hash == other.hash

    def __hash__(self) -> int:
        return hash(self.hash)


PRInfo.model_rebuild()


class PackageDescriptor(BaseModel):
    """Where a package lives and how its releases are tagged.

    Attributes:
        name: Package name ("root" for the workspace root).
        path: Directory relative to the repository root ("." for root).
        manifest_path: Path of the package's pyproject.toml.
        changelog_path: Path of the package's changelog.
        tag_prefix: Prefix of the package's version tags ("v", "api-v").
        is_root: Whether this is the workspace root package.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    manifest_path: str
    changelog_path: str
    tag_prefix: str
    is_root: bool = False


class VersionDecision(BaseModel):
    """Outcome of the version bump calculation.

    should_bump is only ever True when target_version differs from
    current_version and is not already tagged for the package.
    """

    current_version: str
    bump_type: BumpType
    should_bump: bool
    target_version: str
    reason: str


class Tag(BaseModel):
    """A git tag and what could be inferred from its name.

    Attributes:
        name: Full tag name.
        prefix: Leading non-numeric part ("v", "api-v"), or "".
        format: "semver", "calver", "custom", or None when unknown.
    """

    name: str
    prefix: str = ""
    format: str | None = None
    sha: str | None = None
    date: str | None = None
    message: str | None = None


class TagVersion(BaseModel):
    """A released version of a package, as recorded by its tag."""

    tag: str
    version: str
    sha: str | None = None
    date: str | None = None
    message: str | None = None
