"""Changelog building and merging.

A changelog is handled as an ordered map from version label to entry. New
entries carry commits and are rendered by a template; entries parsed from an
existing file keep their text verbatim, so released sections are never
rewritten or duplicated.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Protocol

import semver
from pydantic import BaseModel, Field

from .config import ReleaseConfig
from .models import EPOCH, BumpType, Commit, PackageDescriptor, PRCategory, VersionDecision
from .versions import parse_version


class ChangelogEntry(BaseModel):
    """One version section of a changelog.

    Attributes:
        label: Version string or the unreleased label.
        commits: Commits of a newly generated entry.
        text: Verbatim section text of an entry parsed from an existing file.
    """

    label: str
    commits: list[Commit] = Field(default_factory=list)
    text: str | None = None


ChangelogMap = dict[str, ChangelogEntry]


class ChangelogTemplate(Protocol):
    def parse_versions(self, text: str) -> ChangelogMap: ...

    def render(self, entries: ChangelogMap) -> str: ...


def entry_label(decision: VersionDecision, config: ReleaseConfig) -> str:
    if decision.should_bump or decision.bump_type is BumpType.SYNCED:
        return decision.target_version
    return config.unreleased_label


def build_changelog_map(
    commits: list[Commit], decision: VersionDecision, config: ReleaseConfig | None = None
) -> ChangelogMap:
    """Map holding the single entry this release adds.

    Keyed by the target version when a release is being made, else by the
    unreleased label. Empty when there is nothing to record.
    """
    config = config or ReleaseConfig()
    if not commits and not decision.should_bump:
        return {}
    label = entry_label(decision, config)
    return {label: ChangelogEntry(label=label, commits=list(commits))}


def merge_changelog_maps(existing: ChangelogMap, incoming: ChangelogMap) -> ChangelogMap:
    """Union of two maps; incoming entries replace existing ones with the same label."""
    merged = dict(existing)
    merged.update(incoming)
    return merged


def count_commits(entries: ChangelogMap) -> int:
    """Commits across generated entries, counting each merge's PR commits."""
    total = 0
    for entry in entries.values():
        for commit in entry.commits:
            total += 1
            if commit.pr is not None:
                total += len(commit.pr.commits)
    return total


TYPE_HEADINGS = {
    "feat": "Features",
    "fix": "Bug Fixes",
    "perf": "Performance",
    "refactor": "Refactoring",
    "docs": "Documentation",
    "deps": "Dependencies",
    "build": "Build System",
    "ci": "Continuous Integration",
    "test": "Tests",
    "chore": "Chores",
}
OTHER_HEADING = "Other Changes"

HEADING_RE = re.compile(r"^##\s+\[?(?P<label>[^\]\s]+)\]?")


class MarkdownChangelogTemplate:
    """Keep-a-changelog style Markdown.

    Sections start with "## [label]" headings. Unreleased comes first, then
    versions from highest to lowest; labels that are neither keep their
    relative order at the end.
    """

    def __init__(
        self, config: ReleaseConfig | None = None, package_name: str | None = None
    ) -> None:
        self.config = config or ReleaseConfig()
        subject = package_name or "this package"
        self.header = f"# Changelog\n\nAll notable changes to {subject} are documented in this file."

    def parse_versions(self, text: str) -> ChangelogMap:
        """Split existing Markdown into verbatim sections keyed by label.

        Text before the first "## " heading is dropped; render() writes
        its own header.
        """
        entries: ChangelogMap = {}
        label: str | None = None
        lines: list[str] = []

        def _flush() -> None:
            if label is not None:
                entries[label] = ChangelogEntry(label=label, text="\n".join(lines).strip())

        for line in text.splitlines():
            match = HEADING_RE.match(line)
            if match:
                _flush()
                label = match.group("label")
                lines = [line]
            elif label is not None:
                lines.append(line)
        _flush()
        return entries

    def _sort_key(self, indexed: tuple[int, str]) -> tuple[int, object]:
        index, label = indexed
        if label == self.config.unreleased_label:
            return (0, 0)
        if semver.Version.is_valid(label):
            return (1, _Descending(parse_version(label)))
        return (2, index)

    def ordered_labels(self, entries: ChangelogMap) -> list[str]:
        return [label for _, label in sorted(enumerate(entries), key=self._sort_key)]

    def render(self, entries: ChangelogMap) -> str:
        sections = [self.header]
        for label in self.ordered_labels(entries):
            entry = entries[label]
            sections.append(entry.text if entry.text is not None else self.render_entry(entry))
        return "\n\n".join(sections).rstrip() + "\n"

    def render_entry(self, entry: ChangelogEntry) -> str:
        lines = [f"## [{entry.label}]{self._date_suffix(entry.commits)}"]
        if not entry.commits:
            lines += ["", "No changes recorded."]
            return "\n".join(lines)

        by_category: dict[PRCategory, list[Commit]] = defaultdict(list)
        by_type: dict[str, list[Commit]] = defaultdict(list)
        for commit in entry.commits:
            if commit.pr is not None:
                by_category[commit.pr.category].append(commit)
            else:
                by_type[TYPE_HEADINGS.get(commit.message.type, OTHER_HEADING)].append(commit)

        for category in PRCategory:
            if category not in by_category:
                continue
            lines += ["", f"### {category.emoji} {category.label}", ""]
            for merge in by_category[category]:
                lines.append(self._pr_line(merge))
                lines.extend(f"  {self._commit_line(c)}" for c in merge.pr.commits)

        for heading in [*TYPE_HEADINGS.values(), OTHER_HEADING]:
            if heading not in by_type:
                continue
            lines += ["", f"### {heading}", ""]
            lines.extend(self._commit_line(c) for c in by_type[heading])
        return "\n".join(lines)

    @staticmethod
    def _date_suffix(commits: list[Commit]) -> str:
        stamps = [c.timestamp for c in commits if c.timestamp != EPOCH]
        return f" - {max(stamps).date().isoformat()}" if stamps else ""

    @staticmethod
    def _commit_line(commit: Commit) -> str:
        message = commit.message
        scope = f"**{', '.join(message.scopes)}:** " if message.scopes else ""
        breaking = "**BREAKING** " if message.is_breaking else ""
        short = f" (`{commit.short_hash}`)" if commit.short_hash else ""
        return f"- {breaking}{scope}{message.description}{short}"

    @staticmethod
    def _pr_line(merge: Commit) -> str:
        pr = merge.pr
        title = merge.message.body_lines[0] if merge.message.body_lines else merge.message.description
        number = f" (#{pr.number})" if pr.number else ""
        count = pr.stats.commit_count
        plural = "commit" if count == 1 else "commits"
        return f"- {title}{number}, {count} {plural} from `{pr.branch.full_name}`"


class _Descending:
    """Inverts ordering so sorted() yields the highest version first."""

    __slots__ = ("version",)

    def __init__(self, version: semver.Version) -> None:
        self.version = version

    def __lt__(self, other: _Descending) -> bool:
        return self.version > other.version

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _Descending) and self.version == other.version


def build_changelog(
    package: PackageDescriptor,
    commits: list[Commit],
    decision: VersionDecision,
    existing_text: str,
    template: ChangelogTemplate | None = None,
    config: ReleaseConfig | None = None,
) -> str:
    """Render the package changelog with this release's entry merged in.

    Entries already in existing_text are preserved verbatim unless this
    release regenerates the same label. A release absorbs the unreleased
    section, since its commits are part of the new version.
    """
    config = config or ReleaseConfig()
    template = template or MarkdownChangelogTemplate(config, package.name)
    existing = template.parse_versions(existing_text) if existing_text else {}
    if decision.should_bump:
        existing.pop(config.unreleased_label, None)
    merged = merge_changelog_maps(existing, build_changelog_map(commits, decision, config))
    return template.render(merged)
