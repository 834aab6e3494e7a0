"""Commit message parsing and commit detail fetching.

parse_message() is a pure function of the message text and configuration.
CommitFetcher reads commits from git and assembles full Commit objects,
reconstructing pull requests for merge commits.
"""

from __future__ import annotations

import re

from . import vcs
from .config import ReleaseConfig
from .exceptions import CommitNotFoundError
from .models import Commit, ParsedMessage, RawCommit
from .pr import get_pr_info

CONVENTIONAL_RE = re.compile(
    r"^(?P<type>[a-z]+)"
    r"(?:\((?P<scopes>[a-zA-Z0-9@\-,\s/_.]+)\))?"
    r"(?P<breaking>!)?"
    r":\s(?P<description>.+)$"
)


def split_message(message: str) -> tuple[str, list[str]]:
    """Split a message into its subject and non-blank body lines."""
    lines = message.split("\n")
    subject = lines[0].strip()
    body = [line.rstrip() for line in lines[1:] if line.strip()]
    return subject, body


def parse_message(message: str, config: ReleaseConfig | None = None) -> ParsedMessage:
    """Parse a commit message into its conventional-commit parts.

    Subjects of the form ``type(scope, other)!: description`` yield the type,
    the scopes in order and the breaking flag. Anything else is classified
    as "merge" (merge marker), "deps" (dependency-bot marker) or "other",
    with the whole subject as description.

    Args:
        message: Full commit message, subject first.
        config: Marker lists; defaults to ReleaseConfig().
    """
    config = config or ReleaseConfig()
    subject, body_lines = split_message(message)

    is_merge = any(subject.startswith(marker) for marker in config.merge_markers)
    has_bot_marker = any(marker in message for marker in config.bot_markers)

    match = CONVENTIONAL_RE.match(subject)
    if match:
        raw_scopes = match.group("scopes") or ""
        scopes = [s.strip() for s in raw_scopes.split(",") if s.strip()]
        commit_type = match.group("type")
        description = match.group("description").strip()
        is_breaking = match.group("breaking") is not None
    else:
        scopes = []
        description = subject
        is_breaking = False
        if is_merge:
            commit_type = "merge"
        elif has_bot_marker:
            commit_type = "deps"
        else:
            commit_type = "other"

    is_dependency = has_bot_marker or any(s in config.dependency_scopes for s in scopes)

    return ParsedMessage(
        subject=subject,
        type=commit_type,
        scopes=scopes,
        description=description,
        body_lines=body_lines,
        is_breaking=is_breaking,
        is_merge=is_merge,
        is_dependency=is_dependency,
    )


def format_message(message: ParsedMessage) -> str:
    """Render a parsed message back into conventional-commit text.

    Unconventional messages (merge/deps/other without scopes) keep their
    original subject.
    """
    if message.type in ("merge", "deps", "other") and not message.scopes and (
        message.description == message.subject
    ):
        header = message.subject
    else:
        scope = f"({', '.join(message.scopes)})" if message.scopes else ""
        bang = "!" if message.is_breaking else ""
        header = f"{message.type}{scope}{bang}: {message.description}"
    return "\n\n".join(part for part in (header, "\n".join(message.body_lines)) if part)


class CommitFetcher:
    """Reads commits from git and turns them into Commit objects."""

    def __init__(self, config: ReleaseConfig) -> None:
        self.config = config

    def fetch_raw(self, commit_hash: str) -> RawCommit:
        """Read a commit's metadata.

        Raises:
            CommitNotFoundError: If git cannot show the commit.
        """
        result = vcs.show_commit(commit_hash, timeout=self.config.git_timeout)
        if not result.ok or not result.stdout:
            raise CommitNotFoundError(commit_hash)
        lines = result.stdout.split("\n")
        lines += [""] * (5 - len(lines))
        sha, parents, author, date, subject = lines[:5]
        return RawCommit(
            hash=sha or commit_hash,
            parents=parents.split(),
            author=author,
            date=date,
            subject=subject,
            body_lines=[line.rstrip() for line in lines[5:] if line.strip()],
        )

    def changed_files(self, raw: RawCommit) -> list[str]:
        """Files touched by a commit; merges are diffed against their first parent."""
        if len(raw.parents) > 1:
            return vcs.diff_changed_files(
                raw.parents[0], raw.hash, timeout=self.config.git_timeout
            )
        return vcs.show_changed_files(raw.hash, timeout=self.config.git_timeout)

    def fetch(self, commit_hash: str, with_pr: bool = True) -> Commit:
        """Build a full Commit, reconstructing its PR if it is a merge.

        Commits listed inside a PR are fetched with with_pr=False, so PR
        reconstruction never nests.

        Raises:
            CommitNotFoundError: If git cannot show the commit.
        """
        raw = self.fetch_raw(commit_hash)
        message = parse_message(raw.message, self.config)
        commit = Commit(raw=raw, message=message, files=self.changed_files(raw))
        if with_pr and message.is_merge:
            commit.pr = get_pr_info(
                raw.hash,
                message,
                lambda h: self.fetch(h, with_pr=False),
                self.config,
            )
        return commit
