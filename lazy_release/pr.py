"""Pull request reconstruction from merge commits.

Git has no notion of a pull request, so everything here is recovered from
the merge commit itself: the PR number from its message, the PR's commits
from the range between the merge's parents, and the source branch from the
"... from <branch>" text GitHub and friends write into merge messages.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Callable

from . import vcs
from .config import ReleaseConfig
from .models import BranchRef, Commit, ParsedMessage, PRCategory, PRInfo, PRStats, RawCommit

logger = logging.getLogger(__name__)

# Tried in order; the bare "#N" fallback also matches issue references.
PR_NUMBER_PATTERNS = [
    re.compile(r"Merge pull request #(\d+)"),
    re.compile(r"Merge PR #(\d+)"),
    re.compile(r"Merge.*#(\d+)"),
    re.compile(r"#(\d+)"),
]

SOURCE_BRANCH_PATTERNS = [
    re.compile(r"\bfrom\s+(\S+)"),
    re.compile(r"^Merge branch '([^']+)'"),
]

REMOTE_PREFIXES = ("refs/heads/", "origin/", "upstream/")

FAILED_DESCRIPTION = "Failed to parse commit"

FetchCommit = Callable[[str], Commit]


def extract_pr_number(message: ParsedMessage) -> str | None:
    """Find the PR number in a merge message, or None if there is none."""
    for pattern in PR_NUMBER_PATTERNS:
        match = pattern.search(message.description)
        if match:
            return match.group(1)
    return None


def placeholder_commit(commit_hash: str) -> Commit:
    """Stand-in for a PR commit whose details could not be read."""
    return Commit(
        raw=RawCommit(hash=commit_hash),
        message=ParsedMessage(subject="", type="other", description=FAILED_DESCRIPTION),
    )


def get_pr_commits(merge_hash: str, fetch: FetchCommit, config: ReleaseConfig) -> list[Commit]:
    """List the commits a merge brought in (merge^..merge^2).

    Several commits mean a regular merge; each is fetched, and one that
    cannot be read is replaced by a placeholder. A single commit means a
    squash merge and is returned with a "Squashed changes" description.
    """
    hashes = vcs.log_hashes(f"{merge_hash}^..{merge_hash}^2", timeout=config.git_timeout)
    if not hashes:
        return []

    if len(hashes) > 1:
        # Serial: callers already run inside a vcs.fan_out pool.
        commits: list[Commit] = []
        for commit_hash in hashes:
            try:
                commits.append(fetch(commit_hash))
            except Exception as exc:
                logger.warning(
                    "Could not read PR commit %s of merge %s: %s", commit_hash, merge_hash, exc
                )
                commits.append(placeholder_commit(commit_hash))
        return commits

    try:
        commit = fetch(hashes[0])
    except Exception as exc:
        logger.warning("Could not read squashed commit %s of merge %s: %s", hashes[0], merge_hash, exc)
        return []
    squashed = commit.message.model_copy(
        update={"description": f"Squashed changes from PR ({commit.message.description})"}
    )
    return [commit.model_copy(update={"message": squashed})]


def _bot_names(config: ReleaseConfig) -> list[str]:
    return [marker.split("[", 1)[0].lower() for marker in config.bot_markers]


def categorize_pr(
    commits: list[Commit], message: ParsedMessage, config: ReleaseConfig | None = None
) -> PRCategory:
    """Pick the dominant category of a PR from its commits.

    Dependency-bot merges short-circuit to DEPENDENCIES. Otherwise each
    commit adds to a category score; a unique highest score wins and ties
    or an all-zero tally give OTHER.
    """
    config = config or ReleaseConfig()
    description = message.description.lower()
    if any(bot in description for bot in _bot_names(config)) or any(
        "dependency" in line.lower() for line in message.body_lines
    ):
        return PRCategory.DEPENDENCIES

    scores: Counter[PRCategory] = Counter()
    for commit in commits:
        commit_type = commit.message.type
        text = commit.message.description.lower()
        if commit_type == "feat":
            scores[PRCategory.FEATURES] += 3
        elif commit_type == "fix":
            scores[PRCategory.BUGFIXES] += 2
        elif commit_type == "docs":
            scores[PRCategory.DOCUMENTATION] += 2
        elif commit_type in ("refactor", "style", "perf"):
            scores[PRCategory.REFACTORING] += 2
        elif commit_type in ("ci", "build"):
            scores[PRCategory.INFRASTRUCTURE] += 3
        elif commit_type in ("chore", "deps"):
            if any(word in text for word in ("dep", "update", "upgrade")):
                scores[PRCategory.DEPENDENCIES] += 5
            elif any(word in text for word in ("ci", "build", "workflow")):
                scores[PRCategory.INFRASTRUCTURE] += 2

    best = max(scores.values(), default=0)
    leaders = [category for category, score in scores.items() if score == best]
    if best == 0 or len(leaders) != 1:
        return PRCategory.OTHER
    return leaders[0]


def parse_branch(full_name: str, config: ReleaseConfig | None = None) -> BranchRef:
    """Split "feature/login" into prefix and name when the prefix is known."""
    config = config or ReleaseConfig()
    prefix, sep, rest = full_name.partition("/")
    if sep and rest and prefix in config.branch_prefixes:
        return BranchRef(name=rest, full_name=full_name, prefix=prefix)
    return BranchRef(name=full_name, full_name=full_name)


def parse_pr_branch(message: ParsedMessage, config: ReleaseConfig | None = None) -> BranchRef:
    """Recover the source branch named in a merge message.

    Handles "from owner/branch" (GitHub), "from user:branch" (forks),
    remote-qualified refs and "Merge branch 'x'". Falls back to the default
    branch when no source is named.
    """
    config = config or ReleaseConfig()
    ref = None
    for text in (message.description, *message.body_lines):
        for pattern in SOURCE_BRANCH_PATTERNS:
            match = pattern.search(text)
            if match:
                ref = match.group(1).strip("'\"")
                break
        if ref:
            break
    if not ref:
        return parse_branch(config.default_branch, config)

    if ":" in ref:
        ref = ref.split(":", 1)[1]
    for remote in REMOTE_PREFIXES:
        if ref.startswith(remote):
            ref = ref[len(remote):]
    owner, sep, rest = ref.partition("/")
    if (
        sep
        and rest
        and owner not in config.branch_prefixes
        and message.subject.startswith("Merge pull request")
    ):
        ref = rest
    return parse_branch(ref, config)


def get_pr_stats(merge_hash: str, commits: list[Commit], config: ReleaseConfig) -> PRStats:
    numstat = vcs.diff_numstat(f"{merge_hash}^1", merge_hash, timeout=config.git_timeout)
    if not numstat:
        return PRStats(commit_count=len(commits))
    return PRStats(
        commit_count=len(commits),
        file_count=len(numstat),
        lines_added=sum(added for added, _, _ in numstat),
        lines_deleted=sum(deleted for _, deleted, _ in numstat),
    )


def get_pr_info(
    merge_hash: str,
    message: ParsedMessage,
    fetch: FetchCommit,
    config: ReleaseConfig,
) -> PRInfo | None:
    """Reconstruct the PR behind a merge commit.

    A merge message without a PR number is not a trackable PR and yields
    None. Any failure is logged and yields None too; a merge without PR
    details is still a valid commit.
    """
    number = extract_pr_number(message)
    if number is None:
        return None
    try:
        commits = get_pr_commits(merge_hash, fetch, config)
        return PRInfo(
            number=number,
            category=categorize_pr(commits, message, config),
            stats=get_pr_stats(merge_hash, commits, config),
            commits=commits,
            branch=parse_pr_branch(message, config),
        )
    except Exception as exc:
        logger.warning("Could not reconstruct PR for merge %s: %s", merge_hash, exc)
        return None
