"""Git query primitives.

Every helper returns plain data built from a GitResult. A non-zero git exit
is an empty answer ([], None, False), never an exception; callers decide
whether emptiness is a degraded-data condition worth logging.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from .shell import DEFAULT_GIT_TIMEOUT, GitResult, git_result

T = TypeVar("T")
R = TypeVar("R")

# hash, parents, author, date, subject, then the body (may span many lines)
COMMIT_FORMAT = "%H%n%P%n%an%n%ad%n%s%n%b"


def fan_out(
    fn: Callable[[T], R],
    items: Iterable[T],
    max_workers: int,
    on_error: Callable[[T, Exception], R] | None = None,
) -> list[R]:
    """Run fn over items on a bounded thread pool.

    Results come back in input order. When on_error is given, a failing
    item is replaced by on_error(item, exc) and its siblings still run;
    otherwise the first failure is re-raised after all tasks finish.
    """
    items = list(items)
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as pool:
        futures = [pool.submit(fn, item) for item in items]
    results: list[R] = []
    for item, future in zip(items, futures):
        try:
            results.append(future.result())
        except Exception as exc:
            if on_error is None:
                raise
            results.append(on_error(item, exc))
    return results


def log_hashes(
    revisions: str,
    *,
    merges: bool = False,
    paths: Sequence[str] = (),
    timeout: float = DEFAULT_GIT_TIMEOUT,
) -> list[str]:
    """List commit hashes for a revision range, newest first.

    Args:
        revisions: A ref or range such as "v1.0.0..HEAD" or "abc^..abc^2".
        merges: Only list merge commits.
        paths: Restrict to commits touching these paths.
    """
    args = ["log", "--pretty=format:%H"]
    if merges:
        args.append("--merges")
    args.append(revisions)
    if paths:
        args.extend(["--", *paths])
    return git_result(*args, timeout=timeout).lines()


def show_commit(commit_hash: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> GitResult:
    """Metadata of one commit in COMMIT_FORMAT with ISO-8601 dates."""
    return git_result(
        "show", "--no-patch", "--date=iso-strict", f"--format={COMMIT_FORMAT}", commit_hash,
        timeout=timeout,
    )


def show_changed_files(commit_hash: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> list[str]:
    """Files changed by a non-merge commit."""
    return git_result("show", "--name-only", "--format=", commit_hash, timeout=timeout).lines()


def diff_changed_files(base: str, head: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> list[str]:
    """Files that differ between two revisions."""
    return git_result("diff", "--name-only", base, head, timeout=timeout).lines()


def diff_numstat(
    base: str, head: str, *, timeout: float = DEFAULT_GIT_TIMEOUT
) -> list[tuple[int, int, str]]:
    """(added, deleted, path) per file between two revisions.

    Binary files report '-' for both counts and are recorded as 0.
    """
    stats: list[tuple[int, int, str]] = []
    for line in git_result("diff", "--numstat", base, head, timeout=timeout).lines():
        parts = line.split("\t", 2)
        if len(parts) != 3:
            continue
        added, deleted, path = parts
        stats.append(
            (int(added) if added.isdigit() else 0, int(deleted) if deleted.isdigit() else 0, path)
        )
    return stats


def show_file(ref: str, path: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> str | None:
    """Content of path at ref, or None if it does not exist there."""
    result = git_result("show", f"{ref}:{path}", timeout=timeout)
    return result.stdout if result.ok else None


def list_tags(pattern: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> list[str]:
    """Tags matching a glob pattern, highest version first."""
    return git_result(
        "tag", "--list", pattern, "--sort=-version:refname", timeout=timeout
    ).lines()


def tag_exists(name: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> bool:
    return git_result("rev-parse", "-q", "--verify", f"refs/tags/{name}", timeout=timeout).ok


def tag_info(name: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> tuple[str | None, str | None]:
    """(creation date, subject) of a tag; (None, None) if unavailable."""
    result = git_result(
        "tag", "-l", "--format=%(creatordate:iso-strict)%0a%(contents:subject)", name,
        timeout=timeout,
    )
    if not result.ok or not result.stdout:
        return None, None
    date, _, subject = result.stdout.partition("\n")
    return date or None, subject or None


def create_tag(name: str, message: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> GitResult:
    return git_result("tag", "-a", name, "-m", message, timeout=timeout)


def delete_tag(name: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> GitResult:
    return git_result("tag", "-d", name, timeout=timeout)


def push_tag(name: str, remote: str = "origin", *, timeout: float = DEFAULT_GIT_TIMEOUT) -> GitResult:
    return git_result("push", remote, f"refs/tags/{name}", timeout=timeout)


def rev_parse(ref: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> str | None:
    """Commit sha that ref points to (peeling tags), or None."""
    result = git_result("rev-parse", "-q", "--verify", f"{ref}^{{commit}}", timeout=timeout)
    return result.stdout if result.ok and result.stdout else None


def is_ancestor(ancestor: str, descendant: str, *, timeout: float = DEFAULT_GIT_TIMEOUT) -> bool:
    return git_result("merge-base", "--is-ancestor", ancestor, descendant, timeout=timeout).ok


def first_commit(paths: Sequence[str] = (), *, timeout: float = DEFAULT_GIT_TIMEOUT) -> str | None:
    """Oldest commit reachable from HEAD, optionally the oldest touching paths.

    With several root commits (merged histories) the last listed one wins.
    """
    if paths:
        hashes = git_result("rev-list", "--reverse", "HEAD", "--", *paths, timeout=timeout).lines()
        return hashes[0] if hashes else None
    roots = git_result("rev-list", "--max-parents=0", "HEAD", timeout=timeout).lines()
    return roots[-1] if roots else None
