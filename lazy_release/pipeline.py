"""Release pipelines: prepare → (review) → apply.

prepare_release() analyzes history and writes the release to the working
tree:
1. Check the package has a version series
2. Resolve the commit range (latest series tag → HEAD by default)
3. Collect the commits relevant to the package
4. Decide the version bump
5. Write the new version, the merged changelog and the commit message

apply_release() turns a prepared working tree into a release commit and
tag, and pushes both. Nothing is written until analysis has finished, and
nothing is retried.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel

from .changelog import build_changelog, build_changelog_map, count_commits
from .config import ReleaseConfig
from .exceptions import PackageNotVersionedError, ReleaseError
from .models import BumpType, VersionDecision
from .package_commits import PackageCommits
from .packages import Package, discover_packages, known_package_names
from .shell import git, step
from .tags import PackageTags, resolve_ref
from .versions import VersionCalculator

COMMIT_MESSAGE_FILE = Path(".git") / "COMMIT_EDITMSG"


class PreparedRelease(BaseModel):
    """What prepare_release() decided and wrote.

    Attributes:
        package: Package name.
        decision: The version decision.
        tag: Tag the release will get (prefix + target version).
        commit_count: Commits in the new changelog entry, PR commits included.
        message: Release commit message, or None when nothing was written.
    """

    package: str
    decision: VersionDecision
    tag: str
    commit_count: int
    message: str | None = None


def load_package(name: str, config: ReleaseConfig, root: Path | None = None) -> Package:
    """Bind a package to the working tree, refusing unversioned ones."""
    package = Package(name, config, root)
    if not package.is_versioned():
        raise PackageNotVersionedError(name)
    return package


def resolve_range(
    tags: PackageTags,
    from_ref: str | None,
    to_ref: str,
    from_version: str | None,
    to_version: str | None,
    config: ReleaseConfig,
) -> tuple[str | None, str]:
    """Work out the commit range, converting versions to series tags.

    Without an explicit start the range begins after the latest series
    tag, or covers all history when the package was never released.

    Raises:
        InvalidReferenceError: If either end does not resolve to a commit.
    """
    if from_version:
        from_ref = tags.tag_name(from_version)
    if to_version:
        to_ref = tags.tag_name(to_version)
    if not from_ref:
        from_ref = tags.base_ref()
    if from_ref:
        resolve_ref(from_ref, config)
    resolve_ref(to_ref, config)
    return from_ref, to_ref


def release_commit_message(
    package: Package, decision: VersionDecision, tag: str, commit_count: int
) -> str:
    """Commit message for a release, e.g. "release(api): api-v1.3.0 [minor] (1.2.0 => 1.3.0)"."""
    subject = (
        f"release({package.name}): {tag} [{decision.bump_type.value}] "
        f"({decision.current_version} => {decision.target_version})"
    )
    plural = "commit" if commit_count == 1 else "commits"
    body = [
        f"- {commit_count} {plural} since the last release",
        f"- Changelog: {package.descriptor.changelog_path}",
    ]
    return "\n".join([subject, "", *body]) + "\n"


def prepare_release(
    package_name: str,
    *,
    from_ref: str | None = None,
    to_ref: str = "HEAD",
    from_version: str | None = None,
    to_version: str | None = None,
    bump_type: BumpType | None = None,
    config: ReleaseConfig | None = None,
    root: Path | None = None,
) -> PreparedRelease:
    """Analyze history for one package and write its release files.

    Args:
        package_name: Package to release ("root" for the workspace).
        from_ref: Range start; defaults to the latest series tag.
        to_ref: Range end.
        from_version: Range start given as a version of the series.
        to_version: Range end given as a version of the series.
        bump_type: Operator override for the computed bump.
        config: Settings; loaded defaults if omitted.
        root: Repository root; the current directory if omitted.

    Raises:
        PackageNotVersionedError: If the package has no version series.
        InvalidReferenceError: If a range end does not resolve.
        VersionStateError: If disk and tag history disagree.
    """
    config = config or ReleaseConfig()
    root = root or Path.cwd()
    step(f"Preparing release for {package_name}")

    package = load_package(package_name, config, root)
    tags = PackageTags(package.descriptor, config)
    from_ref, to_ref = resolve_range(tags, from_ref, to_ref, from_version, to_version, config)
    current = package.read_version()

    resolver = PackageCommits(
        package.descriptor,
        config,
        known_packages=known_package_names(discover_packages(config, root)),
    )
    if from_ref:
        print(f"  range: {from_ref}..{to_ref}")
    else:
        first = resolver.first_commit()
        print(f"  range: full history to {to_ref} (first commit {(first or '?')[:7]}, no tags yet)")

    commits = resolver.resolve_commit_range(from_ref, to_ref)
    print(f"  {len(commits)} relevant commits")

    decision = VersionCalculator(package.descriptor, tags, config).calculate_version_data(
        current, commits, bump_type
    )
    tag = tags.tag_name(decision.target_version)
    commit_count = count_commits(build_changelog_map(commits, decision, config))
    print(f"  {package.name}: {decision.reason}")

    if decision.bump_type is BumpType.NONE:
        return PreparedRelease(
            package=package.name, decision=decision, tag=tag, commit_count=commit_count
        )

    step("Writing release files")
    if decision.should_bump:
        package.write_version(decision.target_version)
        print(f"  {package.descriptor.manifest_path}: {current} → {decision.target_version}")

    changelog = build_changelog(
        package.descriptor, commits, decision, package.read_changelog(), config=config
    )
    package.write_changelog(changelog)
    print(f"  {package.descriptor.changelog_path}: updated")

    message = release_commit_message(package, decision, tag, commit_count)
    message_file = root / COMMIT_MESSAGE_FILE
    message_file.parent.mkdir(parents=True, exist_ok=True)
    message_file.write_text(message)
    print(f"  {COMMIT_MESSAGE_FILE}: {message.splitlines()[0]}")

    return PreparedRelease(
        package=package.name,
        decision=decision,
        tag=tag,
        commit_count=commit_count,
        message=message,
    )


def write_github_outputs(output_path: str, prepared: PreparedRelease) -> None:
    """Append the release decision as GitHub Actions step outputs."""
    decision = prepared.decision
    with open(output_path, "a") as fh:
        fh.write(f"package={prepared.package}\n")
        fh.write(f"version={decision.target_version}\n")
        fh.write(f"tag={prepared.tag}\n")
        fh.write(f"bump={decision.bump_type.value}\n")
        fh.write(f"should_bump={str(decision.should_bump).lower()}\n")


def apply_release(
    package_name: str,
    *,
    message: str | None = None,
    push: bool = True,
    dry_run: bool = False,
    config: ReleaseConfig | None = None,
    root: Path | None = None,
) -> str:
    """Commit the prepared release, tag it and push.

    The message defaults to the one prepare_release() wrote. An existing
    tag for the version is left alone.

    Returns:
        The release tag name.

    Raises:
        ReleaseError: If there is no prepared message to commit with.
    """
    config = config or ReleaseConfig()
    root = root or Path.cwd()
    package = load_package(package_name, config, root)
    tags = PackageTags(package.descriptor, config)
    version = package.read_version()
    tag = tags.tag_name(version)

    if message is None:
        message_file = root / COMMIT_MESSAGE_FILE
        if not message_file.exists():
            raise ReleaseError(
                f"No prepared release message at {COMMIT_MESSAGE_FILE}; run `prepare` first"
            )
        message = message_file.read_text()

    files = [package.descriptor.manifest_path, package.descriptor.changelog_path]
    step(f"Applying release {tag}")

    if dry_run:
        print(f"  would run: git add {' '.join(files)}")
        print(f"  would run: git commit -m {message.splitlines()[0]!r}")
        print(f"  would run: git tag -a {tag}")
        if push:
            print("  would run: git push --follow-tags")
        return tag

    git("add", *files)
    git("commit", "-m", message)
    print(f"  committed: {message.splitlines()[0]}")

    if tags.tag_exists(version):
        print(f"  tag {tag} already exists, skipping")
    else:
        tags.create_tag(version, message.splitlines()[0])
        print(f"  tagged: {tag}")

    if push:
        git("push", "--follow-tags")
        print("  pushed")
    return tag
