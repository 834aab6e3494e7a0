"""CLI entry point for lazy-release."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from lazy_release.config import load_config
from lazy_release.exceptions import ReleaseError
from lazy_release.models import BumpType
from lazy_release.packages import discover_packages
from lazy_release.pipeline import apply_release, prepare_release, write_github_outputs
from lazy_release.tags import PackageTags

BUMP_CHOICES = [b.value for b in BumpType if b is not BumpType.SYNCED]


@contextmanager
def _errors_as_click() -> Iterator[None]:
    try:
        yield
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip()
        raise click.ClickException(f"{' '.join(exc.cmd)} failed: {detail}") from exc


@click.group()
@click.version_option(package_name="lazy-release")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Semantic versions and changelogs for monorepo packages, from git history."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="  %(levelname)s %(name)s: %(message)s",
    )
    root = Path.cwd()
    if not (root / ".git").exists():
        raise click.ClickException("Not a git repository. Run from the repo root.")
    with _errors_as_click():
        ctx.obj = load_config(root)


@cli.command()
@click.option("-p", "--package", "package_name", default="root", show_default=True)
@click.option("--from", "from_ref", help="Start of the commit range (exclusive).")
@click.option("--to", "to_ref", default="HEAD", show_default=True, help="End of the commit range.")
@click.option("--from-version", help="Start of the range as a released version.")
@click.option("--to-version", help="End of the range as a released version.")
@click.option("--bump-type", type=click.Choice(BUMP_CHOICES), help="Override the computed bump.")
@click.option(
    "--github-output",
    type=click.Path(dir_okay=False),
    envvar="GITHUB_OUTPUT",
    help="Append the decision as GitHub Actions step outputs.",
)
@click.pass_obj
def prepare(
    config,
    package_name: str,
    from_ref: str | None,
    to_ref: str,
    from_version: str | None,
    to_version: str | None,
    bump_type: str | None,
    github_output: str | None,
) -> None:
    """Bump the version and update the changelog of a package."""
    with _errors_as_click():
        prepared = prepare_release(
            package_name,
            from_ref=from_ref,
            to_ref=to_ref,
            from_version=from_version,
            to_version=to_version,
            bump_type=BumpType(bump_type) if bump_type else None,
            config=config,
        )
    if github_output:
        write_github_outputs(github_output, prepared)
    if prepared.message is None:
        click.echo(f"Nothing to release for {package_name}.")
    else:
        click.echo()
        click.echo("Review the changes, then run:")
        click.echo(f"  lazy-release apply -p {package_name}")


@cli.command()
@click.option("-p", "--package", "package_name", default="root", show_default=True)
@click.option("-m", "--message", help="Commit message (defaults to the prepared one).")
@click.option("--no-push", is_flag=True, help="Commit and tag without pushing.")
@click.option("--dry-run", is_flag=True, help="Print what would be done.")
@click.pass_obj
def apply(config, package_name: str, message: str | None, no_push: bool, dry_run: bool) -> None:
    """Commit, tag and push a prepared release."""
    with _errors_as_click():
        tag = apply_release(
            package_name, message=message, push=not no_push, dry_run=dry_run, config=config
        )
    click.echo(f"✓ {tag}")


@cli.command()
@click.pass_obj
def packages(config) -> None:
    """List the packages of the workspace."""
    for package in discover_packages(config):
        if not package.is_versioned():
            click.echo(f"  {package.name} ({package.path}) - not versioned")
            continue
        latest = PackageTags(package.descriptor, config).latest_tag() or "untagged"
        click.echo(
            f"  {package.name} {package.read_version()} ({package.path}) "
            f"tags: {package.descriptor.tag_prefix}* latest: {latest}"
        )
