"""Tests for lazy_release.cli."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from lazy_release.cli import cli
from lazy_release.exceptions import InvalidReferenceError
from lazy_release.models import BumpType, VersionDecision
from lazy_release.pipeline import PreparedRelease


def _prepared(message: str | None = "release(api): api-v0.2.0") -> PreparedRelease:
    decision = VersionDecision(
        current_version="0.1.0",
        bump_type=BumpType.MINOR if message else BumpType.NONE,
        should_bump=message is not None,
        target_version="0.2.0" if message else "0.1.0",
        reason="",
    )
    return PreparedRelease(
        package="api", decision=decision, tag="api-v0.2.0", commit_count=1, message=message
    )


@pytest.fixture
def runner(workspace: Path, monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    monkeypatch.chdir(workspace)
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    return CliRunner()


class TestPrepare:
    """Tests for the prepare command."""

    @patch("lazy_release.cli.prepare_release")
    def test_passes_options(self, mock_prepare: MagicMock, runner: CliRunner) -> None:
        mock_prepare.return_value = _prepared()

        result = runner.invoke(
            cli,
            ["prepare", "-p", "api", "--from", "abc", "--to", "def", "--bump-type", "major"],
        )

        assert result.exit_code == 0, result.output
        assert "lazy-release apply -p api" in result.output
        kwargs = mock_prepare.call_args.kwargs
        assert mock_prepare.call_args.args == ("api",)
        assert kwargs["from_ref"] == "abc"
        assert kwargs["to_ref"] == "def"
        assert kwargs["bump_type"] is BumpType.MAJOR

    @patch("lazy_release.cli.prepare_release")
    def test_defaults_to_root(self, mock_prepare: MagicMock, runner: CliRunner) -> None:
        mock_prepare.return_value = _prepared(None)

        result = runner.invoke(cli, ["prepare"])

        assert result.exit_code == 0, result.output
        assert mock_prepare.call_args.args == ("root",)
        assert mock_prepare.call_args.kwargs["bump_type"] is None
        assert "Nothing to release for root." in result.output

    def test_synced_is_not_a_choice(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["prepare", "--bump-type", "synced"])
        assert result.exit_code == 2

    @patch("lazy_release.cli.prepare_release")
    def test_release_error_is_reported(self, mock_prepare: MagicMock, runner: CliRunner) -> None:
        mock_prepare.side_effect = InvalidReferenceError("nope")

        result = runner.invoke(cli, ["prepare", "--from", "nope"])

        assert result.exit_code == 1
        assert "Invalid git reference" in result.output

    @patch("lazy_release.cli.prepare_release")
    def test_github_output(
        self, mock_prepare: MagicMock, runner: CliRunner, workspace: Path
    ) -> None:
        mock_prepare.return_value = _prepared()
        output = workspace / "out.txt"

        result = runner.invoke(cli, ["prepare", "-p", "api"], env={"GITHUB_OUTPUT": str(output)})

        assert result.exit_code == 0, result.output
        assert "should_bump=true" in output.read_text()


class TestApply:
    """Tests for the apply command."""

    @patch("lazy_release.cli.apply_release")
    def test_flags(self, mock_apply: MagicMock, runner: CliRunner) -> None:
        mock_apply.return_value = "api-v0.2.0"

        result = runner.invoke(cli, ["apply", "-p", "api", "--no-push", "-m", "ship"])

        assert result.exit_code == 0, result.output
        assert "api-v0.2.0" in result.output
        kwargs = mock_apply.call_args.kwargs
        assert kwargs["push"] is False
        assert kwargs["message"] == "ship"
        assert kwargs["dry_run"] is False

    @patch("lazy_release.cli.apply_release")
    def test_git_failure_is_reported(self, mock_apply: MagicMock, runner: CliRunner) -> None:
        mock_apply.side_effect = subprocess.CalledProcessError(
            1, ["git", "push"], stderr="rejected\n"
        )

        result = runner.invoke(cli, ["apply"])

        assert result.exit_code == 1
        assert "git push failed: rejected" in result.output


class TestPackages:
    @patch("lazy_release.cli.PackageTags")
    def test_lists_workspace(self, mock_tags_cls: MagicMock, runner: CliRunner) -> None:
        mock_tags_cls.return_value.latest_tag.return_value = None

        result = runner.invoke(cli, ["packages"])

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0].strip().startswith("root 1.0.0 (.) tags: v*")
        assert "api 0.1.0 (apps/api) tags: api-v* latest: untagged" in result.output
        assert "repo-core (packages/core) - not versioned" in result.output


def test_requires_git_checkout(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Commands refuse to run outside a repository root."""
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["packages"])

    assert result.exit_code == 1
    assert "Not a git repository" in result.output
