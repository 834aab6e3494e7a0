"""Tests for lazy_release.shell and lazy_release.vcs."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from lazy_release import vcs
from lazy_release.shell import TIMEOUT_RETURNCODE, GitResult, git, git_result


class TestGitResult:
    def test_lines_skip_blanks(self) -> None:
        assert GitResult(0, "a\n\nb\n").lines() == ["a", "b"]

    def test_failed_result_has_no_lines(self) -> None:
        assert GitResult(1, "a\nb").lines() == []


class TestGitRunners:
    """Tests for git() and git_result()."""

    @patch("lazy_release.shell.subprocess.run")
    def test_git_result_strips_output(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout="abc\n", stderr="")

        result = git_result("rev-parse", "HEAD", timeout=5)

        assert result == GitResult(0, "abc")
        mock_run.assert_called_once_with(
            ["git", "rev-parse", "HEAD"], capture_output=True, text=True, check=False, timeout=5
        )

    @patch("lazy_release.shell.subprocess.run")
    def test_git_result_timeout(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(["git"], 5)

        result = git_result("log", timeout=5)

        assert result.returncode == TIMEOUT_RETURNCODE
        assert result.ok is False

    @patch("lazy_release.shell.subprocess.run")
    def test_git_raises_when_checked(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(1, ["git", "push"])

        with pytest.raises(subprocess.CalledProcessError):
            git("push")


class TestLogHashes:
    @patch("lazy_release.vcs.git_result")
    def test_builds_arguments(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(0, "a\nb")

        hashes = vcs.log_hashes("m^..m^2", merges=True, paths=["apps/api"], timeout=3)

        assert hashes == ["a", "b"]
        mock_git.assert_called_once_with(
            "log", "--pretty=format:%H", "--merges", "m^..m^2", "--", "apps/api", timeout=3
        )

    @patch("lazy_release.vcs.git_result")
    def test_failure_is_empty(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(128, "")
        assert vcs.log_hashes("bad..HEAD") == []


class TestQueries:
    @patch("lazy_release.vcs.git_result")
    def test_show_file_missing(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(128, "")
        assert vcs.show_file("HEAD", "nope.toml") is None

    @patch("lazy_release.vcs.git_result")
    def test_show_file(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(0, "[project]")
        assert vcs.show_file("abc", "pyproject.toml") == "[project]"
        assert mock_git.call_args.args == ("show", "abc:pyproject.toml")

    @patch("lazy_release.vcs.git_result")
    def test_diff_numstat(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(0, "3\t1\ta.py\n-\t-\tlogo.png")
        assert vcs.diff_numstat("a", "b") == [(3, 1, "a.py"), (0, 0, "logo.png")]

    @patch("lazy_release.vcs.git_result")
    def test_tag_info(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(0, "2024-05-01T10:00:00+00:00\nrelease(api): api-v1.0.0")
        assert vcs.tag_info("api-v1.0.0") == (
            "2024-05-01T10:00:00+00:00",
            "release(api): api-v1.0.0",
        )

    @patch("lazy_release.vcs.git_result")
    def test_rev_parse(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(0, "deadbeef")
        assert vcs.rev_parse("v1.0.0") == "deadbeef"
        assert mock_git.call_args.args == ("rev-parse", "-q", "--verify", "v1.0.0^{commit}")

    @patch("lazy_release.vcs.git_result")
    def test_first_commit_for_paths(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(0, "old\nnew")
        assert vcs.first_commit(["apps/api"]) == "old"

    @patch("lazy_release.vcs.git_result")
    def test_first_commit_root(self, mock_git: MagicMock) -> None:
        mock_git.return_value = GitResult(0, "root1")
        assert vcs.first_commit() == "root1"
        assert mock_git.call_args.args == ("rev-list", "--max-parents=0", "HEAD")


class TestFanOut:
    def test_preserves_order(self) -> None:
        assert vcs.fan_out(lambda x: x * 2, [3, 1, 2], max_workers=2) == [6, 2, 4]

    def test_empty(self) -> None:
        assert vcs.fan_out(lambda x: x, [], max_workers=4) == []

    def test_error_handler_isolates_failures(self) -> None:
        def work(x: int) -> int:
            if x == 2:
                raise ValueError("bad")
            return x

        result = vcs.fan_out(work, [1, 2, 3], max_workers=3, on_error=lambda item, exc: -item)
        assert result == [1, -2, 3]

    def test_error_without_handler_raises(self) -> None:
        def work(x: int) -> int:
            raise ValueError("bad")

        with pytest.raises(ValueError):
            vcs.fan_out(work, [1], max_workers=1)
