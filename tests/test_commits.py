"""Tests for lazy_release.commits."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from lazy_release.commits import CommitFetcher, format_message, parse_message, split_message
from lazy_release.config import ReleaseConfig
from lazy_release.exceptions import CommitNotFoundError
from lazy_release.shell import GitResult


class TestParseMessage:
    """Tests for parse_message()."""

    def test_conventional_subject(self) -> None:
        parsed = parse_message("feat(api): add login endpoint")
        assert parsed.type == "feat"
        assert parsed.scopes == ["api"]
        assert parsed.description == "add login endpoint"
        assert parsed.is_breaking is False
        assert parsed.is_merge is False

    def test_breaking_marker(self) -> None:
        parsed = parse_message("feat(api)!: drop v1 routes")
        assert parsed.is_breaking is True
        assert parsed.type == "feat"
        assert parsed.description == "drop v1 routes"

    def test_breaking_without_scope(self) -> None:
        parsed = parse_message("refactor!: rename settings")
        assert parsed.is_breaking is True
        assert parsed.scopes == []

    def test_multiple_scopes_trimmed_in_order(self) -> None:
        parsed = parse_message("fix(web, api ,@repo/core): handle timeouts")
        assert parsed.scopes == ["web", "api", "@repo/core"]

    def test_body_lines_skip_blanks(self) -> None:
        parsed = parse_message("fix: a\n\nfirst line\n   \nsecond line\n")
        assert parsed.body_lines == ["first line", "second line"]

    def test_merge_pull_request_subject(self) -> None:
        parsed = parse_message("Merge pull request #42 from acme/feature/login")
        assert parsed.type == "merge"
        assert parsed.is_merge is True
        assert parsed.scopes == []
        assert parsed.description == "Merge pull request #42 from acme/feature/login"

    def test_merge_branch_subject(self) -> None:
        parsed = parse_message("Merge branch 'main' into feature/x")
        assert parsed.type == "merge"
        assert parsed.is_merge is True

    def test_bot_marker_without_conventional_subject(self) -> None:
        parsed = parse_message("Update dependency click to v8.1.7\n\nSigned-off-by: renovate[bot]")
        assert parsed.type == "deps"
        assert parsed.is_dependency is True

    def test_dependency_scope_on_conventional_commit(self) -> None:
        parsed = parse_message("chore(deps): bump pydantic")
        assert parsed.type == "chore"
        assert parsed.is_dependency is True

    def test_unconventional_subject(self) -> None:
        parsed = parse_message("Fixed the thing")
        assert parsed.type == "other"
        assert parsed.description == "Fixed the thing"
        assert parsed.scopes == []
        assert parsed.is_dependency is False

    def test_uppercase_type_is_not_conventional(self) -> None:
        assert parse_message("Feat: shouting").type == "other"

    def test_missing_space_after_colon_is_not_conventional(self) -> None:
        assert parse_message("feat:nospace").type == "other"

    def test_same_input_same_output(self) -> None:
        message = "feat(api, web)!: redo auth\n\nBREAKING CHANGE: tokens reissued"
        assert parse_message(message) == parse_message(message)

    def test_custom_merge_markers(self) -> None:
        config = ReleaseConfig(merge_markers=["Merged PR"])
        parsed = parse_message("Merged PR 77: add things", config)
        assert parsed.type == "merge"
        assert parsed.is_merge is True


class TestSplitMessage:
    def test_subject_only(self) -> None:
        assert split_message("chore: tidy") == ("chore: tidy", [])


class TestFormatMessage:
    def test_round_trips_conventional_subject(self) -> None:
        message = "feat(api, web)!: redo auth"
        assert format_message(parse_message(message)) == message

    def test_keeps_unconventional_subject(self) -> None:
        message = "Merge pull request #1 from a/b"
        assert format_message(parse_message(message)) == message

    def test_includes_body(self) -> None:
        assert format_message(parse_message("fix: x\n\ndetails")) == "fix: x\n\ndetails"


class TestCommitFetcher:
    """Tests for CommitFetcher."""

    @patch("lazy_release.commits.vcs")
    def test_fetch_raw_parses_show_output(self, mock_vcs: MagicMock) -> None:
        mock_vcs.show_commit.return_value = GitResult(
            0,
            "abc123\nparent1\nAda\n2024-05-01T10:00:00+02:00\nfeat(api): add x\n"
            "Longer explanation\n\nSecond paragraph",
        )

        raw = CommitFetcher(ReleaseConfig()).fetch_raw("abc123")

        assert raw.hash == "abc123"
        assert raw.parents == ["parent1"]
        assert raw.author == "Ada"
        assert raw.subject == "feat(api): add x"
        assert raw.body_lines == ["Longer explanation", "Second paragraph"]

    @patch("lazy_release.commits.vcs")
    def test_fetch_raw_without_body(self, mock_vcs: MagicMock) -> None:
        mock_vcs.show_commit.return_value = GitResult(0, "abc\n\nAda\n2024-05-01\nfix: y")

        raw = CommitFetcher(ReleaseConfig()).fetch_raw("abc")

        assert raw.parents == []
        assert raw.body_lines == []

    @patch("lazy_release.commits.vcs")
    def test_fetch_raw_unknown_commit(self, mock_vcs: MagicMock) -> None:
        mock_vcs.show_commit.return_value = GitResult(128, "")

        with pytest.raises(CommitNotFoundError):
            CommitFetcher(ReleaseConfig()).fetch_raw("nope")

    @patch("lazy_release.commits.vcs")
    def test_fetch_non_merge_lists_files(self, mock_vcs: MagicMock) -> None:
        mock_vcs.show_commit.return_value = GitResult(
            0, "abc\np1\nAda\n2024-05-01\nfix(api): y"
        )
        mock_vcs.show_changed_files.return_value = ["apps/api/main.py"]

        commit = CommitFetcher(ReleaseConfig()).fetch("abc")

        assert commit.files == ["apps/api/main.py"]
        assert commit.message.type == "fix"
        assert commit.pr is None
        mock_vcs.diff_changed_files.assert_not_called()

    @patch("lazy_release.commits.get_pr_info")
    @patch("lazy_release.commits.vcs")
    def test_fetch_merge_diffs_first_parent_and_builds_pr(
        self, mock_vcs: MagicMock, mock_pr: MagicMock
    ) -> None:
        mock_vcs.show_commit.return_value = GitResult(
            0, "m1\np1 p2\nAda\n2024-05-01\nMerge pull request #9 from a/b"
        )
        mock_vcs.diff_changed_files.return_value = ["apps/api/x.py"]
        mock_pr.return_value = None

        commit = CommitFetcher(ReleaseConfig()).fetch("m1")

        mock_vcs.diff_changed_files.assert_called_once_with("p1", "m1", timeout=60.0)
        assert commit.files == ["apps/api/x.py"]
        assert mock_pr.call_args.args[0] == "m1"

    @patch("lazy_release.commits.get_pr_info")
    @patch("lazy_release.commits.vcs")
    def test_fetch_without_pr(self, mock_vcs: MagicMock, mock_pr: MagicMock) -> None:
        mock_vcs.show_commit.return_value = GitResult(
            0, "m1\np1 p2\nAda\n2024-05-01\nMerge branch 'main'"
        )
        mock_vcs.diff_changed_files.return_value = []

        commit = CommitFetcher(ReleaseConfig()).fetch("m1", with_pr=False)

        assert commit.pr is None
        mock_pr.assert_not_called()

    @patch("lazy_release.commits.get_pr_info")
    @patch("lazy_release.commits.vcs")
    def test_two_parents_without_merge_subject(
        self, mock_vcs: MagicMock, mock_pr: MagicMock
    ) -> None:
        """PRs are only reconstructed for commits whose subject is a merge marker."""
        mock_vcs.show_commit.return_value = GitResult(
            0, "m1\np1 p2\nAda\n2024-05-01\nfeat(api): octopus sync"
        )
        mock_vcs.diff_changed_files.return_value = ["apps/api/x.py"]

        commit = CommitFetcher(ReleaseConfig()).fetch("m1")

        assert commit.is_merge is True
        assert commit.pr is None
        mock_pr.assert_not_called()
