"""Tests for PR reference parsing."""

import pytest

from tracker.pr_ref import PRRef, make_pr_ref, parse_pr_ref


class TestParsePRRef:
    @pytest.mark.parametrize("text", [
        "https://github.com/facebook/react/pull/123",
        "https://github.com/facebook/react/pull/123/files",
        "github.com/facebook/react/pull/123?diff=split",
        "  facebook/react#123  ",
    ])
    def test_accepted_forms(self, text):
        assert parse_pr_ref(text) == PRRef("facebook/react", 123)

    def test_repo_with_dots_and_dashes(self):
        assert parse_pr_ref("my-org/my.repo_name#4") == PRRef("my-org/my.repo_name", 4)

    @pytest.mark.parametrize("text", ["", "facebook/react", "react#1", "https://github.com/facebook/react/issues/1"])
    def test_rejected(self, text):
        with pytest.raises(ValueError) as exc_info:
            parse_pr_ref(text)
        assert "Invalid PR reference" in str(exc_info.value)

    def test_zero_is_not_a_pr_number(self):
        with pytest.raises(ValueError) as exc_info:
            parse_pr_ref("facebook/react#0")
        assert "positive integer" in str(exc_info.value)

    def test_str(self):
        assert str(PRRef("o/r", 5)) == "o/r#5"


class TestMakePRRef:
    def test_valid(self):
        assert make_pr_ref("o/r", "12") == PRRef("o/r", 12)

    @pytest.mark.parametrize("repo", ["noslash", "a/b/c", "has space/repo"])
    def test_bad_repo(self, repo):
        with pytest.raises(ValueError) as exc_info:
            make_pr_ref(repo, 1)
        assert "owner/repo" in str(exc_info.value)

    @pytest.mark.parametrize("number", [0, -3, "abc", None])
    def test_bad_number(self, number):
        with pytest.raises(ValueError):
            make_pr_ref("o/r", number)
