"""Parse user-supplied pull request references."""

import re
from typing import NamedTuple

PR_URL_PATTERN = re.compile(r"github\.com/([^/\s]+/[^/\s]+)/pull/(\d+)")
SHORT_REF_PATTERN = re.compile(r"^([^/\s#]+/[^/\s#]+)#(\d+)$")
REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")


class PRRef(NamedTuple):
    repo: str
    number: int

    def __str__(self) -> str:
        return f"{self.repo}#{self.number}"


def parse_pr_ref(text: str) -> PRRef:
    """
    Parse a PR reference into (repo, number).

    Accepts:
        "https://github.com/owner/repo/pull/123" (anything after the number is ignored)
        "owner/repo#123"

    Raises:
        ValueError: If the text is not a recognizable PR reference
    """
    text = text.strip()
    match = PR_URL_PATTERN.search(text) or SHORT_REF_PATTERN.match(text)
    if not match:
        raise ValueError(
            f"Invalid PR reference: {text!r}. "
            "Use a GitHub PR URL or 'owner/repo#number'"
        )
    return make_pr_ref(match.group(1), match.group(2))


def make_pr_ref(repo: str, number) -> PRRef:
    """Validate a repo name and PR number given separately."""
    repo = repo.strip()
    if not REPO_PATTERN.match(repo):
        raise ValueError("Repository format should be: owner/repo")
    try:
        pr_number = int(number)
    except (TypeError, ValueError):
        raise ValueError("PR number must be a positive integer") from None
    if pr_number <= 0:
        raise ValueError("PR number must be a positive integer")
    return PRRef(repo, pr_number)
