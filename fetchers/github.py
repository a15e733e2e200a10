"""GitHub API client for PR metadata, check-runs, workflow runs and reruns.

This is the tracker's only I/O boundary with GitHub. It holds no state
beyond credentials: every method is one logical call (or a small fixed
sequence of calls) and either returns parsed data or raises one of the
errors in ``models.errors``.

Calls are synchronous (``requests``); the async engine runs them through
``asyncio.to_thread``. No request timeout is set, the client relies on
GitHub closing slow connections.
"""

import logging
import re
import time
from datetime import datetime
from typing import Any, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from models.data_models import CIJob, PRSnapshot
from models.errors import AlreadyRunningError, ConfigurationError, DecodeError, NetworkError
from models.github_schemas import (
    CheckRunPayload,
    CheckRunsResponse,
    PullRequestPayload,
    WorkflowRunPayload,
    WorkflowRunsResponse,
)
from tracker.status import extract_job_id, extract_run_id, is_failed_conclusion, map_job_status

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

CI_APP_NAME = "GitHub Actions"
CHECK_RUNS_PAGE_SIZE = 100
WORKFLOW_RUNS_PAGE_SIZE = 50
REPRESENTATIVE_RUNS_PAGE_SIZE = 20
LOG_TAIL_LINES = 300

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*[mGKHFABCDJn]")


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_PATTERN.sub("", text)


def tail_lines(text: str, max_lines: int = LOG_TAIL_LINES) -> str:
    """Keep only the last ``max_lines`` lines of ``text``."""
    lines = text.split("\n")
    return "\n".join(lines[-max_lines:])


def error_message_from_response(response: requests.Response) -> str:
    """Use the body's ``message`` field when present, else ``HTTP <status>``."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"


class GitHubCIClient:
    """Typed wrapper over the GitHub endpoints the tracker needs."""

    def __init__(self, token: str, base_url: str = "https://api.github.com"):
        """Initialize GitHub API client.

        Args:
            token: GitHub token used as a bearer credential on every call
            base_url: API root (overridable for GitHub Enterprise)

        Raises:
            ConfigurationError: If the token is empty
        """
        if not token or not token.strip():
            raise ConfigurationError("No GitHub token configured. Set GITHUB_TOKEN in your .env file.")
        self.token = token.strip()
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": "2022-11-28"
        }

    def _repo_url(self, repo: str) -> str:
        owner, name = repo.split("/", 1)
        return f"{self.base_url}/repos/{owner}/{name}"

    def _make_github_request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
    ) -> requests.Response:
        """Make GitHub API request with automatic rate limit handling.

        If rate limited (429), waits until the rate limit resets and retries.
        Other status codes are returned for the caller to handle.

        Raises:
            NetworkError: If no response was received at all
        """
        while True:
            try:
                response = requests.request(method, url, headers=self.headers, params=params)
            except requests.RequestException as e:
                logger.error(f"{method} {url} failed: {e}")
                raise NetworkError(0, str(e)) from e

            remaining = response.headers.get("X-RateLimit-Remaining")
            limit = response.headers.get("X-RateLimit-Limit")
            if remaining and limit:
                logger.debug(f"Rate limit: {remaining}/{limit} remaining")

            if response.status_code == 429:
                reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                current_time = int(time.time())
                wait_seconds = max(reset_time - current_time + 5, 60)  # +5 second buffer, minimum 60s

                reset_str = datetime.fromtimestamp(reset_time).strftime("%H:%M:%S")
                logger.warning(
                    f"⏳ Rate limited! Waiting until {reset_str} "
                    f"({wait_seconds/60:.1f} minutes)..."
                )
                time.sleep(wait_seconds)
                logger.info("Rate limit reset - resuming...")
                continue

            return response

    def _get_json(self, url: str, schema: Type[SchemaT], params: Optional[dict] = None) -> SchemaT:
        """GET ``url`` and parse the body with ``schema``.

        Raises:
            NetworkError: On a non-2xx response
            DecodeError: If the body is not JSON or does not match the schema
        """
        response = self._make_github_request("GET", url, params=params)
        if not response.ok:
            message = error_message_from_response(response)
            logger.debug(f"GET {url} -> {response.status_code}: {message}")
            raise NetworkError(response.status_code, message)

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise DecodeError(f"Response from {url} is not JSON: {e}") from e

        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(f"Unexpected {schema.__name__} payload from {url}: {e}") from e

    # ─── Single-call operations ────────────────────────────────────────

    def get_pull_request(self, repo: str, number: int) -> PullRequestPayload:
        """Fetch PR metadata (title, author, state, head sha, size, update time)."""
        return self._get_json(f"{self._repo_url(repo)}/pulls/{number}", PullRequestPayload)

    def get_check_runs(self, repo: str, commit_sha: str) -> list[CheckRunPayload]:
        """Fetch up to 100 check-runs for a commit. No further pagination."""
        data = self._get_json(
            f"{self._repo_url(repo)}/commits/{commit_sha}/check-runs",
            CheckRunsResponse,
            params={"per_page": CHECK_RUNS_PAGE_SIZE},
        )
        logger.debug(f"{repo}@{commit_sha[:7]}: {len(data.check_runs)} check-runs")
        return data.check_runs

    def get_workflow_runs(
        self,
        repo: str,
        commit_sha: str,
        per_page: int = WORKFLOW_RUNS_PAGE_SIZE,
    ) -> list[WorkflowRunPayload]:
        """List workflow runs triggered for a head commit (first page only)."""
        data = self._get_json(
            f"{self._repo_url(repo)}/actions/runs",
            WorkflowRunsResponse,
            params={"head_sha": commit_sha, "per_page": per_page},
        )
        return data.workflow_runs

    def get_job_logs(self, repo: str, job_id: int) -> str:
        """Fetch an Actions job log as plain text.

        ANSI escapes are stripped and only the last 300 lines are kept.
        GitHub answers with a redirect to the log blob; requests follows it.
        """
        url = f"{self._repo_url(repo)}/actions/jobs/{job_id}/logs"
        response = self._make_github_request("GET", url)
        if not response.ok:
            raise NetworkError(response.status_code, error_message_from_response(response))

        logs = tail_lines(strip_ansi(response.text))
        logger.debug(f"Fetched logs for job {job_id} in {repo} ({len(logs)} chars)")
        return logs

    def trigger_rerun(self, repo: str, run_id: int) -> None:
        """Rerun the failed jobs of one workflow run.

        Raises:
            AlreadyRunningError: GitHub refused because the run is still active
            NetworkError: On any other non-2xx response
        """
        url = f"{self._repo_url(repo)}/actions/runs/{run_id}/rerun-failed-jobs"
        response = self._make_github_request("POST", url)
        if response.ok:
            logger.info(f"Triggered rerun of failed jobs for run {run_id} in {repo}")
            return

        if response.status_code == 403 and "already running" in response.text.lower():
            raise AlreadyRunningError(f"Workflow run {run_id} is already running; rerun not triggered")
        raise NetworkError(response.status_code, error_message_from_response(response))

    # ─── Composite reads ───────────────────────────────────────────────

    def fetch_pr_snapshot(self, repo: str, number: int) -> PRSnapshot:
        """Fetch PR metadata plus its CI jobs for the current head commit."""
        pr = self.get_pull_request(repo, number)
        check_runs = self.get_check_runs(repo, pr.head.sha)

        jobs = [
            CIJob(
                name=check_run.name,
                status=map_job_status(check_run),
                job_id=extract_job_id(check_run.details_url),
            )
            for check_run in check_runs
        ]

        return PRSnapshot(
            title=pr.title,
            author=pr.user.login,
            state="merged" if pr.merged_at is not None else pr.state,
            head_sha=pr.head.sha,
            additions=pr.additions,
            deletions=pr.deletions,
            updated_at=pr.updated_at,
            jobs=jobs,
        )

    def get_representative_run_id(self, repo: str, number: int) -> Optional[int]:
        """Pick one workflow run id that stands for the PR's CI.

        Prefers the first Actions check-run with a parseable details link;
        otherwise the first failed (or else first) workflow run for the head
        commit. Returns None when GitHub knows no run for the commit.
        """
        pr = self.get_pull_request(repo, number)

        for check_run in self.get_check_runs(repo, pr.head.sha):
            if check_run.app_name == CI_APP_NAME:
                run_id = extract_run_id(check_run.details_url)
                if run_id:
                    return run_id

        runs = self.get_workflow_runs(repo, pr.head.sha, per_page=REPRESENTATIVE_RUNS_PAGE_SIZE)
        if not runs:
            return None
        failed_run = next((run for run in runs if is_failed_conclusion(run.conclusion)), None)
        return (failed_run or runs[0]).id
