"""Shared pytest fixtures and configuration."""

import threading

import pytest

from models.data_models import CIJob, PRSnapshot
from models.errors import NetworkError
from models.github_schemas import (
    CheckRunPayload,
    GitHubCommitRef,
    GitHubUser,
    PullRequestPayload,
    WorkflowRunPayload,
)


@pytest.fixture
def test_env(monkeypatch, tmp_path):
    """
    Set valid test environment variables.

    Config can be loaded during tests without requiring real credentials;
    the state file points into the test's temporary directory.
    """
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test_token_1234567890")
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_KEY", "")
    monkeypatch.setenv("STATE_FILE", str(tmp_path / "state.json"))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    return {
        "github_token": "ghp_test_token_1234567890",
        "state_file": str(tmp_path / "state.json"),
        "log_level": "DEBUG",
    }


@pytest.fixture
def invalid_env(monkeypatch):
    """Set up invalid/missing environment variables for testing validation."""
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_your_token_here")
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_KEY", "")


def make_snapshot(title="Fix flaky test", author="octocat", state="open", jobs=None, **kwargs) -> PRSnapshot:
    return PRSnapshot(
        title=title,
        author=author,
        state=state,
        head_sha=kwargs.pop("head_sha", "abc1234def"),
        additions=kwargs.pop("additions", 10),
        deletions=kwargs.pop("deletions", 2),
        jobs=jobs if jobs is not None else [CIJob(name="build", status="success", job_id=1)],
        **kwargs,
    )


def make_pull_request(number=1, head_sha="abc1234def") -> PullRequestPayload:
    return PullRequestPayload(
        number=number,
        title="Fix flaky test",
        state="open",
        user=GitHubUser(login="octocat"),
        head=GitHubCommitRef(sha=head_sha),
    )


def actions_check_run(run_id: int, job_id: int, conclusion="failure", name="build") -> CheckRunPayload:
    return CheckRunPayload(
        id=job_id,
        name=name,
        status="completed",
        conclusion=conclusion,
        details_url=f"https://github.com/o/r/actions/runs/{run_id}/job/{job_id}",
        app={"name": "GitHub Actions"},
    )


class FakeGitHubClient:
    """
    In-memory stand-in for GitHubCIClient.

    Per-PR snapshots and errors are keyed by (repo, number). Calls are
    recorded so tests can assert on what was (not) requested.
    """

    def __init__(self):
        self.snapshots = {}
        self.snapshot_errors = {}
        self.run_ids = {}
        self.check_runs = []
        self.workflow_runs = []
        self.rerun_errors = {}
        self.logs = {}
        self.log_errors = {}
        self.calls = []
        self.triggered = []
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def fetch_pr_snapshot(self, repo, number):
        self._record("fetch_pr_snapshot", repo, number)
        error = self.snapshot_errors.get((repo, number))
        if error is not None:
            raise error
        return self.snapshots.get((repo, number), make_snapshot())

    def get_representative_run_id(self, repo, number):
        self._record("get_representative_run_id", repo, number)
        return self.run_ids.get((repo, number))

    def get_pull_request(self, repo, number):
        self._record("get_pull_request", repo, number)
        error = self.snapshot_errors.get((repo, number))
        if error is not None:
            raise error
        return make_pull_request(number)

    def get_check_runs(self, repo, commit_sha):
        self._record("get_check_runs", repo, commit_sha)
        return list(self.check_runs)

    def get_workflow_runs(self, repo, commit_sha, per_page=50):
        self._record("get_workflow_runs", repo, commit_sha)
        return [WorkflowRunPayload(**run) for run in self.workflow_runs]

    def trigger_rerun(self, repo, run_id):
        self._record("trigger_rerun", repo, run_id)
        error = self.rerun_errors.get(run_id)
        if error is not None:
            raise error
        self.triggered.append(run_id)

    def get_job_logs(self, repo, job_id):
        self._record("get_job_logs", repo, job_id)
        error = self.log_errors.get(job_id)
        if error is not None:
            raise error
        return self.logs.get(job_id, "")

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def fake_client():
    return FakeGitHubClient()


@pytest.fixture
def network_error():
    return NetworkError(500, "Server Error")
