"""Tests for the GitHub CI client."""

from unittest.mock import Mock, patch
import pytest
import requests

from fetchers.github import GitHubCIClient, strip_ansi, tail_lines
from models.errors import AlreadyRunningError, ConfigurationError, DecodeError, NetworkError


def mock_response(status_code=200, json_data=None, text="", headers=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.headers = headers if headers is not None else {"X-RateLimit-Remaining": "4999", "X-RateLimit-Limit": "5000"}
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = json_data
    return response


PR_JSON = {
    "number": 7,
    "title": "Add retries",
    "state": "open",
    "merged_at": None,
    "user": {"login": "octocat"},
    "head": {"sha": "deadbeef1234"},
    "additions": 12,
    "deletions": 3,
    "updated_at": "2025-01-15T10:30:00Z",
}

CHECK_RUNS_JSON = {
    "total_count": 3,
    "check_runs": [
        {
            "id": 11,
            "name": "build",
            "status": "completed",
            "conclusion": "failure",
            "details_url": "https://github.com/o/r/actions/runs/555/job/9001",
            "app": {"name": "GitHub Actions"},
        },
        {
            "id": 12,
            "name": "lint",
            "status": "in_progress",
            "conclusion": None,
            "details_url": "https://github.com/o/r/actions/runs/555/job/9002",
            "app": {"name": "GitHub Actions"},
        },
        {
            "id": 13,
            "name": "codecov",
            "status": "completed",
            "conclusion": "success",
            "details_url": "https://codecov.io/whatever",
            "app": {"name": "Codecov"},
        },
    ],
}


def route(responses):
    """side_effect that answers by URL suffix."""
    def _request(method, url, **kwargs):
        for suffix, response in responses.items():
            if url.endswith(suffix):
                return response
        raise AssertionError(f"Unexpected request: {method} {url}")
    return _request


class TestGitHubCIClientInit:
    def test_init_sets_headers_correctly(self):
        client = GitHubCIClient(token="ghp_test_token_123")

        assert client.base_url == "https://api.github.com"
        assert client.headers["Accept"] == "application/vnd.github+json"
        assert client.headers["Authorization"] == "Bearer ghp_test_token_123"
        assert client.headers["X-GitHub-Api-Version"] == "2022-11-28"

    @pytest.mark.parametrize("token", ["", "   ", None])
    def test_missing_token_rejected(self, token):
        with pytest.raises(ConfigurationError):
            GitHubCIClient(token=token)


class TestReads:
    def test_get_pull_request(self):
        client = GitHubCIClient(token="t")
        with patch("requests.request", return_value=mock_response(json_data=PR_JSON)) as mock_request:
            pr = client.get_pull_request("o/r", 7)

        assert mock_request.call_args[0] == ("GET", "https://api.github.com/repos/o/r/pulls/7")
        assert pr.head.sha == "deadbeef1234"
        assert pr.user.login == "octocat"

    def test_check_runs_request_100_per_page(self):
        client = GitHubCIClient(token="t")
        with patch("requests.request", return_value=mock_response(json_data=CHECK_RUNS_JSON)) as mock_request:
            runs = client.get_check_runs("o/r", "deadbeef1234")

        assert mock_request.call_args[0][1] == "https://api.github.com/repos/o/r/commits/deadbeef1234/check-runs"
        assert mock_request.call_args[1]["params"] == {"per_page": 100}
        assert [r.name for r in runs] == ["build", "lint", "codecov"]

    def test_workflow_runs_filter_by_head_sha(self):
        client = GitHubCIClient(token="t")
        body = {"total_count": 1, "workflow_runs": [{"id": 77, "conclusion": "failure"}]}
        with patch("requests.request", return_value=mock_response(json_data=body)) as mock_request:
            runs = client.get_workflow_runs("o/r", "deadbeef1234")

        assert mock_request.call_args[1]["params"] == {"head_sha": "deadbeef1234", "per_page": 50}
        assert runs[0].id == 77

    def test_error_uses_body_message(self):
        client = GitHubCIClient(token="t")
        response = mock_response(404, json_data={"message": "Not Found"})
        with patch("requests.request", return_value=response):
            with pytest.raises(NetworkError) as exc_info:
                client.get_pull_request("o/r", 7)

        assert exc_info.value.status == 404
        assert exc_info.value.message == "Not Found"

    def test_error_without_body_message(self):
        client = GitHubCIClient(token="t")
        with patch("requests.request", return_value=mock_response(502, text="<html>")):
            with pytest.raises(NetworkError) as exc_info:
                client.get_pull_request("o/r", 7)

        assert exc_info.value.message == "HTTP 502"

    def test_connection_failure_is_network_error(self):
        client = GitHubCIClient(token="t")
        with patch("requests.request", side_effect=requests.ConnectionError("boom")):
            with pytest.raises(NetworkError) as exc_info:
                client.get_pull_request("o/r", 7)

        assert exc_info.value.status == 0

    def test_unexpected_payload_is_decode_error(self):
        client = GitHubCIClient(token="t")
        with patch("requests.request", return_value=mock_response(json_data={"number": 7})):
            with pytest.raises(DecodeError):
                client.get_pull_request("o/r", 7)

    def test_non_json_body_is_decode_error(self):
        client = GitHubCIClient(token="t")
        with patch("requests.request", return_value=mock_response(200, text="not json")):
            with pytest.raises(DecodeError):
                client.get_pull_request("o/r", 7)

    def test_rate_limit_waits_and_retries(self):
        client = GitHubCIClient(token="t")
        limited = mock_response(429, headers={"X-RateLimit-Reset": "0"})
        ok = mock_response(json_data=PR_JSON)

        with patch("requests.request", side_effect=[limited, ok]) as mock_request, \
                patch("fetchers.github.time.sleep") as mock_sleep:
            pr = client.get_pull_request("o/r", 7)

        assert mock_request.call_count == 2
        mock_sleep.assert_called_once()
        assert pr.number == 7


class TestJobLogs:
    def test_logs_are_stripped_and_tailed(self):
        client = GitHubCIClient(token="t")
        raw = "\n".join(f"\x1b[31mline {i}\x1b[0m" for i in range(400))
        with patch("requests.request", return_value=mock_response(text=raw)) as mock_request:
            logs = client.get_job_logs("o/r", 9001)

        assert mock_request.call_args[0][1] == "https://api.github.com/repos/o/r/actions/jobs/9001/logs"
        lines = logs.split("\n")
        assert len(lines) == 300
        assert lines[0] == "line 100"
        assert lines[-1] == "line 399"
        assert "\x1b" not in logs

    def test_missing_logs_raise(self):
        client = GitHubCIClient(token="t")
        with patch("requests.request", return_value=mock_response(410, json_data={"message": "Gone"})):
            with pytest.raises(NetworkError):
                client.get_job_logs("o/r", 9001)

    def test_helpers(self):
        assert strip_ansi("\x1b[1;32mok\x1b[K") == "ok"
        assert tail_lines("a\nb\nc", max_lines=2) == "b\nc"


class TestTriggerRerun:
    def test_posts_rerun_failed_jobs(self):
        client = GitHubCIClient(token="t")
        with patch("requests.request", return_value=mock_response(201, text="")) as mock_request:
            client.trigger_rerun("o/r", 555)

        assert mock_request.call_args[0] == ("POST", "https://api.github.com/repos/o/r/actions/runs/555/rerun-failed-jobs")

    def test_already_running(self):
        client = GitHubCIClient(token="t")
        response = mock_response(
            403,
            json_data={"message": "This workflow is already running"},
            text='{"message": "This workflow is already running"}',
        )
        with patch("requests.request", return_value=response):
            with pytest.raises(AlreadyRunningError) as exc_info:
                client.trigger_rerun("o/r", 555)

        assert exc_info.value.status == 403

    def test_other_403_is_plain_network_error(self):
        client = GitHubCIClient(token="t")
        response = mock_response(403, json_data={"message": "Resource not accessible"}, text="Resource not accessible")
        with patch("requests.request", return_value=response):
            with pytest.raises(NetworkError) as exc_info:
                client.trigger_rerun("o/r", 555)

        assert not isinstance(exc_info.value, AlreadyRunningError)
        assert exc_info.value.message == "Resource not accessible"


class TestCompositeReads:
    def test_fetch_pr_snapshot(self):
        client = GitHubCIClient(token="t")
        responses = {
            "/pulls/7": mock_response(json_data=PR_JSON),
            "/check-runs": mock_response(json_data=CHECK_RUNS_JSON),
        }
        with patch("requests.request", side_effect=route(responses)):
            snapshot = client.fetch_pr_snapshot("o/r", 7)

        assert snapshot.title == "Add retries"
        assert snapshot.author == "octocat"
        assert snapshot.state == "open"
        assert snapshot.additions == 12
        assert [(j.name, j.status, j.job_id) for j in snapshot.jobs] == [
            ("build", "failure", 9001),
            ("lint", "running", 9002),
            ("codecov", "success", None),
        ]

    def test_merged_pr_state(self):
        client = GitHubCIClient(token="t")
        merged = dict(PR_JSON, state="closed", merged_at="2025-01-16T10:30:00Z")
        responses = {
            "/pulls/7": mock_response(json_data=merged),
            "/check-runs": mock_response(json_data={"total_count": 0, "check_runs": []}),
        }
        with patch("requests.request", side_effect=route(responses)):
            snapshot = client.fetch_pr_snapshot("o/r", 7)

        assert snapshot.state == "merged"
        assert snapshot.jobs == []

    def test_representative_run_from_check_runs(self):
        client = GitHubCIClient(token="t")
        responses = {
            "/pulls/7": mock_response(json_data=PR_JSON),
            "/check-runs": mock_response(json_data=CHECK_RUNS_JSON),
        }
        with patch("requests.request", side_effect=route(responses)):
            assert client.get_representative_run_id("o/r", 7) == 555

    def test_representative_run_falls_back_to_failed_workflow_run(self):
        client = GitHubCIClient(token="t")
        runs = {"total_count": 2, "workflow_runs": [{"id": 1, "conclusion": "success"}, {"id": 2, "conclusion": "failure"}]}
        responses = {
            "/pulls/7": mock_response(json_data=PR_JSON),
            "/check-runs": mock_response(json_data={"total_count": 0, "check_runs": []}),
            "/actions/runs": mock_response(json_data=runs),
        }
        with patch("requests.request", side_effect=route(responses)):
            assert client.get_representative_run_id("o/r", 7) == 2

    def test_representative_run_absent(self):
        client = GitHubCIClient(token="t")
        responses = {
            "/pulls/7": mock_response(json_data=PR_JSON),
            "/check-runs": mock_response(json_data={"total_count": 0, "check_runs": []}),
            "/actions/runs": mock_response(json_data={"total_count": 0, "workflow_runs": []}),
        }
        with patch("requests.request", side_effect=route(responses)):
            assert client.get_representative_run_id("o/r", 7) is None
