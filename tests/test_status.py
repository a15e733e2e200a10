"""Tests for job/PR status derivation and details-link parsing."""

import pytest

from models.data_models import CIJob, TrackedPR
from models.github_schemas import CheckRunPayload
from tracker.status import derive_ci_status, extract_job_id, extract_run_id, is_failed_conclusion, map_job_status


def check_run(status="completed", conclusion=None) -> CheckRunPayload:
    return CheckRunPayload(id=1, name="build", status=status, conclusion=conclusion)


def jobs(*statuses):
    return [CIJob(name=f"job-{i}", status=status) for i, status in enumerate(statuses)]


class TestMapJobStatus:
    @pytest.mark.parametrize("status", ["queued", "in_progress"])
    def test_queued_and_in_progress_are_running(self, status):
        # Even a stale conclusion does not matter while the run is active
        assert map_job_status(check_run(status=status, conclusion="failure")) == "running"

    @pytest.mark.parametrize("conclusion", ["success", "neutral"])
    def test_success_conclusions(self, conclusion):
        assert map_job_status(check_run(conclusion=conclusion)) == "success"

    @pytest.mark.parametrize("conclusion", ["failure", "timed_out"])
    def test_failure_conclusions(self, conclusion):
        assert map_job_status(check_run(conclusion=conclusion)) == "failure"

    @pytest.mark.parametrize("conclusion", ["cancelled", "skipped", "action_required", None])
    def test_everything_else_is_skipped(self, conclusion):
        assert map_job_status(check_run(conclusion=conclusion)) == "skipped"


class TestDeriveCIStatus:
    def test_no_jobs_is_pending(self):
        assert derive_ci_status([]) == "pending"

    def test_running_wins_over_failure(self):
        assert derive_ci_status(jobs("failure", "running", "success")) == "running"

    def test_any_failure_is_failure(self):
        assert derive_ci_status(jobs("success", "failure", "skipped")) == "failure"

    def test_success_and_skipped_is_success(self):
        assert derive_ci_status(jobs("success", "skipped")) == "success"

    def test_record_ci_status_tracks_jobs(self):
        record = TrackedPR(repo="o/r", number=1)
        assert record.ci_status == "pending"

        record.jobs = jobs("failure")
        assert record.ci_status == "failure"


class TestDetailsLinks:
    def test_run_id_from_job_link(self):
        assert extract_run_id("https://github.com/o/r/actions/runs/555/job/9999") == 555

    def test_run_id_from_run_link_with_query(self):
        assert extract_run_id("https://github.com/o/r/actions/runs/42?check_suite_focus=true") == 42

    def test_run_id_at_end_of_link(self):
        assert extract_run_id("https://github.com/o/r/actions/runs/42") == 42

    @pytest.mark.parametrize("url", [None, "", "https://host/other", "https://ci.example.com/build/7"])
    def test_run_id_absent(self, url):
        assert extract_run_id(url) is None

    def test_job_id(self):
        assert extract_job_id("https://github.com/o/r/actions/runs/555/job/9999") == 9999
        assert extract_job_id("https://github.com/o/r/actions/runs/555") is None

    def test_rerunnable_conclusions(self):
        assert is_failed_conclusion("cancelled")
        assert is_failed_conclusion("action_required")
        assert not is_failed_conclusion("success")
        assert not is_failed_conclusion(None)
