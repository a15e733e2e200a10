"""Pure status derivation: raw check-run data -> job status -> PR status.

No I/O and no state; everything here is safe to call from any thread.
"""

import re
from typing import Iterable, Optional

RUNNING_CHECK_STATES = {"queued", "in_progress"}
SUCCESS_CONCLUSIONS = {"success", "neutral"}
FAILURE_CONCLUSIONS = {"failure", "timed_out"}

# Broader than FAILURE_CONCLUSIONS: decides rerun eligibility only
RERUNNABLE_CONCLUSIONS = {"failure", "timed_out", "cancelled", "action_required"}

RUN_ID_PATTERN = re.compile(r"/actions/runs/(\d+)(?:/job/\d+)?(?:[/?]|$)")
JOB_ID_PATTERN = re.compile(r"/job/(\d+)")


def map_job_status(check_run) -> str:
    """
    Map one raw check-run to a job status.

    Args:
        check_run: Object with ``status`` and ``conclusion`` attributes
                   (a CheckRunPayload)

    Returns:
        One of "running", "success", "failure", "skipped". Anything not
        explicitly mapped (cancelled, skipped, action_required, None)
        becomes "skipped".
    """
    if check_run.status in RUNNING_CHECK_STATES:
        return "running"
    if check_run.conclusion in SUCCESS_CONCLUSIONS:
        return "success"
    if check_run.conclusion in FAILURE_CONCLUSIONS:
        return "failure"
    return "skipped"


def derive_ci_status(jobs: Iterable) -> str:
    """
    Collapse job statuses into one PR-level status.

    Priority: no jobs -> "pending"; any running -> "running" (even next
    to failures); any failure -> "failure"; otherwise "success".
    """
    statuses = [job.status for job in jobs]
    if not statuses:
        return "pending"
    if "running" in statuses:
        return "running"
    if "failure" in statuses:
        return "failure"
    return "success"


def is_failed_conclusion(conclusion: Optional[str]) -> bool:
    return (conclusion or "") in RERUNNABLE_CONCLUSIONS


def extract_run_id(details_url: Optional[str]) -> Optional[int]:
    """
    Recover the workflow run id from a check-run details link.

    Examples:
        ".../actions/runs/555/job/9999" -> 555
        "https://host/other" -> None
    """
    if not details_url:
        return None
    match = RUN_ID_PATTERN.search(details_url)
    return int(match.group(1)) if match else None


def extract_job_id(details_url: Optional[str]) -> Optional[int]:
    """Recover the Actions job id (used for log fetches) from a details link."""
    if not details_url:
        return None
    match = JOB_ID_PATTERN.search(details_url)
    return int(match.group(1)) if match else None
