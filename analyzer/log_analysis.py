"""Fetch a failed job's log and optionally summarize it with an LLM.

A session belongs to one view (a CLI command, one HTTP request, ...). If
the view goes away it calls ``cancel()``; the network calls are not
aborted but their results are dropped.
"""

import asyncio
import logging
from typing import Optional, Protocol

from pydantic import BaseModel

from analyzer.context_builder import build_raw_log_context
from fetchers.github import GitHubCIClient
from models.config_models import CredentialsConfig
from models.data_models import CIJob
from models.errors import ConfigurationError, TrackerError

logger = logging.getLogger(__name__)


class FailureAnalyzer(Protocol):
    def analyze_failure(self, logs: str, job_name: str) -> str: ...


class LogAnalysisResult(BaseModel):
    """What a log-analysis view shows.

    ``cli_context`` is the text offered to external CLIs: the AI summary
    when there is one, the raw log fallback otherwise.
    """

    job_name: str
    analysis: Optional[str] = None
    cli_context: Optional[str] = None
    error: Optional[str] = None


def build_analyzer(credentials: CredentialsConfig) -> Optional[FailureAnalyzer]:
    """LLM analyzer for the configured provider, or None without an API key."""
    if not credentials.llm_api_key:
        return None
    from analyzer.llm_client import LLMClient
    return LLMClient(
        provider=credentials.llm_provider,
        model=credentials.llm_model,
        api_key=credentials.llm_api_key,
    )


class LogAnalysisSession:
    """One cancellable log fetch + analysis for a failed job."""

    def __init__(
        self,
        client: GitHubCIClient,
        repo: str,
        job: CIJob,
        analyzer: Optional[FailureAnalyzer] = None,
    ):
        self.client = client
        self.repo = repo
        self.job = job
        self.analyzer = analyzer
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    async def run(self) -> Optional[LogAnalysisResult]:
        """
        Fetch logs, then ask the analyzer for a summary.

        Returns:
            The result, or None if the session was cancelled meanwhile.
            Failures are reported in ``result.error``, never raised.
        """
        job_name = self.job.name
        if self.job.job_id is None:
            error = ConfigurationError("Job ID not available")
            return LogAnalysisResult(job_name=job_name, error=str(error))

        try:
            logs = await asyncio.to_thread(self.client.get_job_logs, self.repo, self.job.job_id)
        except TrackerError as e:
            logger.warning(f"Could not fetch logs for '{job_name}': {e}")
            return None if self.cancelled else LogAnalysisResult(job_name=job_name, error=str(e))

        if self.cancelled:
            return None

        fallback = build_raw_log_context(job_name, logs)
        if self.analyzer is None:
            return LogAnalysisResult(
                job_name=job_name,
                cli_context=fallback,
                error="AI analysis is not configured. You can still run CLI analysis.",
            )

        try:
            analysis = await asyncio.to_thread(self.analyzer.analyze_failure, logs, job_name)
        except Exception as e:
            logger.warning(f"AI analysis of '{job_name}' failed: {e}")
            if self.cancelled:
                return None
            return LogAnalysisResult(
                job_name=job_name,
                cli_context=fallback,
                error=f"AI analysis failed ({e}). You can still run CLI analysis.",
            )

        if self.cancelled:
            return None
        return LogAnalysisResult(job_name=job_name, analysis=analysis, cli_context=analysis)
