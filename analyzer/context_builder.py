"""
Context builders for failure analysis.

Pure functions that turn logs or an AI summary into the text blobs handed
to external collaborators. No I/O here.
"""

from analyzer.prompt_template import CLI_CONTEXT_HEADER, RAW_LOG_CONTEXT


def build_raw_log_context(job_name: str, logs: str) -> str:
    """Fallback context used when no AI summary is available."""
    return RAW_LOG_CONTEXT.format(job_name=job_name, logs=logs)


def build_cli_context(repo: str, number: int, pr_url: str, context: str) -> str:
    """
    Prefix an analysis context with the PR coordinates.

    Args:
        repo: Repository (e.g., "facebook/react")
        number: PR number
        pr_url: Link to the PR
        context: AI summary or raw-log fallback

    Returns:
        Full text passed to an external CLI as ``{context}``
    """
    header = CLI_CONTEXT_HEADER.format(repo=repo, number=number, pr_url=pr_url)
    return header + context
