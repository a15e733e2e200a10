"""
LLM client for summarizing failed CI job logs.

Uses the OpenAI Python SDK, which supports both OpenAI and Anthropic models
through a unified interface.
"""

import logging
from typing import Optional
from openai import OpenAI

from analyzer.prompt_template import LOG_ANALYSIS_PROMPT

logger = logging.getLogger(__name__)

# Characters of log tail sent to the model
MAX_LOG_CHARS = 4000
ELISION_MARKER = "[… earlier output omitted …]"


def truncate_log_tail(logs: str, max_chars: int = MAX_LOG_CHARS) -> str:
    """Keep the last ``max_chars`` characters, marking the cut."""
    if len(logs) <= max_chars:
        return logs
    return f"{ELISION_MARKER}\n{logs[-max_chars:]}"


class LLMClient:
    """
    Client for interacting with LLM providers.

    Uses OpenAI SDK which natively supports both OpenAI and Anthropic models
    through a unified interface.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str,
        temperature: float = 0.0,
        max_tokens: int = 2048
    ):
        """
        Initialize LLM client.

        Args:
            provider: LLM provider - 'anthropic' or 'openai'
            model: Model name (e.g., 'claude-sonnet-4-5-20250929', 'gpt-4o')
            api_key: API key for the provider
            temperature: Sampling temperature (0.0 for deterministic output)
            max_tokens: Maximum tokens in response (required by the Anthropic API)

        Raises:
            ValueError: If provider is not supported or API key is missing
        """
        self.provider = provider.lower()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        if self.provider not in ["anthropic", "openai"]:
            raise ValueError(f"Unsupported provider: {provider}. Must be 'anthropic' or 'openai'")

        if not api_key:
            raise ValueError(f"{provider} API key is required but not provided")

        # For Anthropic, OpenAI SDK uses base_url and api_key
        if self.provider == "anthropic":
            self.client = OpenAI(
                api_key=api_key,
                base_url="https://api.anthropic.com/v1"
            )
        else:
            self.client = OpenAI(api_key=api_key)

        logger.info(f"Initialized LLMClient: provider={provider}, model={model}")

    def send_prompt(self, prompt: str, system: Optional[str] = None) -> str:
        """
        Send a prompt to the LLM and get a text response.

        Args:
            prompt: The prompt text to send
            system: Optional system message

        Returns:
            Text response from the LLM (empty string if the model returned none)

        Raises:
            Exception: If API call fails (auth, rate limit, etc.)
        """
        try:
            logger.debug(f"Sending prompt to {self.provider} ({len(prompt)} chars)")

            messages = [{"role": "user", "content": prompt}]
            if system:
                messages.insert(0, {"role": "system", "content": system})

            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )

            response_text = response.choices[0].message.content

            if hasattr(response, "usage") and response.usage:
                logger.info(
                    f"LLM usage: {response.usage.prompt_tokens} prompt tokens, "
                    f"{response.usage.completion_tokens} completion tokens, "
                    f"{response.usage.total_tokens} total"
                )

            return response_text or ""

        except Exception as e:
            logger.error(f"LLM API call failed: {e}")
            raise

    def analyze_failure(self, logs: str, job_name: str) -> str:
        """
        Summarize why a CI job failed.

        Args:
            logs: ANSI-stripped job log (already tail-truncated by line count)
            job_name: Name of the failed job

        Returns:
            Plain-text analysis: failure type, root cause, details, fixes

        Raises:
            ValueError: If the model returned an empty answer
            Exception: If the API call fails
        """
        prompt = LOG_ANALYSIS_PROMPT.format(job_name=job_name, logs=truncate_log_tail(logs))
        analysis = self.send_prompt(prompt).strip()
        if not analysis:
            raise ValueError("LLM returned an empty analysis")
        logger.info(f"Analyzed failure of '{job_name}' ({len(analysis)} chars)")
        return analysis
