"""Configuration models for validation using Pydantic."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class CredentialsConfig(BaseModel):
    """API credentials loaded from environment variables."""

    # GitHub token (required by every command that talks to the API)
    github_token: Optional[str] = Field(None, description="GitHub token with Pull Requests, Checks and Actions access")

    # Supabase (optional key-value persistence back end)
    supabase_url: Optional[str] = Field(None, description="Supabase project URL")
    supabase_key: Optional[str] = Field(None, description="Supabase API key")
    database_url: Optional[str] = Field(None, description="PostgreSQL database URL (optional, for schema setup)")

    # LLM configuration for CI log analysis
    anthropic_api_key: Optional[str] = Field(None, description="Anthropic API key for Claude")
    openai_api_key: Optional[str] = Field(None, description="OpenAI API key")
    llm_provider: str = Field(default="anthropic", description="LLM provider: 'anthropic' or 'openai'")
    llm_model: str = Field(default="claude-sonnet-4-5-20250929", description="LLM model name")

    @field_validator(
        "github_token", "supabase_url", "supabase_key", "database_url", "anthropic_api_key", "openai_api_key"
    )
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty or whitespace-only values as unset."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: Optional[str]) -> Optional[str]:
        """Reject the placeholder token from .env.example."""
        if v == "ghp_your_token_here":
            raise ValueError("GitHub token must be set in .env file")
        return v

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Supabase URL format when one is configured."""
        if v is None:
            return None
        if v == "https://your-project.supabase.co":
            raise ValueError("Supabase URL must be set in .env file")
        if not v.startswith("https://"):
            raise ValueError("Supabase URL must start with https://")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        v_lower = v.strip().lower()
        if v_lower not in ("anthropic", "openai"):
            raise ValueError("LLM provider must be 'anthropic' or 'openai'")
        return v_lower

    @model_validator(mode='after')
    def validate_supabase_pair(self):
        """Supabase URL and key must be set together."""
        if bool(self.supabase_url) != bool(self.supabase_key):
            raise ValueError(
                "SUPABASE_URL and SUPABASE_KEY must be set together. "
                "Leave both empty to store tracked PRs in a local file."
            )
        return self

    @property
    def use_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def llm_api_key(self) -> Optional[str]:
        """API key for the configured LLM provider, if any."""
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key


class TrackerConfig(BaseModel):
    """Polling and rerun timing, in seconds."""

    refresh_interval_running: float = Field(default=15.0, gt=0, description="Refresh period while any CI is running")
    refresh_interval_idle: float = Field(default=30.0, gt=0, description="Refresh period otherwise")
    startup_refresh_delay: float = Field(default=1.0, ge=0, description="Delay before the startup bulk refresh")
    rerun_settle_delay: float = Field(default=2.0, ge=0, description="Delay before refreshing a PR after a rerun")
    state_file: str = Field(default="~/.pr_ci_tracker/state.json", description="Local file for the tracked PR list")


class LauncherConfig(BaseModel):
    """External CLI commands offered for failure analysis."""

    primary_cli_label: str = "Claude CLI"
    primary_cli_template: str = "claude -p {context}"
    secondary_cli_label: str = "Kimi CLI"
    secondary_cli_template: str = "kimi -y -p {context}"

    def actions(self) -> dict[str, tuple[str, str]]:
        """(label, template) per launcher slot, skipping empty templates."""
        pairs = {
            "primary": (self.primary_cli_label, self.primary_cli_template),
            "secondary": (self.secondary_cli_label, self.secondary_cli_template),
        }
        return {slot: pair for slot, pair in pairs.items() if pair[1].strip()}


class Config(BaseModel):
    """Application configuration."""

    credentials: CredentialsConfig
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    launcher: LauncherConfig = Field(default_factory=LauncherConfig)
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper
