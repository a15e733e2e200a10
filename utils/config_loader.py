"""Configuration loader that reads from .env and validates with Pydantic."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv
from pydantic import ValidationError

from models.config_models import Config, CredentialsConfig, LauncherConfig, TrackerConfig


def _env_overrides(mapping: dict[str, str]) -> dict[str, str]:
    """Collect environment values for the given field -> variable mapping."""
    values = {}
    for field, env_var in mapping.items():
        value = os.getenv(env_var)
        if value is not None and value.strip() != "":
            values[field] = value
    return values


def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Reads from .env file in the project root and validates all
    credentials and settings using Pydantic models. Unset tracker and
    launcher values fall back to the model defaults.

    Returns:
        Config: Validated configuration object

    Raises:
        SystemExit: If configuration is invalid
    """
    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    try:
        config = Config(
            credentials=CredentialsConfig(
                github_token=os.getenv("GITHUB_TOKEN"),
                supabase_url=os.getenv("SUPABASE_URL"),
                supabase_key=os.getenv("SUPABASE_KEY"),
                database_url=os.getenv("DATABASE_URL"),
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
                openai_api_key=os.getenv("OPENAI_API_KEY"),
                **_env_overrides({"llm_provider": "LLM_PROVIDER", "llm_model": "LLM_MODEL"}),
            ),
            tracker=TrackerConfig(**_env_overrides({
                "refresh_interval_running": "REFRESH_INTERVAL_RUNNING",
                "refresh_interval_idle": "REFRESH_INTERVAL_IDLE",
                "startup_refresh_delay": "STARTUP_REFRESH_DELAY",
                "rerun_settle_delay": "RERUN_SETTLE_DELAY",
                "state_file": "STATE_FILE",
            })),
            launcher=LauncherConfig(**_env_overrides({
                "primary_cli_label": "PRIMARY_CLI_LABEL",
                "primary_cli_template": "PRIMARY_CLI_TEMPLATE",
                "secondary_cli_label": "SECONDARY_CLI_LABEL",
                "secondary_cli_template": "SECONDARY_CLI_TEMPLATE",
            })),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        return config

    except ValidationError as e:
        print("❌ Configuration validation failed:", file=sys.stderr)
        print("\nPlease check your .env file. Missing or invalid fields:", file=sys.stderr)

        for error in e.errors():
            field_path = " → ".join(str(x) for x in error["loc"])
            message = error["msg"]
            print(f"  • {field_path}: {message}", file=sys.stderr)

        print("\nHint: Copy .env.example to .env and fill in your credentials.", file=sys.stderr)
        sys.exit(1)
