"""Launch an external CLI agent with a failure context.

Templates are user-configured shell commands with placeholders:
``{context}``, ``{repo}``, ``{number}`` and ``{pr_url}``. Every value
except the number is shell-quoted.
"""

import logging
import re
import shlex
import subprocess

from analyzer.context_builder import build_cli_context
from models.errors import ConfigurationError

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{(context|repo|number|pr_url)\}")


class CommandLauncher:
    """Renders a command template and starts it in a shell."""

    def __init__(self, template: str, label: str = "CLI"):
        if not template or not template.strip():
            raise ConfigurationError(f"{label} command template is empty")
        self.template = template.strip()
        self.label = label

    def render(self, context: str, repo: str, number: int, pr_url: str) -> str:
        """Fill the template in one pass, so substituted text is never re-expanded."""
        values = {
            "context": shlex.quote(build_cli_context(repo, number, pr_url, context)),
            "repo": shlex.quote(repo),
            "number": str(number),
            "pr_url": shlex.quote(pr_url),
        }
        return PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], self.template)

    def launch(self, context: str, repo: str, number: int, pr_url: str) -> subprocess.Popen:
        command = self.render(context, repo, number, pr_url)
        logger.info(f"Launching {self.label} for {repo}#{number}")
        return subprocess.Popen(command, shell=True)
