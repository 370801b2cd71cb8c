"""Output, logging and environment-file configuration."""

import os
from enum import Enum
from pathlib import Path
from typing import Literal


class OutputFormat(str, Enum):
    """Console output format options."""
    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"
LOG_LEVEL_ENV = "RUNNER_LOG_LEVEL"
ENV_FILE_ENV = "RUNNER_ENV_FILE"
DEFAULT_ENV_FILE = Path("workspace/environment.json")


def get_output_format(cli_override: str | None = None) -> OutputFormat:
    """
    Get the output format with priority: CLI parameter > Environment variable > Default (auto).

    Args:
        cli_override: Optional CLI parameter value that takes precedence

    Returns:
        OutputFormat enum value
    """
    # Priority 1: CLI parameter
    if cli_override:
        try:
            return OutputFormat(cli_override.lower())
        except ValueError:
            pass

    # Priority 2: Environment variable
    env_value = os.environ.get(ENV_VAR_NAME)
    if env_value:
        try:
            return OutputFormat(env_value.lower())
        except ValueError:
            pass

    # Priority 3: Default
    return OutputFormat.AUTO


def get_log_format(output_format: OutputFormat) -> LogFormat:
    """Map the console output format onto a structlog renderer."""
    if output_format == OutputFormat.JSON:
        return "json"
    if output_format == OutputFormat.PLAIN:
        return "plain"
    return "console"


def get_log_level(cli_override: str | None = None) -> str:
    return (cli_override or os.environ.get(LOG_LEVEL_ENV) or "warning").lower()


def get_env_file(cli_override: Path | None = None) -> Path:
    if cli_override:
        return cli_override
    env_value = os.environ.get(ENV_FILE_ENV)
    if env_value:
        return Path(env_value)
    return DEFAULT_ENV_FILE
