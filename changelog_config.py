"""
Configuration for the Linear changelog generator

Settings are read from the environment (and a local .env file) once at
startup, then passed explicitly to the handlers and the pipeline.
"""

import logging
import os
import sys
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv


DEFAULT_LINEAR_TEAM = "Peach-technology"
DEFAULT_LINEAR_API_URL = "https://api.linear.app/graphql"
DEFAULT_PROJECT_LABELS = ("API", "Assessment Tool", "HQ", "Website")

# Latest Claude model and settings for the ticket summaries
DEFAULT_CLAUDE_MODEL = "claude-opus-4-5-20251101"
DEFAULT_CLAUDE_MAX_TOKENS = 2000
DEFAULT_CLAUDE_TEMPERATURE = 0.0  # Zero temperature keeps re-runs stable

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class ChangelogConfig:
    """Configuration settings for one changelog run."""

    __slots__ = (
        "linear_api_key", "anthropic_api_key", "linear_team", "linear_api_url",
        "project_labels", "batch_size", "lookback_days", "page_size",
        "claude_model", "claude_max_tokens", "claude_temperature", "max_retries",
        "resolve_workers", "legacy_enhancements_section", "log_level",
        "log_directory", "log_file", "_frozen",
    )

    def __init__(self, linear_api_key: str, anthropic_api_key: str,
                 linear_team: str = DEFAULT_LINEAR_TEAM,
                 linear_api_url: str = DEFAULT_LINEAR_API_URL,
                 project_labels: Tuple[str, ...] = DEFAULT_PROJECT_LABELS,
                 batch_size: int = 15,
                 lookback_days: int = 14,
                 page_size: int = 250,
                 claude_model: str = DEFAULT_CLAUDE_MODEL,
                 claude_max_tokens: int = DEFAULT_CLAUDE_MAX_TOKENS,
                 claude_temperature: float = DEFAULT_CLAUDE_TEMPERATURE,
                 max_retries: int = 5,
                 resolve_workers: int = 8,
                 legacy_enhancements_section: bool = False,
                 log_level: str = "INFO",
                 log_directory: str = "logs",
                 log_file: Optional[str] = None):
        missing = [name for name, value in (("LINEAR_API_KEY", linear_api_key),
                                            ("ANTHROPIC_API_KEY", anthropic_api_key))
                   if not value]
        if missing:
            raise ValueError(f"Missing required settings: {', '.join(missing)}")
        for name, value in (("batch_size", batch_size), ("lookback_days", lookback_days),
                            ("page_size", page_size), ("max_retries", max_retries),
                            ("resolve_workers", resolve_workers)):
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")

        self.linear_api_key = linear_api_key
        self.anthropic_api_key = anthropic_api_key
        self.linear_team = linear_team
        self.linear_api_url = linear_api_url
        self.project_labels = tuple(project_labels)
        self.batch_size = batch_size
        self.lookback_days = lookback_days
        self.page_size = page_size
        self.claude_model = claude_model
        self.claude_max_tokens = claude_max_tokens
        self.claude_temperature = claude_temperature
        self.max_retries = max_retries
        self.resolve_workers = resolve_workers
        self.legacy_enhancements_section = legacy_enhancements_section
        self.log_level = log_level.upper()
        self.log_directory = log_directory
        self.log_file = log_file
        self._frozen = True

    def __setattr__(self, name, value):
        if getattr(self, "_frozen", False):
            raise AttributeError(f"ChangelogConfig is read-only (tried to set {name})")
        object.__setattr__(self, name, value)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None,
                 dotenv: bool = True) -> "ChangelogConfig":
        """
        Build the configuration from environment variables.

        Args:
            env: Mapping to read instead of os.environ (used by tests)
            dotenv: Load a local .env file first when reading os.environ

        Returns:
            ChangelogConfig

        Raises:
            ValueError: if a credential is missing or a number is invalid
        """
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        labels = env.get("PROJECT_LABELS")
        project_labels = (
            tuple(label.strip() for label in labels.split(",") if label.strip())
            if labels else DEFAULT_PROJECT_LABELS
        )

        return cls(
            linear_api_key=env.get("LINEAR_API_KEY", ""),
            anthropic_api_key=env.get("ANTHROPIC_API_KEY", ""),
            linear_team=env.get("LINEAR_TEAM") or DEFAULT_LINEAR_TEAM,
            linear_api_url=env.get("LINEAR_API_URL") or DEFAULT_LINEAR_API_URL,
            project_labels=project_labels,
            batch_size=_int(env, "BATCH_SIZE", 15),
            lookback_days=_int(env, "LOOKBACK_DAYS", 14),
            page_size=_int(env, "PAGE_SIZE", 250),
            claude_model=env.get("CLAUDE_MODEL") or DEFAULT_CLAUDE_MODEL,
            claude_max_tokens=_int(env, "CLAUDE_MAX_TOKENS", DEFAULT_CLAUDE_MAX_TOKENS),
            claude_temperature=_float(env, "CLAUDE_TEMPERATURE", DEFAULT_CLAUDE_TEMPERATURE),
            max_retries=_int(env, "MAX_RETRIES", 5),
            resolve_workers=_int(env, "RESOLVE_WORKERS", 8),
            legacy_enhancements_section=_bool(env, "LEGACY_ENHANCEMENTS_SECTION"),
            log_level=env.get("LOG_LEVEL") or "INFO",
            log_directory=env.get("LOG_DIRECTORY") or "logs",
            log_file=env.get("LOG_FILE") or None,
        )

    def get_log_path(self) -> Optional[str]:
        """Get the full path to the log file, if file logging is enabled."""
        if not self.log_file:
            return None
        return os.path.join(self.log_directory, self.log_file)

    def ensure_log_directory(self) -> None:
        """Create the log directory if it doesn't exist."""
        if self.log_file and not os.path.exists(self.log_directory):
            os.makedirs(self.log_directory)

    def log_config(self) -> None:
        """Log current configuration for debugging (credentials are never logged)."""
        logger.info("[Config] Team: %s", self.linear_team)
        logger.info("[Config] Lookback: %d days | Batch size: %d | Page size: %d",
                    self.lookback_days, self.batch_size, self.page_size)
        logger.info("[Config] Model: %s | Max tokens: %d | Max retries: %d",
                    self.claude_model, self.claude_max_tokens, self.max_retries)


def setup_logging(config: ChangelogConfig) -> None:
    """Configure console (stderr) logging plus an optional log file."""
    handlers = [logging.StreamHandler(sys.stderr)]
    log_path = config.get_log_path()
    if log_path:
        config.ensure_log_directory()
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
