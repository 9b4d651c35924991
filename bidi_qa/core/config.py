"""
Configuration management for the bi-directional QA runner.

Handles environment variables, optional YAML/JSON config files, defaults,
and configuration validation for all runner components.
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Dict, Any, List, Union

import yaml


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARN", "WARNING", "ERROR"]
PRODUCTION_ENVIRONMENT = "prd"
# Non-production targets only
VALID_ENVIRONMENTS = ["stg"]

_PATH_FIELDS = {"schools_dir", "logs_dir", "session_file", "debug_video_dir"}


@dataclass
class Config:
    """Configuration class for the runner with environment variable support."""

    # Environment detection
    ci_mode: bool = field(default=False)

    # Browser settings
    headless_mode: Optional[bool] = field(default=None)
    browser_timeout_ms: int = field(default=60000)
    merge_alert_timeout_ms: int = field(default=3000)

    # Logging configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")

    # Target system; the wizard always runs against a non-production environment
    environment: str = field(default="stg")

    # Remote API behaviour
    auth_max_attempts: int = field(default=5)
    request_timeout: float = field(default=30.0)
    merge_poll_initial_delay: float = field(default=60.0)
    merge_poll_interval: float = field(default=60.0)
    merge_poll_error_backoff: float = field(default=15.0)
    merge_poll_timeout: float = field(default=3600.0)

    # Scenario plug-ins, imported by the CLI
    scenario_modules: List[str] = field(default_factory=list)

    # Directory paths
    schools_dir: Path = field(default_factory=lambda: Path.cwd() / "schools")
    logs_dir: Path = field(default_factory=lambda: Path.cwd() / "logs")
    debug_video_dir: Path = field(default_factory=lambda: Path.cwd() / "debug-videos")
    session_file: Path = field(
        default_factory=lambda: Path.cwd() / ".bidi-qa" / "session.json"
    )

    def __post_init__(self):
        """Apply environment overrides and normalise values."""
        if os.getenv("CI", "").lower() == "true" and self.ci_mode is False:
            self.ci_mode = True

        headless_env = os.getenv("BIDI_QA_HEADLESS")
        if headless_env is not None:
            self.headless_mode = headless_env.lower() == "true"

        log_env = os.getenv("BIDI_QA_LOG_LEVEL")
        if log_env:
            self.log_level = log_env
        self.log_level = self.log_level.upper()
        if self.log_level not in VALID_LOG_LEVELS:
            self.log_level = "INFO"
        if self.log_level == "WARN":
            self.log_level = "WARNING"

        if self.ci_mode and self.log_format == "text":
            self.log_format = "json"

        env_override = os.getenv("BIDI_QA_ENVIRONMENT")
        if env_override:
            self.environment = env_override.lower()

        schools_env = os.getenv("BIDI_QA_SCHOOLS_DIR")
        if schools_env:
            self.schools_dir = Path(schools_env)

        session_env = os.getenv("BIDI_QA_SESSION_FILE")
        if session_env:
            self.session_file = Path(session_env)

        scenarios_env = os.getenv("BIDI_QA_SCENARIOS")
        if scenarios_env:
            self.scenario_modules = [
                name.strip() for name in scenarios_env.split(",") if name.strip()
            ]

        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, Path):
                setattr(self, name, Path(value))

    @property
    def is_ci_mode(self) -> bool:
        """Check if running in CI environment."""
        return self.ci_mode

    @property
    def debug_enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self.log_level == "DEBUG"

    def get_effective_headless_mode(self) -> bool:
        """Get effective headless mode based on CI and override settings."""
        if self.headless_mode is not None:
            return self.headless_mode
        return self.ci_mode

    def get_log_file_path(self) -> Path:
        """Get the main log file path."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        return self.logs_dir / "bidi-qa.log"

    def get_school_dir(self, school_id: str) -> Path:
        """Get the output directory for a school."""
        return self.schools_dir / school_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging."""
        return {
            "ci_mode": self.ci_mode,
            "headless_mode": self.headless_mode,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "environment": self.environment,
            "auth_max_attempts": self.auth_max_attempts,
            "merge_poll_interval": self.merge_poll_interval,
            "merge_poll_timeout": self.merge_poll_timeout,
            "scenario_modules": list(self.scenario_modules),
            "schools_dir": str(self.schools_dir),
            "logs_dir": str(self.logs_dir),
            "debug_video_dir": str(self.debug_video_dir),
            "session_file": str(self.session_file),
        }

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        ci = os.getenv("CI", "").lower() == "true"
        return cls(ci_mode=ci, log_format="json" if ci else "text")

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Config":
        """
        Create configuration from a YAML or JSON file.

        Environment variables still take precedence over file values.

        Args:
            path: Path to a ``.yaml``/``.yml`` or ``.json`` file

        Returns:
            Loaded configuration
        """
        from .exceptions import ValidationError

        path = Path(path)
        if not path.exists():
            raise ValidationError(
                f"Configuration file not found: {path}",
                validation_type="config_file",
                violations=[str(path)],
            )

        text = path.read_text(encoding="utf-8")
        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text) if text.strip() else {}
            else:
                data = yaml.safe_load(text) or {}
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValidationError(
                f"Configuration file could not be parsed: {e}",
                validation_type="config_file",
                violations=[str(e)],
            )

        if not isinstance(data, dict):
            raise ValidationError(
                "Configuration file must contain a mapping",
                validation_type="config_file",
            )

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                validation_type="config_file",
                violations=unknown,
            )

        return cls(**data)

    def validate(self) -> None:
        """Validate configuration and raise ValidationError if invalid."""
        from .exceptions import ValidationError

        errors = []

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

        if self.log_format not in ("text", "json"):
            errors.append(f"Invalid log format: {self.log_format}")

        if self.environment == PRODUCTION_ENVIRONMENT:
            errors.append("Production environment cannot be targeted by QA runs")
        elif self.environment not in VALID_ENVIRONMENTS:
            errors.append(
                f"Invalid environment: {self.environment}. Must be one of {VALID_ENVIRONMENTS}"
            )

        if self.auth_max_attempts < 1:
            errors.append("auth_max_attempts must be at least 1")

        for name in (
            "merge_poll_initial_delay",
            "merge_poll_interval",
            "merge_poll_error_backoff",
        ):
            if getattr(self, name) < 0:
                errors.append(f"{name} cannot be negative")

        if self.merge_poll_timeout <= 0:
            errors.append("merge_poll_timeout must be positive")

        if errors:
            message = "Configuration validation failed: " + "; ".join(errors)
            raise ValidationError(
                message,
                validation_type="config",
                violations=errors,
            )
