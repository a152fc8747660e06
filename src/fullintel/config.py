"""
Agent configuration for fullintel.

Supports configuration via:
1. Environment variables (highest priority)
2. TOML config file (fullintel.toml)
3. Default values (lowest priority)

Environment variables:
- FULLINTEL_CONFIG_FILE: Path to TOML config file
- FULLINTEL_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
- FULLINTEL_STRUCTURED_LOGGING: JSON log lines (true/false)
- FULLINTEL_DEFAULT_MODEL: Model for phases that do not name one
- FULLINTEL_MODEL_OVERRIDE: Model used for every phase
- FULLINTEL_STREAM: Try streaming before whole-response calls (true/false)
- FULLINTEL_API_KEY, FULLINTEL_LLM_TIMEOUT, FULLINTEL_LLM_MAX_TOKENS,
  FULLINTEL_RATE_LIMIT_<PROVIDER>: see fullintel.core.llm_config

Example fullintel.toml:
    [logging]
    level = "DEBUG"
    structured = false

    [workflow]
    default_model = "claude-sonnet-4-5-20250929"
    stream = true

    [llm]
    timeout = 120

    [llm.providers.deepseek]
    requests_per_minute = 100
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from fullintel.core.llm_config import DEFAULT_MODEL, LLMConfig
from fullintel.core.logging_config import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = ("fullintel.toml", ".fullintel.toml")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


@dataclass
class AgentConfig:
    """Agent configuration with support for env vars and TOML overrides."""

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = False

    # Workflow configuration
    default_model: str = DEFAULT_MODEL
    model_override: Optional[str] = None
    stream: bool = True

    # LLM client configuration
    llm: LLMConfig = field(default_factory=LLMConfig)

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "AgentConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. TOML config file
        3. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get("FULLINTEL_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            for default_path in DEFAULT_CONFIG_FILES:
                if Path(default_path).exists():
                    config._load_toml(Path(default_path))
                    break

        config._load_env()

        return config

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if "logging" in data:
                log = data["logging"]
                if "level" in log:
                    self.log_level = str(log["level"]).upper()
                if "structured" in log:
                    self.structured_logging = _parse_bool(log["structured"])

            if "workflow" in data:
                wf = data["workflow"]
                if "default_model" in wf:
                    self.default_model = wf["default_model"]
                if "model_override" in wf:
                    self.model_override = wf["model_override"] or None
                if "stream" in wf:
                    self.stream = _parse_bool(wf["stream"])

            if "llm" in data:
                self.llm = LLMConfig.from_dict(data["llm"])

        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Error loading config file {path}: {e}")

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if level := os.environ.get("FULLINTEL_LOG_LEVEL"):
            self.log_level = level.upper()

        if structured := os.environ.get("FULLINTEL_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

        if model := os.environ.get("FULLINTEL_DEFAULT_MODEL"):
            self.default_model = model

        if override := os.environ.get("FULLINTEL_MODEL_OVERRIDE"):
            self.model_override = override

        if stream := os.environ.get("FULLINTEL_STREAM"):
            self.stream = _parse_bool(stream)

        self.llm.apply_env()

    def resolve_api_key(self, model: Optional[str] = None) -> Optional[str]:
        """API key for ``model`` (or for the configured models when omitted)."""
        return self.llm.get_api_key(model or self.model_override or self.default_model)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(
            level=self.log_level,
            format="structured" if self.structured_logging else "human",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_level": self.log_level,
            "structured_logging": self.structured_logging,
            "default_model": self.default_model,
            "model_override": self.model_override,
            "stream": self.stream,
            "llm": self.llm.to_dict(),
        }


# Global configuration instance
_config: Optional[AgentConfig] = None


def get_config() -> AgentConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AgentConfig.from_env()
    return _config


def set_config(config: AgentConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Drop the global configuration so the next get_config() reloads it."""
    global _config
    _config = None
