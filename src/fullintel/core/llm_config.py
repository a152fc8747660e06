"""
LLM configuration parsing for fullintel.

Parses the [llm] section from fullintel.toml: the API key, request limits
and per-provider resilience policies.

TOML Configuration Example:
    [llm]
    api_key = "sk-..."            # Optional: defaults to env vars
    timeout = 120                 # Optional: request timeout in seconds
    max_tokens = 4096             # Optional: Anthropic max_tokens

    [llm.providers.anthropic]
    requests_per_minute = 50
    failure_threshold = 5
    success_threshold = 2
    timeout_seconds = 60
    base_url = "https://proxy.internal/v1/messages"

Environment Variables (override TOML):
    - FULLINTEL_API_KEY: API key (takes precedence over provider-specific keys)
    - FULLINTEL_LLM_TIMEOUT: Request timeout in seconds
    - FULLINTEL_LLM_MAX_TOKENS: Default max tokens
    - FULLINTEL_RATE_LIMIT_<PROVIDER>: Requests per minute for one provider

Provider-specific API key fallbacks (used when a model is known):
    - ANTHROPIC_API_KEY, OPENAI_API_KEY, GEMINI_API_KEY, DEEPSEEK_API_KEY
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from fullintel.core.llm_provider import UnsupportedModelError
from fullintel.core.providers.base import DEFAULT_MAX_TOKENS, ProviderKind, detect_provider
from fullintel.core.rate_limit import RateLimitConfig
from fullintel.core.resilience import CircuitBreakerPolicy

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_TIMEOUT = 120.0


@dataclass
class ProviderPolicy:
    """Rate limit, circuit breaker and endpoint settings for one provider.

    Attributes:
        requests_per_minute: Token bucket capacity
        failure_threshold: Consecutive failures before the circuit opens
        success_threshold: Half-open successes before the circuit closes
        timeout_seconds: How long an open circuit rejects calls
        base_url: Endpoint override (proxies, tests)
    """

    requests_per_minute: float = 60.0
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_seconds: float = 60.0
    base_url: Optional[str] = None

    def rate_limit_config(self) -> RateLimitConfig:
        return RateLimitConfig(requests_per_minute=self.requests_per_minute)

    def breaker_policy(self) -> CircuitBreakerPolicy:
        return CircuitBreakerPolicy(
            failure_threshold=self.failure_threshold,
            success_threshold=self.success_threshold,
            timeout_seconds=self.timeout_seconds,
        )

    def validate(self, name: str) -> None:
        if self.requests_per_minute <= 0:
            raise ValueError(
                f"{name}: requests_per_minute must be positive, got {self.requests_per_minute}"
            )
        if self.failure_threshold <= 0 or self.success_threshold <= 0:
            raise ValueError(f"{name}: circuit breaker thresholds must be positive")
        if self.timeout_seconds < 0:
            raise ValueError(f"{name}: timeout_seconds must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requests_per_minute": self.requests_per_minute,
            "failure_threshold": self.failure_threshold,
            "success_threshold": self.success_threshold,
            "timeout_seconds": self.timeout_seconds,
            "base_url": self.base_url,
        }


def default_policies() -> Dict[ProviderKind, ProviderPolicy]:
    """Built-in policies: distinct request rates, uniform 5/2/60s breakers."""
    return {
        ProviderKind.ANTHROPIC: ProviderPolicy(requests_per_minute=50),
        ProviderKind.GEMINI: ProviderPolicy(requests_per_minute=60),
        ProviderKind.DEEPSEEK: ProviderPolicy(requests_per_minute=100),
        ProviderKind.OPENAI: ProviderPolicy(requests_per_minute=60),
    }


# Environment variable names for API keys
API_KEY_ENV_VARS: Dict[ProviderKind, str] = {
    ProviderKind.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderKind.OPENAI: "OPENAI_API_KEY",
    ProviderKind.GEMINI: "GEMINI_API_KEY",
    ProviderKind.DEEPSEEK: "DEEPSEEK_API_KEY",
}


def _provider_from_name(name: str) -> Optional[ProviderKind]:
    name = name.lower()
    if name == "google":
        return ProviderKind.GEMINI
    try:
        return ProviderKind(name)
    except ValueError:
        return None


@dataclass
class LLMConfig:
    """LLM configuration parsed from fullintel.toml.

    Attributes:
        api_key: API key used for every provider (optional, falls back to env vars)
        timeout: HTTP request timeout in seconds
        max_tokens: ``max_tokens`` sent to Anthropic
        providers: Per-provider policies
    """

    api_key: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    max_tokens: int = DEFAULT_MAX_TOKENS
    providers: Dict[ProviderKind, ProviderPolicy] = field(default_factory=default_policies)

    def get_api_key(self, model: Optional[str] = None) -> Optional[str]:
        """Get API key, falling back to environment variables if not set.

        Priority:
        1. Explicit api_key set in config
        2. FULLINTEL_API_KEY environment variable
        3. Provider-specific env var for the model's provider

        Returns:
            API key string or None if not available
        """
        if self.api_key:
            return self.api_key

        if unified_key := os.environ.get("FULLINTEL_API_KEY"):
            return unified_key

        if model:
            try:
                kind = detect_provider(model)
            except UnsupportedModelError:
                return None
            return os.environ.get(API_KEY_ENV_VARS[kind])

        return None

    def get_policy(self, kind: ProviderKind) -> ProviderPolicy:
        return self.providers.get(kind) or default_policies()[kind]

    def base_urls(self) -> Dict[ProviderKind, Optional[str]]:
        return {kind: self.get_policy(kind).base_url for kind in ProviderKind}

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")

        for kind, policy in self.providers.items():
            policy.validate(kind.value)

    @classmethod
    def from_toml(cls, path: Path) -> "LLMConfig":
        """Load LLM configuration from a TOML file.

        Raises:
            FileNotFoundError: If the config file doesn't exist
        """
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls.from_dict(data.get("llm", {}))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LLMConfig":
        """Create LLMConfig from a dictionary (typically the [llm] section).

        Unknown provider sections are logged and ignored.

        Raises:
            ValueError: If a value does not parse or fails ``validate``
        """
        config = cls()

        if "api_key" in data:
            config.api_key = data["api_key"]

        if "timeout" in data:
            config.timeout = float(data["timeout"])

        if "max_tokens" in data:
            config.max_tokens = int(data["max_tokens"])

        for name, section in data.get("providers", {}).items():
            kind = _provider_from_name(name)
            if kind is None:
                logger.warning(f"Ignoring unknown provider section: llm.providers.{name}")
                continue
            policy = replace(config.get_policy(kind))
            if "requests_per_minute" in section:
                policy.requests_per_minute = float(section["requests_per_minute"])
            if "failure_threshold" in section:
                policy.failure_threshold = int(section["failure_threshold"])
            if "success_threshold" in section:
                policy.success_threshold = int(section["success_threshold"])
            if "timeout_seconds" in section:
                policy.timeout_seconds = float(section["timeout_seconds"])
            if "base_url" in section:
                policy.base_url = section["base_url"]
            config.providers[kind] = policy

        config.validate()
        return config

    def apply_env(self) -> None:
        """Override settings from environment variables.

        Environment variables:
            - FULLINTEL_API_KEY: API key
            - FULLINTEL_LLM_TIMEOUT: Request timeout in seconds
            - FULLINTEL_LLM_MAX_TOKENS: Default max tokens
            - FULLINTEL_RATE_LIMIT_<PROVIDER>: Requests per minute
        """
        if api_key := os.environ.get("FULLINTEL_API_KEY"):
            self.api_key = api_key

        if timeout := os.environ.get("FULLINTEL_LLM_TIMEOUT"):
            try:
                value = float(timeout)
            except ValueError:
                value = 0.0
            if value > 0:
                self.timeout = value
            else:
                logger.warning(f"Invalid FULLINTEL_LLM_TIMEOUT: {timeout}, using default")

        if max_tokens := os.environ.get("FULLINTEL_LLM_MAX_TOKENS"):
            try:
                count = int(max_tokens)
            except ValueError:
                count = 0
            if count > 0:
                self.max_tokens = count
            else:
                logger.warning(f"Invalid FULLINTEL_LLM_MAX_TOKENS: {max_tokens}, using default")

        for kind in ProviderKind:
            env_var = f"FULLINTEL_RATE_LIMIT_{kind.value.upper()}"
            if rpm := os.environ.get(env_var):
                try:
                    rate = float(rpm)
                except ValueError:
                    logger.warning(f"Invalid {env_var}: {rpm}, using default")
                    continue
                if rate <= 0:
                    logger.warning(f"Non-positive {env_var}: {rpm}, using default")
                    continue
                self.providers[kind] = replace(self.get_policy(kind), requests_per_minute=rate)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Create LLMConfig from environment variables only."""
        config = cls()
        config.apply_env()
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view; the API key is never included."""
        return {
            "api_key_configured": bool(self.api_key),
            "timeout": self.timeout,
            "max_tokens": self.max_tokens,
            "providers": {
                kind.value: self.get_policy(kind).to_dict() for kind in ProviderKind
            },
        }
