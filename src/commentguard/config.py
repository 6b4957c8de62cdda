"""Configuration management with pydantic-settings for Comment Guard.

- pydantic-settings v2 for type-safe configuration
- Automatic .env file loading with proper precedence
- Validation once at load time with clear error messages
- COMMENTGUARD_ environment variable prefix
- SecretStr for provider API keys
- Frozen config (thread-safe, immutable after load)

The engine only ever reads a GuardConfig; mutation happens by loading a new
one (``reset_config()`` + ``get_config()``) or constructing it directly.
"""

import json
import logging
import os
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .domains import normalize_domain

logger = logging.getLogger("commentguard.config")

__all__ = [
    "DEFAULT_FALLBACK_MODELS",
    "DEFAULT_MODEL",
    "GuardConfig",
    "get_config",
    "reset_config",
]

DEFAULT_MODEL = "meta-llama/llama-3.2-3b-instruct:free"
DEFAULT_FALLBACK_MODELS = (
    "meta-llama/llama-4-maverick:free",
    "meta-llama/llama-3.2-3b-instruct:free",
)

# Blacklists come from env vars or admin textareas as one-entry-per-line text
StringList = Annotated[tuple[str, ...], NoDecode]


def _split_entries(value) -> list[str]:
    """Split newline/comma separated text (or a sequence) into trimmed entries."""
    if value is None:
        return []
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                value = json.loads(stripped)
            except ValueError:
                value = stripped.replace(",", "\n").splitlines()
        else:
            value = stripped.replace(",", "\n").splitlines()
    if not isinstance(value, Iterable):
        raise ValueError(f"Expected text or a list of strings, got {type(value).__name__}")
    return [str(entry).strip() for entry in value if str(entry).strip()]


class GuardConfig(BaseSettings):
    """Configuration for the comment classification engine.

    Loads from (in order of precedence):
    1. Constructor keyword arguments
    2. Environment variables prefixed with COMMENTGUARD_
    3. .env file in the working directory
    4. Default values

    Attributes:
        enabled: Master switch for classification
        api_key: Primary provider (OpenRouter) API key
        primary_base_url: Primary provider chat-completions base URL
        model: Preferred primary model, tried first
        fallback_models: Primary models tried after ``model``, in order
        confidence_threshold: Minimum spam confidence for ``auto_action``
        auto_action: Action for confident spam and heuristic matches
        timeout: Per-call provider timeout in seconds
        max_output_tokens: ``max_tokens`` sent to the provider
        force_spam_on_llm: Any LLM spam label becomes ``spam`` regardless of confidence
        auto_approve_valid: Valid labels become ``approve``
        auto_approve_linkless_valid: Valid labels without URLs become ``approve``
        max_links: Link count above which a comment is spam (0 disables)
        content_blacklist: Phrases matched case-insensitively against the body
        check_author_fields: Enable author name/email/URL checks
        disposable_email_check: Treat disposable mailbox domains as spam
        email_domain_blacklist: Normalized email domains rejected outright
        url_domain_blacklist: Normalized author URL domains rejected outright
        author_name_blacklist: Phrases matched case-insensitively against author name
        include_post_context: Send a digest of the reference document
        post_context_chars: Character budget of the digest
        secondary_enabled: Allow the secondary provider fallback
        secondary_api_key: Secondary provider API key
        secondary_base_url: Secondary provider chat-completions base URL
        secondary_model: Secondary provider model
        rate_limit_default_seconds: Backoff applied on a 429 without usable headers
        log_retention_days: Decision log retention window (0 keeps forever)
        run_for_logged_in: Also classify comments from authenticated users
        log_store_path: JSONL file used by the default decision log store
        log_level: Logging level
        log_format: Log format (json for production, text for development)
    """

    model_config = SettingsConfigDict(
        env_prefix="COMMENTGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    enabled: bool = True

    # Primary provider
    api_key: SecretStr = Field(default=SecretStr(""))
    primary_base_url: str = "https://openrouter.ai/api/v1"
    model: str = DEFAULT_MODEL
    fallback_models: StringList = DEFAULT_FALLBACK_MODELS

    # Decision policy
    confidence_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Spam labels at or above this confidence take auto_action; below become hold.",
    )
    auto_action: Literal["spam", "hold"] = "spam"
    timeout: int = Field(default=15, ge=3, le=300)
    max_output_tokens: int = Field(default=48, ge=16, le=4000)
    force_spam_on_llm: bool = False
    auto_approve_valid: bool = False
    auto_approve_linkless_valid: bool = False

    # Content heuristics
    max_links: int = Field(default=2, ge=0)
    content_blacklist: StringList = ()

    # Author field checks
    check_author_fields: bool = True
    disposable_email_check: bool = True
    email_domain_blacklist: StringList = ()
    url_domain_blacklist: StringList = ()
    author_name_blacklist: StringList = ()

    # Reference document context
    include_post_context: bool = True
    post_context_chars: int = Field(default=2000, ge=200, le=8000)

    # Secondary provider
    secondary_enabled: bool = False
    secondary_api_key: SecretStr = Field(default=SecretStr(""))
    secondary_base_url: str = "https://api.openai.com/v1"
    secondary_model: str = "gpt-4o-mini"

    # Ops
    rate_limit_default_seconds: int = Field(default=60, ge=1, le=86400)
    log_retention_days: int = Field(default=30, ge=0)
    run_for_logged_in: bool = False
    log_store_path: Path = Path("~/.commentguard/decisions.jsonl")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"

    @field_validator(
        "fallback_models", "content_blacklist", "author_name_blacklist", mode="before"
    )
    @classmethod
    def parse_entries(cls, v):
        """Parse newline or comma separated text into a tuple of entries."""
        return tuple(_split_entries(v))

    @field_validator("email_domain_blacklist", "url_domain_blacklist", mode="before")
    @classmethod
    def parse_domains(cls, v):
        """Parse and normalize domain blacklists, dropping duplicates."""
        domains = []
        for entry in _split_entries(v):
            domain = normalize_domain(entry)
            if domain and domain not in domains:
                domains.append(domain)
        return tuple(domains)

    @field_validator("model", "secondary_model", "primary_base_url", "secondary_base_url")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Trim whitespace and trailing slashes users paste into settings."""
        return v.strip().rstrip("/")

    @field_validator("log_store_path", mode="before")
    @classmethod
    def expand_user_path(cls, v):
        """Expand ~ and environment variables in paths."""
        if isinstance(v, str):
            return Path(os.path.expanduser(os.path.expandvars(v)))
        if isinstance(v, Path):
            return Path(os.path.expanduser(str(v)))
        return v

    @property
    def has_primary_credentials(self) -> bool:
        """True when the primary provider API key is set."""
        return bool(self.api_key.get_secret_value().strip())

    @property
    def has_secondary(self) -> bool:
        """True when the secondary provider is enabled and has credentials."""
        return self.secondary_enabled and bool(
            self.secondary_api_key.get_secret_value().strip()
        )

    def candidate_models(self) -> list[str]:
        """Primary models in trial order: configured model, then fallbacks.

        Duplicates and empty entries are dropped, first occurrence wins.
        """
        models: list[str] = []
        for model in (self.model, *self.fallback_models):
            model = model.strip()
            if model and model not in models:
                models.append(model)
        return models


@lru_cache(maxsize=1)
def get_config() -> GuardConfig:
    """Get global configuration singleton.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Returns:
        GuardConfig singleton instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    config = GuardConfig()
    logger.debug(
        "config_loaded",
        extra={
            "enabled": config.enabled,
            "model": config.model,
            "secondary_enabled": config.secondary_enabled,
        },
    )
    return config


def reset_config() -> None:
    """Reset configuration singleton for testing.

    Warning:
        Only use in test code. Production code should not reset config.
    """
    get_config.cache_clear()
