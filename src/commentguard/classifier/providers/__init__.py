"""Classification providers package.

Exports the chat-completion providers and their call outcomes.
"""

from .base import (
    BaseProvider,
    ConfigurationError,
    Outcome,
    RateLimited,
    Success,
    TransientError,
    compute_retry_at,
    parse_reset_timestamp,
)
from .openai import OpenAIProvider
from .openrouter import OpenRouterProvider

__all__ = [
    "BaseProvider",
    "ConfigurationError",
    "OpenAIProvider",
    "OpenRouterProvider",
    "Outcome",
    "RateLimited",
    "Success",
    "TransientError",
    "compute_retry_at",
    "parse_reset_timestamp",
]
