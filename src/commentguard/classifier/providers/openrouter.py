"""OpenRouter provider, the primary classification endpoint.

Serves the configured free-tier model list; every model shares one account
quota, which is why a 429 blocks the whole provider.
"""

import logging

from .base import BaseProvider

logger = logging.getLogger("commentguard.classifier.providers.openrouter")

__all__ = ["OpenRouterProvider"]


class OpenRouterProvider(BaseProvider):
    """OpenRouter provider for cloud LLM classification."""

    default_base_url = "https://openrouter.ai/api/v1"

    @property
    def name(self) -> str:
        """Get provider name."""
        return "openrouter"

    def extra_headers(self) -> dict[str, str]:
        # OpenRouter attribution headers for routing and dashboards
        return {
            "HTTP-Referer": "https://github.com/commentguard/commentguard",
            "X-Title": "Comment Guard",
        }
