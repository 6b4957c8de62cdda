"""OpenAI-compatible provider, the secondary classification endpoint.

Used only after the primary provider's candidate models are exhausted or
backed off. Any endpoint implementing ``/chat/completions`` works via
``secondary_base_url``.
"""

from .base import BaseProvider

__all__ = ["OpenAIProvider"]


class OpenAIProvider(BaseProvider):
    """OpenAI provider for GPT-based classification."""

    default_base_url = "https://api.openai.com/v1"

    @property
    def name(self) -> str:
        """Get provider name."""
        return "openai"
