"""Base provider for chat-completion classification endpoints.

Both providers speak the OpenAI chat-completions wire format, so the HTTP
call, outcome classification and rate-limit header handling live here.
Subclasses only supply the provider name, default endpoint and headers.

A call never raises for HTTP or transport problems; it returns one of:

- Success: 2xx with a readable body (verdict parsed from the content)
- RateLimited: HTTP 429, with the time the provider asked us to wait until
- TransientError: any other status, unreadable body, timeout or transport error

The only exception is ConfigurationError for missing credentials.
"""

import json
import logging
import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Optional, Union

import httpx

from ...models import Verdict
from ..parser import parse
from ..prompts import build_messages

logger = logging.getLogger("commentguard.classifier.providers")

__all__ = [
    "BaseProvider",
    "ConfigurationError",
    "Outcome",
    "RateLimited",
    "Success",
    "TransientError",
    "compute_retry_at",
    "parse_reset_timestamp",
]

# Integer parts longer than this are epoch milliseconds, not seconds
EPOCH_SECONDS_DIGITS = 10
MAX_ERROR_BODY_CHARS = 300


class ConfigurationError(Exception):
    """Provider credentials are missing; the call is never attempted."""


@dataclass
class Success:
    """Classification obtained.

    Attributes:
        verdict: Parsed label/confidence/reasons
        token_count: ``usage.total_tokens`` reported by the provider
        raw: Raw response body
        model: Model that produced the verdict
        throttle_until: Set when the provider reported its remaining quota hit
            zero; the model should be skipped until this time. Not an error.
    """

    verdict: Verdict
    token_count: int
    raw: str
    model: str
    throttle_until: Optional[float] = None


@dataclass
class RateLimited:
    """Provider answered 429.

    Attributes:
        retry_at: Epoch seconds after which the provider may be called again;
            equal to the response time when the provider allowed an immediate retry
        raw: Raw body, or a synthetic payload with the rate-limit headers
        model: Model that was rate limited
    """

    retry_at: float
    raw: str
    model: str


@dataclass
class TransientError:
    """Non-2xx status, unreadable body or transport failure."""

    message: str
    raw: str
    model: str
    status_code: Optional[int] = None


Outcome = Union[Success, RateLimited, TransientError]


def parse_reset_timestamp(value: Optional[str]) -> Optional[float]:
    """Parse an ``x-ratelimit-reset`` value as epoch seconds.

    Values whose integer part has more than ten digits are milliseconds.

    Examples:
        >>> parse_reset_timestamp("1700000000")
        1700000000.0
        >>> parse_reset_timestamp("1700000000500")
        1700000000.5
    """
    if value is None:
        return None
    value = str(value).strip()
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    integer_digits = len(value.split(".", 1)[0].lstrip("+-"))
    if integer_digits > EPOCH_SECONDS_DIGITS:
        return number / 1000.0
    return number


def _parse_retry_after(value: Optional[str], now: float) -> Optional[float]:
    if value is None:
        return None
    value = str(value).strip()
    try:
        seconds = float(value)
    except ValueError:
        # HTTP-date form
        try:
            return parsedate_to_datetime(value).timestamp()
        except (TypeError, ValueError, IndexError, OverflowError):
            return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return now + seconds


def _retry_hint(headers: Mapping[str, str], now: float) -> Optional[float]:
    """Time named by ``Retry-After`` (preferred) or ``x-ratelimit-reset``.

    May lie in the past; None when neither header is present and parseable.
    """
    until = _parse_retry_after(headers.get("retry-after"), now)
    if until is None:
        until = parse_reset_timestamp(headers.get("x-ratelimit-reset"))
    return until


def compute_retry_at(headers: Mapping[str, str], now: float) -> Optional[float]:
    """Backoff expiry from ``Retry-After`` (preferred) or ``x-ratelimit-reset``.

    Returns:
        Epoch seconds in the future, or None when neither header is usable.
    """
    until = _retry_hint(headers, now)
    if until is None or until <= now:
        return None
    return until


def _synthetic_raw(**payload) -> str:
    return json.dumps(payload, ensure_ascii=False)


def _extract_content(data) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    choice = choices[0]
    message = choice.get("message")
    if isinstance(message, dict):
        return str(message.get("content") or "")
    if "text" in choice:
        return str(choice.get("text") or "")
    return None


def _total_tokens(data) -> int:
    usage = data.get("usage") if isinstance(data, dict) else None
    if not isinstance(usage, dict):
        return 0
    try:
        return int(usage.get("total_tokens") or 0)
    except (TypeError, ValueError):
        return 0


class BaseProvider(ABC):
    """Abstract base class for chat-completion classification providers."""

    default_base_url: str = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 15,
        max_output_tokens: int = 48,
        default_retry_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize provider.

        Args:
            api_key: Bearer token for the endpoint
            base_url: API base URL (``/chat/completions`` is appended)
            timeout: Request timeout in seconds
            max_output_tokens: ``max_tokens`` sent with every request
            default_retry_seconds: Backoff used for a 429 without usable headers
            clock: Time source returning epoch seconds
        """
        self.api_key = (api_key or "").strip()
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = timeout
        self.max_output_tokens = max_output_tokens
        self.default_retry_seconds = default_retry_seconds
        self.clock = clock

        if not self.api_key:
            logger.warning("provider_no_api_key", extra={"provider": self.name})

        self._client = httpx.Client(
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                **self.extra_headers(),
            },
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging, metrics and backoff keys."""

    def extra_headers(self) -> dict[str, str]:
        """Additional request headers. Override in subclasses if needed."""
        return {}

    def is_available(self) -> bool:
        """True if credentials are configured."""
        return bool(self.api_key)

    def call(
        self,
        model: str,
        system: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> Outcome:
        """Send one classification request.

        Args:
            model: Model identifier
            system: System instruction
            user_prompt: User message
            timeout: Per-call timeout override in seconds

        Returns:
            Success, RateLimited or TransientError

        Raises:
            ConfigurationError: If no API key is configured
        """
        if not self.is_available():
            raise ConfigurationError(f"{self.name} API key not configured")

        payload = {
            "model": model,
            "temperature": 0,
            "max_tokens": self.max_output_tokens,
            "messages": build_messages(system, user_prompt),
        }
        request_kwargs = {"json": payload}
        if timeout is not None:
            request_kwargs["timeout"] = timeout

        try:
            response = self._client.post(f"{self.base_url}/chat/completions", **request_kwargs)
        except httpx.TimeoutException as e:
            logger.warning(
                "provider_timeout",
                extra={"provider": self.name, "model": model, "error": str(e)},
            )
            return TransientError(
                message=f"timeout: {e}",
                raw=_synthetic_raw(error="timeout", message=str(e), model=model),
                model=model,
            )
        except httpx.HTTPError as e:
            logger.warning(
                "provider_transport_error",
                extra={"provider": self.name, "model": model, "error": str(e)},
            )
            return TransientError(
                message=f"{type(e).__name__}: {e}",
                raw=_synthetic_raw(
                    error="transport_error", type=type(e).__name__, message=str(e), model=model
                ),
                model=model,
            )

        return self._classify_response(response, model)

    def _classify_response(self, response: httpx.Response, model: str) -> Outcome:
        status = response.status_code
        body = response.text or ""
        now = self.clock()

        if status == 429:
            retry_at = compute_retry_at(response.headers, now)
            if retry_at is None:
                if _retry_hint(response.headers, now) is None:
                    retry_at = now + self.default_retry_seconds
                else:
                    # Zero or past hint: retry right away, no backoff window
                    retry_at = now
            raw = body
            if not raw.strip():
                raw = _synthetic_raw(
                    status=429,
                    body=body,
                    headers={
                        "retry-after": response.headers.get("retry-after"),
                        "x-ratelimit-reset": response.headers.get("x-ratelimit-reset"),
                    },
                    model=model,
                )
            logger.warning(
                "provider_rate_limited",
                extra={"provider": self.name, "model": model, "retry_at": retry_at},
            )
            return RateLimited(retry_at=retry_at, raw=raw, model=model)

        if 200 <= status < 300:
            try:
                data = response.json()
            except ValueError as e:
                logger.warning(
                    "provider_invalid_body",
                    extra={"provider": self.name, "model": model, "error": str(e)},
                )
                return TransientError(
                    message="invalid response body",
                    raw=body or _synthetic_raw(error="empty_body", status=status, model=model),
                    model=model,
                    status_code=status,
                )

            content = _extract_content(data)
            if content is None:
                return TransientError(
                    message="response has no choices",
                    raw=body,
                    model=model,
                    status_code=status,
                )

            verdict = parse(content)
            tokens = _total_tokens(data)
            throttle_until = self._quota_exhausted_until(response.headers, now)

            logger.info(
                "provider_classification_success",
                extra={
                    "provider": self.name,
                    "model": model,
                    "label": verdict.label.value,
                    "confidence": verdict.confidence,
                    "tokens": tokens,
                },
            )
            return Success(
                verdict=verdict,
                token_count=tokens,
                raw=body,
                model=model,
                throttle_until=throttle_until,
            )

        logger.warning(
            "provider_http_error",
            extra={"provider": self.name, "model": model, "status": status},
        )
        return TransientError(
            message=f"HTTP {status} - {body[:MAX_ERROR_BODY_CHARS]}",
            raw=body or _synthetic_raw(error="http_error", status=status, model=model),
            model=model,
            status_code=status,
        )

    @staticmethod
    def _quota_exhausted_until(headers: Mapping[str, str], now: float) -> Optional[float]:
        """Reset time when ``x-ratelimit-remaining`` reports zero on a 2xx."""
        remaining = headers.get("x-ratelimit-remaining")
        if remaining is None:
            return None
        try:
            exhausted = int(float(remaining)) <= 0
        except (ValueError, OverflowError):
            return None
        if not exhausted:
            return None
        until = parse_reset_timestamp(headers.get("x-ratelimit-reset"))
        if until is None or until <= now:
            return None
        return until

    def close(self):
        """Clean up HTTP client."""
        if hasattr(self, "_client"):
            self._client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, *args):
        """Context manager exit."""
        self.close()
