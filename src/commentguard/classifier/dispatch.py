"""Provider dispatch with per-model and per-provider backoff.

Turns one prompt into one verdict by trying an ordered list of attempts:
the primary provider's candidate models, then the secondary provider. The
driver loop stops at the first Success and remembers the last non-success
outcome so the fail-safe result can explain what went wrong.

Backoff rules:
- Primary provider blocked globally: no primary attempt is made. Without a
  secondary provider a rate-limited verdict is returned immediately.
- A model blocked by a success-triggered throttle is skipped; the next
  candidate on the same provider is still tried.
- A 429 blocks the whole provider and ends that provider's attempts.
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..config import GuardConfig
from ..models import Label, Verdict
from .backoff import BackoffTracker, backoff_tracker, model_key, provider_key
from .metrics import record_backoff_skip, record_provider_attempt
from .providers import (
    BaseProvider,
    ConfigurationError,
    RateLimited,
    Success,
    TransientError,
)

logger = logging.getLogger("commentguard.classifier.dispatch")

__all__ = [
    "Attempt",
    "DispatchResult",
    "ProviderDispatcher",
    "SECONDARY_PREFIX",
]

SECONDARY_PREFIX = "secondary:"
FAILSAFE_CONFIDENCE = 0.5


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _dumps(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False)


@dataclass
class Attempt:
    """One provider call in the trial order.

    Attributes:
        provider: Provider to call
        model: Model sent to the provider
        label: Model identifier recorded in the decision log
        backoff_key: Key whose active window skips this attempt
        scope: "model" (per-model window) or "provider" (provider window)
    """

    provider: BaseProvider
    model: str
    label: str
    backoff_key: str
    scope: str


@dataclass
class DispatchResult:
    """Outcome of a dispatch: a verdict plus everything the log record needs."""

    verdict: Verdict
    model: str
    raw: str
    tokens: Optional[int] = None
    latency_ms: Optional[int] = None
    skipped: dict[str, float] = field(default_factory=dict)

    @property
    def error(self) -> Optional[str]:
        return self.verdict.error


class ProviderDispatcher:
    """Runs the attempt list for one prompt.

    Example:
        >>> dispatcher = ProviderDispatcher(config, OpenRouterProvider(api_key="..."))
        >>> result = dispatcher.dispatch(SYSTEM_PROMPT, build_user_prompt("Nice post"))
        >>> result.verdict.label
        <Label.VALID: 'valid'>
    """

    def __init__(
        self,
        config: GuardConfig,
        primary: BaseProvider,
        secondary: Optional[BaseProvider] = None,
        tracker: Optional[BackoffTracker] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize dispatcher.

        Args:
            config: Active configuration (candidate models, secondary model)
            primary: Primary provider
            secondary: Secondary provider, used only when ``config.has_secondary``
            tracker: Backoff tracker (default: process-wide tracker)
            clock: Time source returning epoch seconds
        """
        self.config = config
        self.primary = primary
        self.secondary = secondary
        self.tracker = tracker if tracker is not None else backoff_tracker
        self.clock = clock

    @property
    def secondary_configured(self) -> bool:
        return self.secondary is not None and self.config.has_secondary

    def build_attempts(self, primary_blocked: bool) -> list[Attempt]:
        """Ordered attempts: primary candidates (unless blocked), then secondary."""
        attempts = []
        if not primary_blocked:
            for model in self.config.candidate_models():
                attempts.append(
                    Attempt(
                        provider=self.primary,
                        model=model,
                        label=model,
                        backoff_key=model_key(self.primary.name, model),
                        scope="model",
                    )
                )
        if self.secondary_configured:
            model = self.config.secondary_model
            attempts.append(
                Attempt(
                    provider=self.secondary,
                    model=model,
                    label=f"{SECONDARY_PREFIX}{model}",
                    backoff_key=provider_key(self.secondary.name),
                    scope="provider",
                )
            )
        return attempts

    def dispatch(self, system: str, user_prompt: str) -> DispatchResult:
        """Classify one prompt, never raising for provider problems.

        Args:
            system: System instruction
            user_prompt: User message

        Returns:
            DispatchResult. ``verdict.error`` is set for every fail-safe result
            (rate_limited, missing_api_key, last transport/HTTP error).
        """
        start = self.clock()
        primary_block = self.tracker.blocked_until(provider_key(self.primary.name))

        if primary_block is not None and not self.secondary_configured:
            record_backoff_skip(self.primary.name, "provider")
            logger.info(
                "primary_globally_blocked",
                extra={"provider": self.primary.name, "block_until": _iso(primary_block)},
            )
            return DispatchResult(
                verdict=Verdict(
                    label=Label.VALID,
                    confidence=FAILSAFE_CONFIDENCE,
                    reasons=[f"rate-limited until {_iso(primary_block)}"],
                    error="rate_limited",
                ),
                model=self.config.model,
                raw=_dumps({"source": "global_backoff", "block_until": _iso(primary_block)}),
            )

        skipped: dict[str, float] = {}
        skipped_keys: list[str] = []
        if primary_block is not None:
            skipped[self.primary.name] = primary_block
            skipped_keys.append(provider_key(self.primary.name))
            record_backoff_skip(self.primary.name, "provider")

        attempted = False
        halted: set[str] = set()
        last_error: Optional[str] = None
        last_raw = ""
        last_model = self.config.model

        for attempt in self.build_attempts(primary_blocked=primary_block is not None):
            provider_name = attempt.provider.name
            if provider_name in halted:
                continue

            blocked = self.tracker.blocked_until(attempt.backoff_key)
            if blocked is not None:
                skipped[attempt.label] = blocked
                skipped_keys.append(attempt.backoff_key)
                record_backoff_skip(provider_name, attempt.scope)
                logger.debug(
                    "attempt_skipped_backoff",
                    extra={"provider": provider_name, "model": attempt.model, "until": blocked},
                )
                continue

            attempted = True
            last_model = attempt.label
            call_start = self.clock()
            try:
                outcome = attempt.provider.call(
                    attempt.model, system, user_prompt, timeout=self.config.timeout
                )
            except ConfigurationError as e:
                logger.error(
                    "provider_not_configured",
                    extra={"provider": provider_name, "error": str(e)},
                )
                return self._failsafe(
                    "missing_api_key",
                    _dumps({"error": "missing_api_key", "provider": provider_name}),
                    attempt.label,
                    start,
                    skipped,
                )
            call_seconds = max(0.0, self.clock() - call_start)

            if isinstance(outcome, Success):
                record_provider_attempt(provider_name, "success", call_seconds, outcome.token_count)
                if outcome.throttle_until is not None:
                    # Quota exhausted on this model only; not an error
                    self.tracker.block_until(
                        model_key(provider_name, attempt.model), outcome.throttle_until
                    )
                return DispatchResult(
                    verdict=outcome.verdict,
                    model=attempt.label,
                    raw=outcome.raw,
                    tokens=outcome.token_count,
                    latency_ms=self._elapsed_ms(start),
                    skipped=skipped,
                )

            if isinstance(outcome, RateLimited):
                record_provider_attempt(provider_name, "rate_limited", call_seconds)
                self.tracker.block_until(provider_key(provider_name), outcome.retry_at)
                halted.add(provider_name)
                last_error = "rate_limited"
                last_raw = outcome.raw
                continue

            if isinstance(outcome, TransientError):
                record_provider_attempt(provider_name, "error", call_seconds)
                last_error = outcome.message
                last_raw = outcome.raw
                continue

        if not attempted and skipped:
            soonest = self.tracker.soonest_unblock(skipped_keys) or min(skipped.values())
            logger.warning(
                "all_models_backoff",
                extra={"skipped": len(skipped), "next_attempt_after": _iso(soonest)},
            )
            return DispatchResult(
                verdict=Verdict(
                    label=Label.VALID,
                    confidence=FAILSAFE_CONFIDENCE,
                    reasons=[f"all models backoff until {_iso(soonest)}"],
                    error="rate_limited",
                ),
                model=self.config.model,
                raw=_dumps(
                    {
                        "error": "all_models_backoff",
                        "models": {name: _iso(until) for name, until in skipped.items()},
                        "next_attempt_after": _iso(soonest),
                    }
                ),
                latency_ms=self._elapsed_ms(start),
                skipped=skipped,
            )

        error = last_error or "unavailable"
        logger.warning(
            "all_providers_failed",
            extra={"error": error, "model": last_model, "attempted": attempted},
        )
        raw = last_raw or _dumps(
            {"error": error, "model": last_model, "context": "llm unavailable fallback"}
        )
        return self._failsafe(error, raw, last_model, start, skipped)

    def _failsafe(
        self,
        error: str,
        raw: str,
        model: str,
        start: float,
        skipped: dict[str, float],
    ) -> DispatchResult:
        return DispatchResult(
            verdict=Verdict(
                label=Label.VALID,
                confidence=FAILSAFE_CONFIDENCE,
                reasons=[f"llm unavailable: {error}"],
                error=error,
            ),
            model=model,
            raw=raw,
            latency_ms=self._elapsed_ms(start),
            skipped=skipped,
        )

    def _elapsed_ms(self, start: float) -> int:
        return int(max(0.0, self.clock() - start) * 1000)
