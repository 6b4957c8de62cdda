"""Prometheus metrics for comment classification.

Uses the `commentguard_*` prefix for all metrics. Metrics never affect
control flow; recording failures are the caller's concern only in tests.
"""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger("commentguard.classifier.metrics")

__all__ = [
    "backoff_skips_total",
    "classification_latency_seconds",
    "evaluations_total",
    "heuristic_matches_total",
    "provider_attempts_total",
    "record_backoff_skip",
    "record_evaluation",
    "record_heuristic_match",
    "record_provider_attempt",
    "tokens_total",
]

# =============================================================================
# PROMETHEUS METRICS
# =============================================================================

# Final actions returned by the engine
evaluations_total = Counter(
    "commentguard_evaluations_total",
    "Total evaluate() calls by final action",
    ["action", "source"],  # source: empty/heuristic/llm
)

# Heuristic short-circuits (no provider call)
heuristic_matches_total = Counter(
    "commentguard_heuristic_matches_total",
    "Heuristic pre-filter matches",
    ["rule"],
)

# Every provider call, by outcome
provider_attempts_total = Counter(
    "commentguard_provider_attempts_total",
    "Provider classification attempts",
    ["provider", "outcome"],  # outcome: success/rate_limited/error
)

# Candidates skipped because a backoff window was active
backoff_skips_total = Counter(
    "commentguard_backoff_skips_total",
    "Provider or model attempts skipped due to backoff",
    ["provider", "scope"],  # scope: provider/model
)

# Token usage reported by providers
tokens_total = Counter(
    "commentguard_tokens_total",
    "Total tokens reported by classification providers",
    ["provider"],
)

# Latency of a single provider call
classification_latency_seconds = Histogram(
    "commentguard_classification_latency_seconds",
    "Provider call latency",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def record_evaluation(action: str, source: str):
    """Record the final action of one evaluation.

    Example:
        >>> record_evaluation("spam", "heuristic")
    """
    evaluations_total.labels(action=action, source=source).inc()


def record_heuristic_match(rule: str):
    """Record a heuristic pre-filter match."""
    heuristic_matches_total.labels(rule=rule).inc()


def record_provider_attempt(
    provider: str,
    outcome: str,
    latency_seconds: float,
    tokens: int = 0,
):
    """Record one provider call.

    Args:
        provider: Provider name (openrouter, openai)
        outcome: success, rate_limited or error
        latency_seconds: Wall time of the call
        tokens: ``usage.total_tokens`` when the call succeeded
    """
    provider_attempts_total.labels(provider=provider, outcome=outcome).inc()
    classification_latency_seconds.labels(provider=provider).observe(latency_seconds)
    if tokens > 0:
        tokens_total.labels(provider=provider).inc(tokens)


def record_backoff_skip(provider: str, scope: str):
    """Record a skipped attempt (scope: provider or model)."""
    backoff_skips_total.labels(provider=provider, scope=scope).inc()
    logger.debug("backoff_skip_recorded", extra={"provider": provider, "scope": scope})
