"""LLM-backed comment spam classification.

Public API:
    - DecisionEngine: evaluate / moderate / classify_text / evaluate_batch
    - decide_action(): Verdict to Action policy
    - check(): Heuristic pre-filters
    - parse(): Model output parser
    - summarize(): Reference document digest
    - ProviderDispatcher: Primary/secondary provider fallback with backoff
    - backoff_tracker: Process-wide backoff windows
"""

from .backoff import (
    BackoffStore,
    BackoffTracker,
    InMemoryBackoffStore,
    backoff_tracker,
    model_key,
    provider_key,
)
from .context import summarize
from .dispatch import DispatchResult, ProviderDispatcher
from .engine import BatchResult, ClassificationOutcome, DecisionEngine, decide_action
from .heuristics import HeuristicMatch, check
from .parser import parse
from .prompts import SYSTEM_PROMPT, build_user_prompt

__all__ = [
    "BackoffStore",
    "BackoffTracker",
    "BatchResult",
    "ClassificationOutcome",
    "DecisionEngine",
    "DispatchResult",
    "HeuristicMatch",
    "InMemoryBackoffStore",
    "ProviderDispatcher",
    "SYSTEM_PROMPT",
    "backoff_tracker",
    "build_user_prompt",
    "check",
    "decide_action",
    "model_key",
    "parse",
    "provider_key",
    "summarize",
]
