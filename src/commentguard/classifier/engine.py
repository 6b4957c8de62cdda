"""Decision engine: heuristics, context, provider dispatch and action policy.

Classification flow for ``evaluate``:
1. Empty body: hold, nothing else runs
2. Heuristic pre-filters (unless bypassed): first match returns auto_action
3. Reference document digest, when enabled and the document is published
4. Provider dispatch (primary models, then secondary) with backoff
5. Action policy on the verdict

Each evaluate call writes at most one decision record. Log store failures
are logged and never change the returned action.
"""

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional

from ..config import GuardConfig, get_config
from ..documents import DocumentSource
from ..log_store import InMemoryLogStore, JsonlLogStore, LogStore
from ..models import Action, Candidate, Label, LogRecord, Verdict
from .backoff import BackoffTracker
from .context import summarize
from .dispatch import DispatchResult, ProviderDispatcher
from .heuristics import check, contains_link
from .metrics import record_evaluation, record_heuristic_match
from .prompts import SYSTEM_PROMPT, build_user_prompt
from .providers import BaseProvider, OpenAIProvider, OpenRouterProvider

logger = logging.getLogger("commentguard.classifier.engine")

__all__ = [
    "BatchResult",
    "ClassificationOutcome",
    "DecisionEngine",
    "decide_action",
]

DEFAULT_BATCH_SIZE = 25
MAX_BATCH_SIZE = 200


@dataclass
class ClassificationOutcome:
    """Result of an ad-hoc classification (no heuristics, no policy).

    Attributes:
        verdict: Label, confidence and reasons
        model: Model identifier that produced the verdict
        raw: Raw provider response (or synthetic payload)
        tokens: Tokens reported by the provider
        latency_ms: Dispatch wall time
    """

    verdict: Verdict
    model: str
    raw: str
    tokens: Optional[int] = None
    latency_ms: Optional[int] = None

    @property
    def error(self) -> Optional[str]:
        return self.verdict.error


@dataclass
class BatchResult:
    """One page of a batch re-evaluation.

    Attributes:
        results: (candidate, action) pairs in input order
        next_offset: Offset of the next page
        remaining: Candidates left after this page
    """

    results: list[tuple[Candidate, Action]]
    next_offset: int
    remaining: int

    @property
    def done(self) -> bool:
        return self.remaining == 0


def decide_action(verdict: Verdict, config: GuardConfig, text: str = "") -> Action:
    """Map a verdict to the final action.

    Any verdict carrying an error holds; classification failure never
    approves or rejects on its own.

    Examples:
        >>> decide_action(Verdict(Label.SPAM, 0.95), GuardConfig())
        <Action.SPAM: 'spam'>
        >>> decide_action(Verdict(Label.SPAM, 0.4), GuardConfig())
        <Action.HOLD: 'hold'>
        >>> decide_action(Verdict(Label.VALID, 0.9), GuardConfig())
        <Action.NONE: 'none'>
    """
    if verdict.error:
        return Action.HOLD

    if verdict.is_spam:
        if config.force_spam_on_llm:
            return Action.SPAM
        if verdict.confidence >= config.confidence_threshold:
            return Action(config.auto_action)
        # Low-confidence spam goes to moderation
        return Action.HOLD

    if config.auto_approve_valid:
        return Action.APPROVE
    if config.auto_approve_linkless_valid and not contains_link(text):
        return Action.APPROVE
    return Action.NONE


class DecisionEngine:
    """Classifies candidates into spam / hold / approve / none.

    Example:
        >>> engine = DecisionEngine(GuardConfig(api_key="sk-or-..."))
        >>> engine.evaluate(Candidate(text="Great article, thanks!"))
        <Action.NONE: 'none'>
    """

    def __init__(
        self,
        config: Optional[GuardConfig] = None,
        primary: Optional[BaseProvider] = None,
        secondary: Optional[BaseProvider] = None,
        log_store: Optional[LogStore] = None,
        documents: Optional[DocumentSource] = None,
        tracker: Optional[BackoffTracker] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize engine.

        Args:
            config: Configuration snapshot (default: ``get_config()``)
            primary: Primary provider (default: OpenRouter from config)
            secondary: Secondary provider (default: OpenAI-compatible from
                config when ``has_secondary``)
            log_store: Decision log (default: in-memory)
            documents: Reference document source for topical context
            tracker: Backoff tracker (default: process-wide tracker, or a
                private one on ``clock`` when a custom clock is given)
            clock: Time source returning epoch seconds
        """
        self.config = config or get_config()
        self.log_store = log_store if log_store is not None else InMemoryLogStore()
        self.documents = documents
        self.clock = clock

        self.primary = primary or OpenRouterProvider(
            api_key=self.config.api_key.get_secret_value(),
            base_url=self.config.primary_base_url,
            timeout=self.config.timeout,
            max_output_tokens=self.config.max_output_tokens,
            default_retry_seconds=self.config.rate_limit_default_seconds,
            clock=clock,
        )
        if secondary is None and self.config.has_secondary:
            secondary = OpenAIProvider(
                api_key=self.config.secondary_api_key.get_secret_value(),
                base_url=self.config.secondary_base_url,
                timeout=self.config.timeout,
                max_output_tokens=self.config.max_output_tokens,
                default_retry_seconds=self.config.rate_limit_default_seconds,
                clock=clock,
            )
        self.secondary = secondary

        if tracker is None and clock is not time.time:
            # Expiries from providers must be compared on the same clock
            tracker = BackoffTracker(clock=clock)

        self.dispatcher = ProviderDispatcher(
            self.config,
            self.primary,
            self.secondary,
            tracker=tracker,
            clock=clock,
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[GuardConfig] = None,
        documents: Optional[DocumentSource] = None,
    ) -> "DecisionEngine":
        """Engine with providers from config and a JSONL decision log."""
        config = config or get_config()
        return cls(config, log_store=JsonlLogStore(config.log_store_path), documents=documents)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def moderate(self, candidate: Candidate) -> Action:
        """Submission-time gate around :meth:`evaluate`.

        Returns ``none`` without evaluating when the engine is disabled, or
        for authenticated users unless ``run_for_logged_in`` is set.
        """
        if not self.config.enabled:
            logger.debug("engine_disabled")
            return Action.NONE
        if candidate.is_authenticated_user and not self.config.run_for_logged_in:
            logger.debug("skipped_authenticated_user")
            return Action.NONE
        return self.evaluate(candidate)

    def evaluate(self, candidate: Candidate, bypass_heuristics: bool = False) -> Action:
        """Classify one candidate and return the final action.

        Args:
            candidate: Text and author metadata
            bypass_heuristics: Skip the local pre-filters (LLM-only signal
                for batch re-evaluation)

        Returns:
            Action: spam, hold, approve or none
        """
        text = (candidate.text or "").strip()
        if not text:
            logger.debug("empty_body_hold", extra={"entity_id": candidate.entity_id})
            record_evaluation(Action.HOLD.value, "empty")
            return Action.HOLD

        if not bypass_heuristics:
            match = check(candidate, self.config)
            if match is not None:
                record_heuristic_match(match.rule)
                self._write_log(
                    LogRecord(
                        decision=Label.SPAM.value,
                        confidence=1.0,
                        model=self.config.model,
                        reasons=[match.reason],
                        entity_id=self._entity_id(candidate),
                    )
                )
                record_evaluation(match.action.value, "heuristic")
                return match.action

        context = self._build_context(candidate, text)
        result = self._classify(candidate, text, context)
        action = decide_action(result.verdict, self.config, text)

        logger.info(
            "evaluation_complete",
            extra={
                "entity_id": candidate.entity_id,
                "action": action.value,
                "label": result.verdict.label.value,
                "confidence": result.verdict.confidence,
                "model": result.model,
                "error": result.error,
            },
        )
        record_evaluation(action.value, "llm")
        return action

    def classify_text(
        self,
        text: str,
        author_name: str = "",
        author_email: str = "",
        author_url: str = "",
    ) -> ClassificationOutcome:
        """Ad-hoc classification of arbitrary text.

        Skips heuristics, context and policy; the decision record carries no
        entity id.
        """
        candidate = Candidate(
            text=text or "",
            author_name=author_name or "",
            author_email=author_email or "",
            author_url=author_url or "",
            is_test=True,
        )
        result = self._classify(candidate, candidate.text.strip(), context=None)
        return ClassificationOutcome(
            verdict=result.verdict,
            model=result.model,
            raw=result.raw,
            tokens=result.tokens,
            latency_ms=result.latency_ms,
        )

    def evaluate_batch(
        self,
        candidates: Sequence[Candidate],
        offset: int = 0,
        page_size: int = DEFAULT_BATCH_SIZE,
        bypass_heuristics: bool = False,
    ) -> BatchResult:
        """Evaluate one page of a backlog.

        Items are independent, so pages may be processed at different times
        or by different workers. The caller carries ``next_offset`` forward.

        Args:
            candidates: Full backlog (only one page is evaluated)
            offset: Index of the first candidate of this page
            page_size: Page size, clamped to 1-200
            bypass_heuristics: Passed through to :meth:`evaluate`

        Returns:
            BatchResult with per-candidate actions and pagination state
        """
        page_size = max(1, min(MAX_BATCH_SIZE, int(page_size)))
        offset = max(0, int(offset))
        total = len(candidates)

        page = list(candidates[offset : offset + page_size])
        results = [(c, self.evaluate(c, bypass_heuristics=bypass_heuristics)) for c in page]

        next_offset = offset + len(page)
        remaining = max(0, total - next_offset)
        logger.info(
            "batch_page_complete",
            extra={
                "offset": offset,
                "processed": len(page),
                "next_offset": next_offset,
                "remaining": remaining,
            },
        )
        return BatchResult(results=results, next_offset=next_offset, remaining=remaining)

    def close(self):
        """Clean up provider HTTP clients."""
        self.primary.close()
        if self.secondary is not None:
            self.secondary.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_context(self, candidate: Candidate, text: str) -> Optional[str]:
        if not self.config.include_post_context or self.documents is None:
            return None
        if not candidate.reference_document_id:
            return None
        document = self.documents.get_document(candidate.reference_document_id)
        if document is None or not document.published:
            return None
        return summarize(document.title, document.body, text, self.config.post_context_chars)

    def _classify(
        self, candidate: Candidate, text: str, context: Optional[str]
    ) -> DispatchResult:
        user_prompt = build_user_prompt(
            text,
            author_name=candidate.author_name,
            author_email=candidate.author_email,
            author_url=candidate.author_url,
            context=context,
        )
        result = self.dispatcher.dispatch(SYSTEM_PROMPT, user_prompt)
        self._write_log(
            LogRecord(
                decision=result.verdict.label.value,
                confidence=result.verdict.confidence,
                model=result.model,
                reasons=result.verdict.reasons,
                raw_response=result.raw,
                entity_id=self._entity_id(candidate),
                tokens=result.tokens,
                latency_ms=result.latency_ms,
                error=result.error,
            )
        )
        return result

    @staticmethod
    def _entity_id(candidate: Candidate) -> Optional[str]:
        return None if candidate.is_test else candidate.entity_id

    def _write_log(self, record: LogRecord) -> None:
        try:
            self.log_store.append(record)
        except Exception as e:
            # Persistence is best-effort relative to the decision
            logger.warning(
                "log_store_append_failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
