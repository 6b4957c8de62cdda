"""Data models for comment classification.

Defines the evaluation unit (Candidate), the classifier output (Verdict),
the engine's final recommendation (Action) and the persisted decision
record (LogRecord).
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

__all__ = [
    "Action",
    "Candidate",
    "Label",
    "LogRecord",
    "ReferenceDocument",
    "Verdict",
]

# Column limits of the decision log
MAX_DECISION_CHARS = 10
MAX_MODEL_CHARS = 191
MAX_RAW_RESPONSE_CHARS = 64000
MAX_ERROR_CHARS = 1000
MAX_REASONS = 6


class Action(str, Enum):
    """Final recommendation returned by the decision engine.

    Note: Uses (str, Enum) so values compare equal to their strings:
        Action.SPAM == "spam"  # True
    """

    SPAM = "spam"  # Reject as spam
    HOLD = "hold"  # Send to the moderation queue
    APPROVE = "approve"  # Publish immediately
    NONE = "none"  # No opinion, defer to normal downstream handling


class Label(str, Enum):
    """Classifier label."""

    SPAM = "spam"
    VALID = "valid"


@dataclass
class Candidate:
    """A piece of user-submitted text with its author metadata.

    Attributes:
        text: Comment body
        author_name: Author display name
        author_email: Author email address
        author_url: Author website
        reference_document_id: Identifier of the post being commented on
        entity_id: Identifier of the stored comment, if it already exists
        is_authenticated_user: Submitted by a logged-in user
        is_test: Ad-hoc evaluation, no entity id is recorded
    """

    text: str = ""
    author_name: str = ""
    author_email: str = ""
    author_url: str = ""
    reference_document_id: Optional[str] = None
    entity_id: Optional[str] = None
    is_authenticated_user: bool = False
    is_test: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Candidate":
        """Build a candidate from a loosely-typed mapping, ignoring unknown keys."""
        known = {name for name in cls.__dataclass_fields__}
        values = {k: v for k, v in data.items() if k in known}
        for key in ("text", "author_name", "author_email", "author_url"):
            if values.get(key) is None:
                values[key] = ""
            else:
                values[key] = str(values[key])
        for key in ("reference_document_id", "entity_id"):
            if values.get(key) is not None:
                values[key] = str(values[key])
        return cls(**values)


@dataclass
class Verdict:
    """Structured classifier output.

    Attributes:
        label: spam or valid
        confidence: Confidence score (0.0-1.0)
        reasons: Up to six short explanations
        error: Error code when the verdict is a fail-safe substitute
    """

    label: Label
    confidence: float
    reasons: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_spam(self) -> bool:
        return self.label == Label.SPAM


@dataclass
class ReferenceDocument:
    """The document a comment refers to (e.g. a blog post)."""

    title: str
    body: str
    published: bool = True


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return None
    return value[:limit]


@dataclass
class LogRecord:
    """One persisted decision per ``evaluate`` call.

    ``raw_response`` is never empty: when no provider response was captured
    a synthetic JSON payload describing the decision is substituted.
    """

    decision: str
    confidence: float
    model: str
    reasons: list[str] = field(default_factory=list)
    raw_response: str = ""
    entity_id: Optional[str] = None
    tokens: Optional[int] = None
    latency_ms: Optional[int] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.decision = _truncate(str(self.decision), MAX_DECISION_CHARS)
        self.model = _truncate(str(self.model or ""), MAX_MODEL_CHARS)
        self.reasons = [str(reason) for reason in (self.reasons or [])]
        self.error = _truncate(self.error, MAX_ERROR_CHARS) if self.error else None
        if not self.raw_response:
            self.raw_response = json.dumps(
                {
                    "note": "no raw response captured",
                    "decision": self.decision,
                    "error": self.error,
                    "model": self.model,
                    "reasons": self.reasons,
                },
                ensure_ascii=False,
            )
        self.raw_response = _truncate(self.raw_response, MAX_RAW_RESPONSE_CHARS)

    @property
    def has_error(self) -> bool:
        return bool(self.error)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogRecord":
        """Deserialize from :meth:`to_dict` output."""
        values = dict(data)
        created_at = values.get("created_at")
        if isinstance(created_at, str):
            values["created_at"] = datetime.fromisoformat(created_at)
        return cls(**values)
