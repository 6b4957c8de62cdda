"""Comment Guard - LLM-assisted comment spam classification.

Decides for each submitted comment whether to approve, hold, or reject it
through:
- Local heuristic pre-filters (links, blacklists, author fields)
- Chat-completion providers with per-model and per-provider backoff
- A fail-safe action policy that never auto-approves on failure
- A best-effort decision log with retention sweep

Python Version: 3.10+ required
"""

# Logging Configuration - Configure before other imports
from .logging_config import StructuredFormatter, configure_logging

# Initialize structured logging on module import
configure_logging()

from .__version__ import __version__
from .classifier import (
    BatchResult,
    ClassificationOutcome,
    DecisionEngine,
    decide_action,
)
from .config import GuardConfig, get_config, reset_config
from .documents import DocumentSource, InMemoryDocumentSource
from .log_store import (
    InMemoryLogStore,
    JsonlLogStore,
    LogPage,
    LogQuery,
    LogStore,
    LogStoreError,
    purge_old_logs,
)
from .models import Action, Candidate, Label, LogRecord, ReferenceDocument, Verdict

__all__ = [
    "Action",
    "BatchResult",
    "Candidate",
    "ClassificationOutcome",
    "DecisionEngine",
    "DocumentSource",
    "GuardConfig",
    "InMemoryDocumentSource",
    "InMemoryLogStore",
    "JsonlLogStore",
    "Label",
    "LogPage",
    "LogQuery",
    "LogRecord",
    "LogStore",
    "LogStoreError",
    "ReferenceDocument",
    "StructuredFormatter",
    "Verdict",
    "__version__",
    "configure_logging",
    "decide_action",
    "get_config",
    "purge_old_logs",
    "reset_config",
]
