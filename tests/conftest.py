"""Shared pytest fixtures for Comment Guard tests.

Fixture Organization:
    - Environment isolation: COMMENTGUARD_* variables and .env files ignored
    - Logging reset: re-enables propagation so caplog captures events
    - Time and backoff: deterministic clock and a fresh tracker per test
    - Sample data: candidates, configs, log stores
"""

import logging
import os
import sys
from pathlib import Path

import pytest

from src.commentguard.classifier.backoff import BackoffTracker, backoff_tracker
from src.commentguard.config import GuardConfig, reset_config
from src.commentguard.log_store import InMemoryLogStore
from src.commentguard.models import Candidate

# Add tests directory to sys.path so test modules can import
# classifier_test_helpers from tests directory
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from classifier_test_helpers import FakeClock  # noqa: E402


# =============================================================================
# Environment and Logging Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove COMMENTGUARD_* variables so host settings never leak into tests."""
    for name in list(os.environ):
        if name.startswith("COMMENTGUARD_"):
            monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test to allow caplog to work.

    configure_logging() attaches a handler to the commentguard logger and
    disables propagation on package import, which hides records from caplog.
    """
    logger = logging.getLogger("commentguard")

    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name.startswith("commentguard"):
            child_logger = logging.getLogger(name)
            child_logger.handlers.clear()
            child_logger.propagate = True

    logger.handlers.clear()
    logger.propagate = True

    yield

    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name.startswith("commentguard"):
            child_logger = logging.getLogger(name)
            child_logger.handlers.clear()
            child_logger.propagate = True

    logger.handlers.clear()
    logger.propagate = True


@pytest.fixture(autouse=True)
def reset_global_backoff():
    """Clear the process-wide backoff tracker between tests."""
    backoff_tracker.store.clear()
    yield
    backoff_tracker.store.clear()


# =============================================================================
# Time and Backoff Fixtures
# =============================================================================


@pytest.fixture
def clock():
    """Deterministic clock starting at 2023-11-14T22:13:20Z."""
    return FakeClock()


@pytest.fixture
def tracker(clock):
    """Backoff tracker driven by the test clock."""
    return BackoffTracker(clock=clock)


# =============================================================================
# Configuration and Sample Data Fixtures
# =============================================================================


@pytest.fixture
def make_config():
    """Factory for GuardConfig instances that ignore .env files.

    Example:
        def test_threshold(make_config):
            config = make_config(confidence_threshold=0.9)
    """

    def _make(**overrides) -> GuardConfig:
        overrides.setdefault("api_key", "sk-or-test")
        return GuardConfig(_env_file=None, **overrides)

    return _make


@pytest.fixture
def config(make_config):
    """Default configuration with primary credentials set."""
    return make_config()


@pytest.fixture
def log_store():
    """Fresh in-memory decision log."""
    return InMemoryLogStore()


@pytest.fixture
def sample_candidate():
    """A typical on-topic comment from an anonymous visitor."""
    return Candidate(
        text="Great article, thanks! The section on backoff windows helped a lot.",
        author_name="Dana",
        author_email="dana@example.org",
        author_url="https://dana.example.org",
        reference_document_id="42",
        entity_id="1001",
    )
