#!/usr/bin/env python3
"""Classify a single piece of text with the configured providers.

Runs prompt + provider dispatch only (no heuristics, no policy) and prints
the verdict. The decision is logged without an entity id.

Usage:
    python scripts/classify_text.py "Great article, thanks!"
    python scripts/classify_text.py --author-email bob@mailinator.com "Buy now"
    echo "Nice post" | python scripts/classify_text.py --json -
"""

import argparse
import json
import sys
from pathlib import Path

# Allow running from repo root without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from commentguard.classifier import ClassificationOutcome, DecisionEngine
from commentguard.config import get_config
from commentguard.logging_config import configure_logging


def format_outcome(outcome: ClassificationOutcome) -> str:
    """Format an outcome for the terminal."""
    verdict = outcome.verdict
    lines = [
        f"Label:      {verdict.label.value}",
        f"Confidence: {verdict.confidence:.2f}",
        f"Reasons:    {', '.join(verdict.reasons) or '(none)'}",
        f"Model:      {outcome.model}",
    ]
    if outcome.tokens is not None:
        lines.append(f"Tokens:     {outcome.tokens}")
    if outcome.latency_ms is not None:
        lines.append(f"Latency:    {outcome.latency_ms} ms")
    if outcome.error:
        lines.append(f"Error:      {outcome.error}")
    return "\n".join(lines)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Classify text as spam or valid using the configured LLM providers.",
    )
    parser.add_argument("text", help="Text to classify, or - to read stdin")
    parser.add_argument("--author-name", default="", help="Author display name")
    parser.add_argument("--author-email", default="", help="Author email address")
    parser.add_argument("--author-url", default="", help="Author website")
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output as JSON instead of text",
    )
    args = parser.parse_args()

    text = sys.stdin.read() if args.text == "-" else args.text
    if not text.strip():
        print("Nothing to classify.", file=sys.stderr)
        return 1

    try:
        config = get_config()
    except Exception as e:
        print(f"\nConfiguration Error: {e}\n", file=sys.stderr)
        return 1

    configure_logging(config.log_level, config.log_format)
    if not config.has_primary_credentials:
        print("No primary API key configured (set COMMENTGUARD_API_KEY).", file=sys.stderr)
        return 1

    with DecisionEngine.from_config(config) as engine:
        outcome = engine.classify_text(
            text,
            author_name=args.author_name,
            author_email=args.author_email,
            author_url=args.author_url,
        )

    if args.json:
        print(
            json.dumps(
                {
                    "label": outcome.verdict.label.value,
                    "confidence": outcome.verdict.confidence,
                    "reasons": outcome.verdict.reasons,
                    "model": outcome.model,
                    "tokens": outcome.tokens,
                    "latency_ms": outcome.latency_ms,
                    "error": outcome.error,
                },
                indent=2,
            )
        )
    else:
        print(format_outcome(outcome))

    return 2 if outcome.error else 0


if __name__ == "__main__":
    sys.exit(main())
