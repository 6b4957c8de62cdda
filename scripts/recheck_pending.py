#!/usr/bin/env python3
"""Re-evaluate a backlog of pending comments one page at a time.

Reads candidates from a JSONL file (one object per line with text,
author_name, author_email, author_url, reference_document_id, entity_id)
and prints the action for each. Resume with --offset using the printed
next offset.

Usage:
    python scripts/recheck_pending.py pending.jsonl
    python scripts/recheck_pending.py pending.jsonl --offset 25 --batch 50
    python scripts/recheck_pending.py pending.jsonl --llm-only --all
"""

import argparse
import json
import sys
from pathlib import Path

# Allow running from repo root without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from commentguard.classifier import DecisionEngine
from commentguard.config import get_config
from commentguard.logging_config import configure_logging
from commentguard.models import Candidate


def load_candidates(path: Path) -> list[Candidate]:
    """Load candidates from JSONL, skipping blank and malformed lines."""
    candidates = []
    with open(path, encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except ValueError as e:
                print(f"Skipping line {line_number}: {e}", file=sys.stderr)
                continue
            if not isinstance(data, dict):
                print(f"Skipping line {line_number}: not an object", file=sys.stderr)
                continue
            candidates.append(Candidate.from_dict(data))
    return candidates


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Re-evaluate pending comments in resumable batches.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/recheck_pending.py pending.jsonl
  python scripts/recheck_pending.py pending.jsonl --offset 25
  python scripts/recheck_pending.py pending.jsonl --all --llm-only
        """,
    )
    parser.add_argument("path", type=Path, help="JSONL file of pending comments")
    parser.add_argument("--offset", type=int, default=0, help="Start offset (default: 0)")
    parser.add_argument("--batch", type=int, default=25, help="Page size, 1-200 (default: 25)")
    parser.add_argument(
        "--all",
        action="store_true",
        default=False,
        help="Keep going until the backlog is exhausted",
    )
    parser.add_argument(
        "--llm-only",
        action="store_true",
        default=False,
        help="Bypass heuristic pre-filters",
    )
    args = parser.parse_args()

    if not args.path.exists():
        print(f"File not found: {args.path}", file=sys.stderr)
        return 1

    candidates = load_candidates(args.path)
    offset = args.offset
    counts: dict[str, int] = {}

    config = get_config()
    configure_logging(config.log_level, config.log_format)
    if not config.has_primary_credentials:
        print("No primary API key configured (set COMMENTGUARD_API_KEY).", file=sys.stderr)
        return 1

    with DecisionEngine.from_config(config) as engine:
        while True:
            result = engine.evaluate_batch(
                candidates,
                offset=offset,
                page_size=args.batch,
                bypass_heuristics=args.llm_only,
            )
            for candidate, action in result.results:
                counts[action.value] = counts.get(action.value, 0) + 1
                print(f"{candidate.entity_id or '-'}\t{action.value}")
            offset = result.next_offset
            if not args.all or result.done or not result.results:
                break

    summary = ", ".join(f"{name}={count}" for name, count in sorted(counts.items()))
    print(f"\nProcessed: {summary or 'nothing'}")
    print(f"Next offset: {offset}  Remaining: {max(0, len(candidates) - offset)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
