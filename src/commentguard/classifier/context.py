"""Reference document digest for topical grounding.

Builds a bounded-length summary of the post a comment belongs to: title,
intro, a snippet around the first comment keyword found in the post, and
the conclusion. Deterministic for identical inputs.
"""

import html
import re
from collections import Counter

__all__ = [
    "INTRO_WORDS",
    "CONCLUSION_WORDS",
    "SNIPPET_CHARS",
    "extract_keywords",
    "summarize",
]

INTRO_WORDS = 120
CONCLUSION_WORDS = 60
SNIPPET_CHARS = 700
MAX_KEYWORDS = 12
MIN_KEYWORD_LENGTH = 3

STOPWORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "if", "then", "else", "when",
        "at", "by", "for", "in", "of", "on", "to", "with", "from", "is", "it",
        "this", "that", "these", "those", "i", "you", "he", "she", "we",
        "they", "me", "him", "her", "us", "them", "are", "was", "were", "be",
        "been", "am", "as", "my", "our", "your", "their",
    }
)

_TAG_PATTERN = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>|<[^>]+>", re.IGNORECASE | re.DOTALL)
_WHITESPACE = re.compile(r"\s+")
_TOKEN_SPLIT = re.compile(r"[\W_]+", re.UNICODE)


def strip_markup(text: str) -> str:
    """Drop HTML tags (including script/style bodies) and collapse whitespace."""
    text = _TAG_PATTERN.sub(" ", text or "")
    text = html.unescape(text)
    return _WHITESPACE.sub(" ", text).strip()


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Most frequent non-stopword tokens of at least three characters.

    Ties keep first-occurrence order so the result is deterministic.
    """
    tokens = [t for t in _TOKEN_SPLIT.split((text or "").lower()) if t]
    counts = Counter(
        t for t in tokens if t not in STOPWORDS and len(t) >= MIN_KEYWORD_LENGTH
    )
    # Counter preserves insertion order and most_common() is a stable sort
    return [word for word, _ in counts.most_common(limit)]


def first_words(text: str, n: int) -> str:
    return " ".join(text.split(" ")[:n]).strip()


def last_words(text: str, n: int) -> str:
    return " ".join(text.split(" ")[-n:]).strip()


def window_around_keywords(text: str, keywords: list[str], width: int = SNIPPET_CHARS) -> str:
    """Window of ``width`` characters centered on the first keyword hit.

    Keywords are tried in rank order; partial words at both edges are dropped.
    """
    if not keywords:
        return ""
    lowered = text.lower()
    position = -1
    for keyword in keywords:
        position = lowered.find(keyword.lower())
        if position != -1:
            break
    if position == -1:
        return ""

    start = max(0, position - width // 2)
    snippet = text[start : start + width]
    if start > 0:
        snippet = re.sub(r"^\S*\s", "", snippet, count=1)
    if start + width < len(text):
        snippet = re.sub(r"\s\S*$", "", snippet, count=1)
    return snippet.strip()


def summarize(title: str, full_text: str, candidate_text: str, char_budget: int) -> str:
    """Build the reference document digest.

    Args:
        title: Document title
        full_text: Document body (may contain HTML)
        candidate_text: Comment text, source of the keywords
        char_budget: Maximum length of the result in characters

    Returns:
        Labeled sections joined by newlines, hard-truncated to char_budget.
    """
    title = (title or "").strip() or "(untitled)"
    content = strip_markup(full_text)
    if not content:
        return f"Title: {title}"[:char_budget]

    intro = first_words(content, INTRO_WORDS)
    snippet = ""
    # A post shorter than one window is already covered by intro + conclusion
    if len(content) > SNIPPET_CHARS:
        keywords = extract_keywords(candidate_text)
        snippet = window_around_keywords(content, keywords, SNIPPET_CHARS)
    conclusion = last_words(content, CONCLUSION_WORDS)

    parts = [f"Title: {title}", f"Intro: {intro}"]
    if snippet:
        parts.append(f"Relevant snippet: {snippet}")
    parts.append(f"Conclusion: {conclusion}")

    digest = "\n".join(parts)
    if len(digest) > char_budget:
        digest = digest[:char_budget]
    return digest
