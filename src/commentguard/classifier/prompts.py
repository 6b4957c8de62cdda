"""Classification prompt templates.

The system instruction pins the output contract: a single line of JSON with
exactly ``label`` ("spam" | "valid"), ``confidence`` (0..1) and ``reasons``
(array of short strings). The user message order is context block,
instruction line, author fields, comment.
"""

from typing import Optional

__all__ = [
    "PLACEHOLDER",
    "SYSTEM_PROMPT",
    "build_messages",
    "build_user_prompt",
]

PLACEHOLDER = "(none)"

MAX_COMMENT_CHARS = 8000

SYSTEM_PROMPT = (
    "You are a strict comment spam filter for a website.\n"
    "You also evaluate topical relevance to the blog post.\n"
    "Output a SINGLE LINE of compact JSON with keys exactly: "
    'label ("spam" or "valid"), confidence (0..1), reasons (array of short strings).\n'
    "If a comment is generic praise or unrelated to the post, prefer label "
    '"spam" with a reason like "off-topic/generic".\n'
    "Return ONLY JSON."
)

INSTRUCTION_LINE = (
    "Classify this comment as spam or valid. Consider: content quality, links, "
    "scams/phishing, SEO spam, duplicates, generic praise, and topical relevance "
    "to the post (if provided)."
)

USER_PROMPT = """{context_block}{instruction}
Author fields (may be empty):
- Author Name: {author_name}
- Author Email: {author_email}
- Author URL: {author_url}

Comment:
---
{text}
---"""


def _field(value: Optional[str]) -> str:
    value = (value or "").strip()
    return value if value else PLACEHOLDER


def build_user_prompt(
    text: str,
    author_name: Optional[str] = None,
    author_email: Optional[str] = None,
    author_url: Optional[str] = None,
    context: Optional[str] = None,
) -> str:
    """Build the user message for one comment.

    Args:
        text: The comment body
        author_name: Author display name, ``(none)`` when empty
        author_email: Author email, ``(none)`` when empty
        author_url: Author website, ``(none)`` when empty
        context: Optional reference document digest

    Returns:
        Formatted prompt string
    """
    truncated = text
    if len(text) > MAX_COMMENT_CHARS:
        truncated = text[:MAX_COMMENT_CHARS] + "\n\n[...truncated]"

    context = (context or "").strip()
    context_block = f"Blog Post Context:\n---\n{context}\n---\n\n" if context else ""

    return USER_PROMPT.format(
        context_block=context_block,
        instruction=INSTRUCTION_LINE,
        author_name=_field(author_name),
        author_email=_field(author_email),
        author_url=_field(author_url),
        text=truncated,
    )


def build_messages(system: str, user_prompt: str) -> list[dict[str, str]]:
    """Chat-completions message list: system instruction then user prompt."""
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user_prompt},
    ]
