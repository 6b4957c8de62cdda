"""Heuristic pre-filters.

Fast local checks applied before any provider call. The first match wins
and short-circuits classification with confidence 1.0.

Order:
1. Link count
2. Content phrase blacklist
3. Author name blacklist
4. Email domain blacklist / disposable mailbox domain
5. Author URL domain blacklist
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..config import GuardConfig
from ..domains import (
    email_domain,
    is_disposable_domain,
    is_valid_email,
    normalize_domain,
    url_domain,
)
from ..models import Action, Candidate

logger = logging.getLogger("commentguard.classifier.heuristics")

__all__ = [
    "LINK_PATTERN",
    "HeuristicMatch",
    "check",
    "contains_link",
    "count_links",
]

LINK_PATTERN = re.compile(r"https?://", re.IGNORECASE)
# Broader than LINK_PATTERN: also catches bare www. hosts
URL_LIKE_PATTERN = re.compile(r"https?://|\bwww\.", re.IGNORECASE)


@dataclass(frozen=True)
class HeuristicMatch:
    """A heuristic hit.

    Attributes:
        rule: Rule identifier (links, content_blacklist, author_name,
              email_domain, disposable_email, url_domain)
        reason: Human-readable reason recorded in the decision log
        action: Terminal action (the configured auto_action)
    """

    rule: str
    reason: str
    action: Action


def count_links(text: str) -> int:
    """Count http(s) URL occurrences."""
    return len(LINK_PATTERN.findall(text or ""))


def contains_link(text: str) -> bool:
    """True when the text contains anything URL-like."""
    return bool(URL_LIKE_PATTERN.search(text or ""))


def _find_phrase(haystack: str, phrases) -> Optional[str]:
    lowered = haystack.lower()
    for phrase in phrases:
        if phrase and phrase.lower() in lowered:
            return phrase
    return None


def check(candidate: Candidate, config: GuardConfig) -> Optional[HeuristicMatch]:
    """Run the heuristic chain against a candidate.

    Args:
        candidate: The comment under evaluation
        config: Active configuration

    Returns:
        HeuristicMatch on the first matching rule, None to continue with
        LLM classification.

    Examples:
        >>> check(Candidate(text="a http://x http://y http://z"), GuardConfig(max_links=2)).reason
        'Too many links (3)'
    """
    content = (candidate.text or "").strip()
    action = Action(config.auto_action)

    def matched(rule: str, reason: str) -> HeuristicMatch:
        logger.info("heuristic_match", extra={"rule": rule, "reason": reason})
        return HeuristicMatch(rule=rule, reason=reason, action=action)

    if config.max_links > 0:
        link_count = count_links(content)
        if link_count > config.max_links:
            return matched("links", f"Too many links ({link_count})")

    phrase = _find_phrase(content, config.content_blacklist)
    if phrase:
        return matched("content_blacklist", f"Content matched blacklist: {phrase}")

    if not config.check_author_fields:
        logger.debug("no_heuristic_match")
        return None

    author = (candidate.author_name or "").strip()
    if author:
        phrase = _find_phrase(author, config.author_name_blacklist)
        if phrase:
            return matched("author_name", f"Author name matched blacklist: {phrase}")

    email = (candidate.author_email or "").strip()
    if email and is_valid_email(email):
        domain = normalize_domain(email_domain(email))
        if domain:
            if domain in config.email_domain_blacklist:
                return matched("email_domain", f"Email domain blacklisted: {domain}")
            if config.disposable_email_check and is_disposable_domain(domain):
                return matched("disposable_email", f"Disposable email domain: {domain}")

    url = (candidate.author_url or "").strip()
    if url:
        domain = normalize_domain(url_domain(url))
        if domain and domain in config.url_domain_blacklist:
            return matched("url_domain", f"Author URL domain blacklisted: {domain}")

    logger.debug("no_heuristic_match")
    return None
