"""Domain extraction and normalization for author field checks.

All functions are total: unparseable input yields an empty string, never
an exception.
"""

import re
from urllib.parse import urlsplit

__all__ = [
    "DISPOSABLE_DOMAINS",
    "email_domain",
    "is_disposable_domain",
    "is_valid_email",
    "normalize_domain",
    "url_domain",
]

# Minimal disposable mailbox providers; extend with the email domain blacklist
DISPOSABLE_DOMAINS = frozenset(
    {
        "mailinator.com",
        "tempmail.com",
        "guerrillamail.com",
        "10minutemail.com",
        "10minemail.com",
        "fakeinbox.com",
        "yopmail.com",
        "trashmail.com",
        "getnada.com",
        "mohmal.com",
        "sharklasers.com",
        "dispostable.com",
        "mail-temporaire.fr",
        "mintemail.com",
        "spambog.com",
        "maildrop.cc",
        "throwawaymail.com",
        "linshi-email.com",
        "temporary-mail.net",
        "anonaddy.com",
    }
)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: str) -> bool:
    """Return True for a syntactically plausible ``local@host.tld`` address."""
    if not email or not isinstance(email, str):
        return False
    return bool(_EMAIL_PATTERN.match(email.strip()))


def email_domain(email: str) -> str:
    """Extract the lowercased domain part of an email address.

    Examples:
        >>> email_domain("Bob@Example.COM")
        'example.com'
        >>> email_domain("not-an-email")
        ''
    """
    if not email or not isinstance(email, str):
        return ""
    email = email.strip()
    if "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].strip().lower()


def url_domain(url: str) -> str:
    """Extract the lowercased host of a URL, tolerating a missing scheme.

    Examples:
        >>> url_domain("https://WWW.Example.com/path")
        'www.example.com'
        >>> url_domain("example.org/about")
        'example.org'
    """
    if not url or not isinstance(url, str):
        return ""
    url = url.strip()
    if not url:
        return ""

    host = _hostname(url)
    if not host:
        host = _hostname("http://" + url)
    return host.lower() if host else ""


def _hostname(url: str) -> str:
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        # Malformed netloc such as an unterminated IPv6 literal
        return ""


def normalize_domain(domain: str) -> str:
    """Normalize a domain for comparison.

    Lowercases, trims whitespace, strips trailing dots and leading ``www.``
    labels. Idempotent: ``normalize_domain(normalize_domain(d)) ==
    normalize_domain(d)``.

    Examples:
        >>> normalize_domain("WWW.Example.com.")
        'example.com'
    """
    if not domain or not isinstance(domain, str):
        return ""
    d = domain
    while True:
        previous = d
        d = d.strip().rstrip(".").lower()
        if d.startswith("www."):
            d = d[4:]
        if d == previous:
            return d


def is_disposable_domain(domain: str) -> bool:
    """Check a normalized domain against the disposable mailbox set."""
    return normalize_domain(domain) in DISPOSABLE_DOMAINS
