"""
services/domain.py
------------------
Pure hostname helpers used to decide whether a stored website URL belongs
to the site in a browser tab. No I/O, and none of these functions raise.

"Same site" means "same base domain", where the base domain is simply the
last two dot-separated labels:

    mail.google.com      → google.com
    accounts.google.com  → google.com   (so both match each other)
    example.co.uk        → co.uk        (known over-match, see DESIGN.md)

This is not public-suffix aware on purpose; changing it changes which
credentials are offered on which sites.
"""

import re
from typing import Optional
from urllib.parse import urlsplit

_HTTP_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def normalize_host(host: str) -> str:
    """Lower-case and strip a single leading literal "www."."""
    lowered = host.lower()
    return lowered[4:] if lowered.startswith("www.") else lowered


def _hostname(url: str) -> Optional[str]:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def parse_hostname(value: str) -> str:
    """
    Accept a bare host or a URL and return its hostname.

    A value with no http(s) scheme and no "/" is already a host. Anything
    else is parsed as a URL, with "https://" assumed when the scheme is
    missing. Unparseable input falls back to normalize_host(value).
    """
    url = value
    if not _HTTP_SCHEME.match(value):
        if "/" not in value:
            return normalize_host(value)
        url = f"https://{value}"
    hostname = _hostname(url)
    if not hostname:
        return normalize_host(value)
    return hostname.lower()


def base_domain(hostname: str) -> str:
    labels = [label for label in normalize_host(hostname).split(".") if label]
    return ".".join(labels[-2:])


def url_matches_host(stored_url: str, target_host: str) -> bool:
    """
    True when a stored URL points at the same base domain as target_host.

    Exact string equality on base domains, so "notgoogle.com" never matches
    "google.com" even though one contains the other.
    """
    candidate = stored_url if _HTTP_SCHEME.match(stored_url) else f"https://{stored_url}"
    hostname = _hostname(candidate)
    if not hostname:
        return False
    return base_domain(normalize_host(hostname)) == base_domain(target_host)
