"""Facebook profile/page/group URL extraction."""
from __future__ import annotations

import re
from typing import Optional, Set

_FACEBOOK_RE = re.compile(
    r"(?<![\w./-])(?:https?://)?(?:www\.)?(?:facebook\.com|fb\.com)/"
    r"(?:profile\.php\?id=\d+|pages/[A-Z0-9._-]+|groups/[A-Z0-9._-]+|[A-Z0-9._-]{2,})"
    r"(?:/[A-Z0-9._-]+)*",
    re.IGNORECASE,
)
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_WWW_RE = re.compile(r"^www\.", re.IGNORECASE)

NON_PROFILE_SEGMENTS = frozenset({
    "home",
    "login",
    "register",
    "help",
    "privacy",
    "terms",
    "cookies",
    "settings",
    "sharer",
    "sharer.php",
    "share.php",
    "dialog",
    "plugins",
    "tr",
})


def _clean(match: str) -> Optional[str]:
    cleaned = _WWW_RE.sub("", _SCHEME_RE.sub("", match)).rstrip("/.")
    if "\\" in cleaned or "//" in cleaned:
        return None
    host, _, path = cleaned.partition("/")
    first_segment = path.split("/", 1)[0]
    if len(first_segment) < 2:
        return None
    if first_segment.lower() in NON_PROFILE_SEGMENTS:
        return None
    return f"{host.lower()}/{path}"


def extract_facebook_urls(markup: str) -> Set[str]:
    """Return normalised profile URLs such as ``facebook.com/acme.page``."""
    if not markup:
        return set()
    found: Set[str] = set()
    for match in _FACEBOOK_RE.findall(markup):
        cleaned = _clean(match)
        if cleaned:
            found.add(cleaned)
    return found
