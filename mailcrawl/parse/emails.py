"""Email address extraction from page markup."""
from __future__ import annotations

import re
from typing import Set
from urllib.parse import unquote

from bs4 import BeautifulSoup

_EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)

# "logo@2x.png" and friends look like addresses but are asset names.
_ASSET_SUFFIXES = frozenset({"png", "jpg", "jpeg", "gif", "svg", "webp", "css", "js"})


def _is_plausible(candidate: str) -> bool:
    tld = candidate.rsplit(".", 1)[-1].lower()
    return tld not in _ASSET_SUFFIXES


def _mailto_targets(soup: BeautifulSoup) -> Set[str]:
    found: Set[str] = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if href[:7].lower() != "mailto:":
            continue
        recipients = unquote(href[7:].split("?", 1)[0])
        for part in recipients.split(","):
            part = part.strip()
            if _EMAIL_RE.fullmatch(part) and _is_plausible(part):
                found.add(part)
    return found


def _text_matches(soup: BeautifulSoup) -> Set[str]:
    text = " ".join(soup.get_text(" ").split())
    return {match for match in _EMAIL_RE.findall(text) if _is_plausible(match)}


def extract_emails(markup: str) -> Set[str]:
    """Return every address found in ``mailto:`` links or the visible text.

    The pattern matches case-insensitively but addresses are returned exactly
    as written on the page.
    """
    if not markup:
        return set()
    soup = BeautifulSoup(markup, "html.parser")
    return _mailto_targets(soup) | _text_matches(soup)
