"""Outbound link discovery with navigation links ranked first."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from mailcrawl.normalize.urls import same_domain
from mailcrawl.parse.content import PageContent, markup_of

NAV_SELECTORS = (
    "nav a",
    "header a",
    ".navbar a",
    ".nav a",
    ".navigation a",
    ".menu a",
    ".main-menu a",
    ".primary-menu a",
    ".top-menu a",
    "[role='navigation'] a",
    ".site-nav a",
    ".main-nav a",
)

COMMON_PAGES = ("/about/", "/contact/", "/about", "/contact", "/about-us/", "/contact-us/")

_SKIPPED_PREFIXES = ("#", "javascript:", "mailto:", "tel:")


@dataclass
class LinkCandidates:
    """Absolute same-domain URLs split into priority tiers, in page order."""

    priority: List[str] = field(default_factory=list)
    fallback: List[str] = field(default_factory=list)


def _resolve(href: str, base_url: str) -> str | None:
    href = href.strip()
    if not href or href.lower().startswith(_SKIPPED_PREFIXES):
        return None
    try:
        return urljoin(base_url, href)
    except ValueError:
        # unbalanced IPv6 brackets and similar
        return None


def _dedupe(urls: List[str]) -> List[str]:
    return list(dict.fromkeys(urls))


def discover_links(content: PageContent, *, seed_url: str) -> LinkCandidates:
    """Collect navigation/informational links and generic anchors from a page."""
    page_url = content.url
    soup = BeautifulSoup(markup_of(content), "html.parser")

    priority: List[str] = []
    for selector in NAV_SELECTORS:
        for element in soup.select(selector):
            href = element.get("href")
            resolved = _resolve(href, page_url) if href else None
            if resolved:
                priority.append(resolved)
    parsed = urlsplit(page_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    priority.extend(urljoin(origin, path) for path in COMMON_PAGES)

    fallback: List[str] = []
    for element in soup.find_all("a", href=True):
        resolved = _resolve(element["href"], page_url)
        if resolved:
            fallback.append(resolved)

    return LinkCandidates(
        priority=_dedupe([url for url in priority if same_domain(url, seed_url)]),
        fallback=_dedupe([url for url in fallback if same_domain(url, seed_url)]),
    )
