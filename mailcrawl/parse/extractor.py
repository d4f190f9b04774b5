"""Per-page extraction policy combining the email and social extractors."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet

from mailcrawl.parse.content import PageContent, markup_of
from mailcrawl.parse.emails import extract_emails
from mailcrawl.parse.social import extract_facebook_urls


@dataclass(frozen=True)
class PageExtraction:
    emails: FrozenSet[str] = field(default_factory=frozenset)
    facebook_urls: FrozenSet[str] = field(default_factory=frozenset)


def extract_page(content: PageContent) -> PageExtraction:
    """Extract contact signals from one page.

    Emails are always collected. Facebook URLs are only looked for when the
    same page produced no email at all.
    """
    markup = markup_of(content)
    emails = frozenset(extract_emails(markup))
    if emails:
        return PageExtraction(emails=emails)
    return PageExtraction(facebook_urls=frozenset(extract_facebook_urls(markup)))
