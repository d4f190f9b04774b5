"""Page content as delivered by the fetch layer.

A fetched page is either a browser-rendered DOM serialisation or the raw
HTTP body, never both. The extractor consumes either form through
:func:`markup_of`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class Rendered:
    """DOM serialisation produced after the page ran in a browser."""

    url: str
    html: str


@dataclass(frozen=True, slots=True)
class Raw:
    """Unrendered response body straight from the HTTP client."""

    url: str
    body: Union[str, bytes]
    encoding: str = "utf-8"


PageContent = Union[Rendered, Raw]


def markup_of(content: PageContent) -> str:
    """Return the markup text of either content variant."""
    if isinstance(content, Rendered):
        return content.html
    if isinstance(content.body, bytes):
        try:
            return content.body.decode(content.encoding or "utf-8", errors="replace")
        except LookupError:
            return content.body.decode("utf-8", errors="replace")
    return content.body
