"""URL normalisation and domain-scope helpers."""
from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def is_http_url(url: str) -> bool:
    """True for http(s) URLs with a host and a usable port."""
    try:
        parsed = urlsplit(url)
        parsed.port  # raises ValueError for non-numeric or out-of-range ports
    except ValueError:
        return False
    return parsed.scheme.lower() in _DEFAULT_PORTS and bool(parsed.hostname)


def normalize_url(url: str) -> str:
    """Canonical form used to key the visited set.

    Scheme and host are lower-cased, default ports and fragments dropped and
    a trailing slash trimmed from any path other than the root. The query
    string is kept since it often selects distinct content.
    """
    parsed = urlsplit(url.strip())
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    netloc = host
    if parsed.port and parsed.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parsed.port}"
    path = parsed.path or "/"
    if path != "/":
        path = path.rstrip("/") or "/"
    return urlunsplit((scheme, netloc, path, parsed.query, ""))


def registered_host(url: str) -> str:
    """Return the lower-cased host with any leading ``www.`` removed."""
    host = (urlsplit(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def same_domain(url: str, seed_url: str) -> bool:
    """True when ``url`` is on the seed's host or one of its subdomains."""
    if not is_http_url(url):
        return False
    host = registered_host(url)
    seed_host = registered_host(seed_url)
    if not host or not seed_host:
        return False
    return host == seed_host or host.endswith("." + seed_host)
