"""
Pure URL normalization.

Rewrites a URL into a stable string so that trivially different spellings of
the same address compare equal:

1. Scheme forced to https, default ports (80/443) dropped
2. Host lowercased, leading ``www.`` stripped
3. Fragment removed
4. Repeated slashes collapsed, trailing slashes stripped (root path kept)
5. Tracking parameters removed, remaining parameters sorted by key

``normalize_url`` is idempotent and never raises; input it cannot parse is
returned unchanged.
"""

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from linksignal.canonicalization.params import TRACKING_PARAMS

_DEFAULT_PORTS = {80, 443}
_REPEATED_SLASHES = re.compile(r"/{2,}")
_IPV4 = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")

# Second-level labels that behave like TLDs for registrable-domain purposes
TWO_PART_TLDS: frozenset[str] = frozenset({
    "co.uk",
    "org.uk",
    "com.au",
    "co.nz",
    "com.br",
    "co.jp",
})


def _strip_www(host: str) -> str:
    while host.startswith("www."):
        host = host[4:]
    return host


def normalize_url(url: str) -> str:
    """Normalize an absolute http(s) URL to its canonical string form.

    Args:
        url: Absolute URL, typically already redirect-resolved.

    Returns:
        Normalized URL, or ``url`` unchanged if it cannot be parsed.
    """
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return url

    if parts.scheme.lower() not in ("http", "https") or not hostname:
        return url

    host = _strip_www(hostname.lower())
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    if port is not None and port not in _DEFAULT_PORTS:
        netloc = f"{netloc}:{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = _REPEATED_SLASHES.sub("/", parts.path).rstrip("/") or "/"

    params = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in TRACKING_PARAMS
    ]
    params.sort(key=lambda pair: pair[0])
    query = urlencode(params)

    return urlunsplit(("https", netloc, path, query, ""))


def extract_domain(url: str) -> str:
    """Return the lowercase host of ``url`` without a leading ``www.``.

    Returns an empty string when the URL has no parseable host.
    """
    try:
        hostname = urlsplit(url.strip()).hostname
    except ValueError:
        return ""
    if not hostname:
        return ""
    return _strip_www(hostname.lower())


def extract_base_domain(url_or_host: str) -> str:
    """Return the registrable domain for a URL or a bare host name.

    ``blog.example.com`` becomes ``example.com`` and ``news.bbc.co.uk``
    becomes ``bbc.co.uk``. No public-suffix list is consulted; only the
    two-part TLDs in ``TWO_PART_TLDS`` are special-cased.
    """
    value = url_or_host.strip()
    if "://" in value:
        domain = extract_domain(value)
    else:
        domain = _strip_www(value.lower().split("/", 1)[0].split(":", 1)[0])

    if not domain:
        return ""

    labels = domain.split(".")
    if len(labels) <= 2:
        return domain

    if ".".join(labels[-2:]) in TWO_PART_TLDS:
        return ".".join(labels[-3:])

    return ".".join(labels[-2:])


def is_from_domain(url: str, domain: str) -> bool:
    """Check whether ``url`` is on ``domain`` or one of its subdomains."""
    url_domain = extract_domain(url)
    target = _strip_www(domain.strip().lower())
    if not url_domain or not target:
        return False
    return url_domain == target or url_domain.endswith("." + target)


def should_exclude(url: str) -> bool:
    """Return True for URLs that can never be content links.

    Excludes non-http(s) schemes, localhost and bare IPv4 hosts. Input that
    cannot be parsed is excluded.
    """
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        parts.port  # raises ValueError on an invalid port
    except ValueError:
        return True

    if parts.scheme.lower() not in ("http", "https") or not hostname:
        return True

    hostname = hostname.lower()
    return hostname == "localhost" or bool(_IPV4.match(hostname))
