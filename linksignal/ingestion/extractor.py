"""
Content link extraction from feed entry and newsletter HTML.

Keeps outbound http(s) anchors that may point at content worth tracking
and drops everything that is plumbing: images and CDN assets, account
pages, unsubscribe/preference links, social profiles and the newsletter
platforms' own pages.
"""

import logging
import re

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

SKIP_URL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        # Image files
        r"\.(jpg|jpeg|png|gif|webp|heic|svg|ico|bmp)(\?|$)",
        # CDN and image hosting
        r"substackcdn\.com",
        r"substack-post-media\.s3",
        r"cloudinary\.com.*/image/",
        r"fonts\.googleapis\.com",
        r"fonts\.gstatic\.com",
        # Subscription and account pages
        r"/subscribe/?(\?|$)",
        r"/login/?(\?|$)",
        r"/account/?(\?|$)",
        r"/settings/?(\?|$)",
        r"/email-capture",
        r"/unsubscribe",
        r"/preferences/?(\?|$)",
        r"/manage-subscription",
        r"list-manage\.com/(unsubscribe|profile|subscribe)",
        # Social profiles (posts and tweets are kept)
        r"linkedin\.com",
        r"twitter\.com/(?!.*/status/)",
        r"//(www\.)?x\.com/(?!.*/status/)",
        r"instagram\.com/[^/]+/?$",
        # Email tracking pixels
        r"trk\.email\.",
        r"email\.mg\.",
        # Newsletter platforms' own pages
        r"substack\.com/p/",
        r"substack\.com/(app|profile|@)",
        r"beehiiv\.com",
        r"buttondown\.email",
        r"convertkit\.com",
        r"mailchi\.mp",
        r"campaign-archive\.com",
    )
)


def should_skip_link(url: str) -> bool:
    """True if ``url`` matches any skip pattern."""
    return any(pattern.search(url) for pattern in SKIP_URL_PATTERNS)


def extract_links_from_html(content: str) -> list[str]:
    """
    Extract candidate content links from an HTML fragment.

    Args:
        content: HTML (feed entry body, newsletter email)

    Returns:
        Unique absolute http(s) URLs in document order
    """
    if not content:
        return []

    soup = BeautifulSoup(content, "html.parser")

    links: list[str] = []
    seen: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href.lower().startswith(("http://", "https://")):
            continue
        if href in seen or should_skip_link(href):
            continue
        seen.add(href)
        links.append(href)

    return links
