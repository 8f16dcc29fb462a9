"""
Registry of known redirect and click-tracking URL patterns.

Newsletter platforms and URL shorteners wrap the real destination in a
tracking link. Some of them carry the destination in a query parameter,
which lets us skip the network round trip entirely; the rest must be
followed over HTTP.

Order matters: the first matching entry wins, so entries with an
extraction rule are listed before the redirect-only entry of the same
platform.
"""

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit


@dataclass(frozen=True)
class RedirectPattern:
    """A known wrapper URL shape.

    Attributes:
        name: Human-readable name used in logs and metrics.
        platform: Originating platform (newsletter sender or shortener).
        pattern: Regex matched against the full URL.
        destination_param: Query parameter carrying the percent-encoded
            destination, or None when the wrapper must be followed.
    """

    name: str
    platform: str
    pattern: re.Pattern[str]
    destination_param: str | None = None

    @property
    def extractable(self) -> bool:
        return self.destination_param is not None

    def matches(self, url: str) -> bool:
        return self.pattern.search(url) is not None

    def extract(self, url: str) -> str | None:
        """Return the embedded destination, or None if there is none."""
        if self.destination_param is None:
            return None
        try:
            query = urlsplit(url).query
        except ValueError:
            return None

        values = parse_qs(query).get(self.destination_param)
        if not values:
            return None

        destination = values[0].strip()
        if not destination.lower().startswith(("http://", "https://")):
            return None
        return destination


def _p(name: str, platform: str, regex: str, param: str | None = None) -> RedirectPattern:
    return RedirectPattern(
        name=name,
        platform=platform,
        pattern=re.compile(regex, re.IGNORECASE),
        destination_param=param,
    )


REDIRECT_PATTERNS: tuple[RedirectPattern, ...] = (
    # Substack
    _p("Substack redirect with uri", "substack", r"^https?://substack\.com/redirect/.*[?&]uri=", "uri"),
    _p("Substack email (mg)", "substack", r"^https?://email\.mg\d?\.substack\.com/c/"),
    _p("Substack redirect", "substack", r"^https?://substack\.com/redirect/"),
    _p("Substack publication redirect", "substack", r"^https?://[^./]+\.substack\.com/redirect/"),
    # Beehiiv
    _p("Beehiiv", "beehiiv", r"^https?://link\.mail\.beehiiv\.com/"),
    _p("Beehiiv clicks", "beehiiv", r"^https?://[^./]+\.beehiiv\.com/clicks/"),
    # ConvertKit
    _p("ConvertKit", "convertkit", r"^https?://click\.convertkit-mail\d?\.com/"),
    # Mailchimp
    _p("Mailchimp list-manage with url", "mailchimp", r"^https?://(?:[^./]+\.)+list-manage\.com/track/click\?.*\burl=", "url"),
    _p("Mailchimp click", "mailchimp", r"^https?://click\.mailchimp\.com/"),
    _p("Mailchimp list-manage", "mailchimp", r"^https?://(?:[^./]+\.)+list-manage\.com/track/click"),
    # Buttondown
    _p("Buttondown", "buttondown", r"^https?://links\.buttondown\.email/"),
    _p("Buttondown redirect", "buttondown", r"^https?://buttondown\.email/redirect/"),
    # Campaign Monitor
    _p("Campaign Monitor", "campaign_monitor", r"^https?://link\.mail\.campaignmonitor\.com/"),
    _p("Campaign Monitor createsend", "campaign_monitor", r"^https?://[^./]+\.createsend\d?\.com/t/"),
    # Postmark
    _p("Postmark", "postmark", r"^https?://click\.pstmrk\.it/"),
    # SendGrid
    _p("SendGrid", "sendgrid", r"^https?://u\d+\.ct\.sendgrid\.net/"),
    # Other email service providers
    _p("Constant Contact", "constant_contact", r"^https?://click\.em\.constantcontact\.com/"),
    _p("ActiveCampaign", "activecampaign", r"^https?://[^./]+\.activehosted\.com/lt\.php"),
    _p("Drip", "drip", r"^https?://click\.dripemail\d?\.com/"),
    # Generic email click tracking
    _p("Generic email links", "email", r"^https?://links\.e\.[^/]+/"),
    _p("Generic email click", "email", r"^https?://click\.e\.[^/]+/"),
    _p("Generic email redirect", "email", r"^https?://email\.[^/]+/c/"),
    # URL shorteners
    _p("bit.ly", "bitly", r"^https?://bit\.ly/"),
    _p("j.mp", "bitly", r"^https?://j\.mp/"),
    _p("t.co", "twitter", r"^https?://t\.co/"),
    _p("TinyURL", "tinyurl", r"^https?://tinyurl\.com/"),
    _p("ow.ly", "hootsuite", r"^https?://ow\.ly/"),
    _p("is.gd", "isgd", r"^https?://is\.gd/"),
    _p("goo.gl", "google", r"^https?://goo\.gl/"),
    _p("buff.ly", "buffer", r"^https?://buff\.ly/"),
    _p("spr.ly", "sprinklr", r"^https?://spr\.ly/"),
    _p("lnkd.in", "linkedin", r"^https?://lnkd\.in/"),
    _p("rb.gy", "rebrandly", r"^https?://rb\.gy/"),
    _p("cutt.ly", "cuttly", r"^https?://cutt\.ly/"),
    _p("shorturl.at", "shorturl", r"^https?://shorturl\.at/"),
    # Social link interstitials
    _p("Facebook external link", "facebook", r"^https?://l\.facebook\.com/l\.php", "u"),
    _p("LinkedIn redirect", "linkedin", r"^https?://(www\.)?linkedin\.com/redir/"),
    # News aggregators
    _p("Google News article", "google_news", r"^https?://news\.google\.com/rss/articles/"),
    _p("Google feedproxy", "google", r"^https?://feedproxy\.google\.com/"),
)


def match_redirect_pattern(url: str) -> RedirectPattern | None:
    """Return the first registry entry matching ``url``."""
    for pattern in REDIRECT_PATTERNS:
        if pattern.matches(url):
            return pattern
    return None


def try_extract_destination(url: str) -> str | None:
    """Extract an embedded destination without making a request.

    Returns None for unknown URLs and for known wrappers (such as bit.ly)
    that have to be followed over HTTP.
    """
    pattern = match_redirect_pattern(url)
    if pattern is None:
        return None
    return pattern.extract(url)


def is_known_redirect(url: str) -> bool:
    """Check if ``url`` is a known wrapper that needs resolution."""
    return match_redirect_pattern(url) is not None
