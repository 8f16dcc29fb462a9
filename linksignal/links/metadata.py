"""
Best-effort page metadata extraction.

Reads OpenGraph/Twitter card tags, falling back to ``<title>`` and the
plain ``description``/``author`` meta tags. Only the head of the document
matters, so at most ``metadata_max_bytes`` of the body is read.

Failures of any kind yield empty metadata; a missing title never blocks
ingestion.
"""

import asyncio
import html
import logging
from datetime import datetime, timezone

import httpx
from bs4 import BeautifulSoup

from linksignal.config.settings import get_settings
from linksignal.links.config import IngestionConfig
from linksignal.links.schemas import LinkMetadata

logger = logging.getLogger(__name__)

_TITLE_KEYS = ("og:title", "twitter:title")
_DESCRIPTION_KEYS = ("og:description", "twitter:description", "description")
_IMAGE_KEYS = ("og:image", "og:image:url", "twitter:image", "twitter:image:src")
_AUTHOR_KEYS = ("author", "article:author", "twitter:creator")
_PUBLISHED_KEYS = ("article:published_time", "og:published_time", "date", "pubdate")

_MAX_TITLE_LENGTH = 500
_MAX_DESCRIPTION_LENGTH = 2000


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _clean(value: str | None, limit: int) -> str | None:
    if not value:
        return None
    text = " ".join(html.unescape(value).split())
    return text[:limit] or None


def parse_metadata(document: str, base_url: str | None = None) -> LinkMetadata:
    """Extract metadata from an HTML document.

    Args:
        document: Raw HTML (a truncated prefix is fine)
        base_url: Page URL used to absolutize a relative image URL

    Returns:
        LinkMetadata, possibly empty
    """
    soup = BeautifulSoup(document, "html.parser")

    meta: dict[str, str] = {}
    for tag in soup.find_all("meta"):
        key = (tag.get("property") or tag.get("name") or tag.get("itemprop") or "").strip().lower()
        content = tag.get("content")
        if key and content and key not in meta:
            meta[key] = content

    def first(keys: tuple[str, ...]) -> str | None:
        for key in keys:
            if meta.get(key):
                return meta[key]
        return None

    title = first(_TITLE_KEYS)
    if not title and soup.title and soup.title.string:
        title = soup.title.string

    image_url = first(_IMAGE_KEYS)
    if image_url and base_url:
        image_url = str(httpx.URL(base_url).join(image_url.strip()))

    return LinkMetadata(
        title=_clean(title, _MAX_TITLE_LENGTH),
        description=_clean(first(_DESCRIPTION_KEYS), _MAX_DESCRIPTION_LENGTH),
        image_url=image_url,
        author=_clean(first(_AUTHOR_KEYS), 200),
        published_at=_parse_datetime(first(_PUBLISHED_KEYS)),
    )


class MetadataFetcher:
    """
    Fetches and parses page metadata with a hard timeout.

    Usage:
        async with MetadataFetcher() as fetcher:
            metadata = await fetcher.fetch("https://example.com/article")
    """

    def __init__(
        self,
        config: IngestionConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._config = config or IngestionConfig()
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "MetadataFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.metadata_timeout_seconds,
                follow_redirects=True,
                headers={
                    "User-Agent": get_settings().user_agent,
                    "Accept": "text/html,application/xhtml+xml",
                },
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> LinkMetadata:
        """Fetch metadata for ``url``. Never raises."""
        try:
            document = await asyncio.wait_for(
                self._read_head(url),
                timeout=self._config.metadata_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.debug(f"Metadata fetch timed out for {url[:100]}")
            return LinkMetadata()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug(f"Metadata fetch failed for {url[:100]}: {e}")
            return LinkMetadata()

        if not document:
            return LinkMetadata()

        try:
            return parse_metadata(document, base_url=url)
        except Exception as e:
            logger.debug(f"Metadata parse failed for {url[:100]}: {e}")
            return LinkMetadata()

    async def _read_head(self, url: str) -> str | None:
        client = self._ensure_client()
        async with client.stream("GET", url) as response:
            if response.status_code >= 400:
                return None
            content_type = response.headers.get("content-type", "")
            if content_type and "html" not in content_type:
                return None

            chunks: list[bytes] = []
            size = 0
            async for chunk in response.aiter_bytes():
                chunks.append(chunk)
                size += len(chunk)
                if size >= self._config.metadata_max_bytes:
                    break

            encoding = response.encoding or "utf-8"
            return b"".join(chunks).decode(encoding, errors="replace")
