"""Sitemap fetching, parsing and recursive harvesting."""

import asyncio
import gzip
import logging
import math
import re
import time
import xml.etree.ElementTree as ET
import zlib
from dataclasses import dataclass, field
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Optional

import httpx

from pagescout.discovery.robots import RobotsPolicy
from pagescout.discovery.url_utils import (
    deduplicate_urls,
    get_origin,
    is_likely_html,
    is_local_host,
    is_same_host,
    rebase_to_origin,
    to_absolute_url,
    try_canonicalize,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 4
MAX_BACKOFF = 30.0
BASE_BACKOFF = 1.0
SITEMAP_TIMEOUT = 20.0
RETRYABLE_STATUSES = frozenset({429, 503})

SITEMAP_HEADERS = {
    "Accept": "application/xml, text/xml;q=0.9, application/xhtml+xml;q=0.8, */*;q=0.7",
    "Accept-Encoding": "gzip, deflate",
}

_XML_SNIFF = re.compile(r"<\s*(\?xml|urlset|sitemapindex)[\s>]", re.IGNORECASE)
_GZIP_MAGIC = b"\x1f\x8b"


class SitemapFetchError(Exception):
    """Exception raised when a sitemap document cannot be fetched."""

    pass


class SitemapParseError(Exception):
    """Exception raised for malformed sitemap XML."""

    pass


@dataclass
class SitemapDocument:
    """Locations found in one sitemap document."""

    page_urls: list[str] = field(default_factory=list)
    sitemap_urls: list[str] = field(default_factory=list)


def backoff_delay(attempt: int) -> float:
    """Exponential backoff in seconds for a 1-based attempt number."""
    return min(MAX_BACKOFF, BASE_BACKOFF * 2**attempt)


def parse_retry_after(value: Optional[str], now: float) -> Optional[float]:
    """Convert a Retry-After header to a delay in seconds.

    Args:
        value: Header value, either delta-seconds or an HTTP date.
        now: Current UNIX timestamp, used for HTTP dates.

    Returns:
        Delay in seconds (never negative), or None if absent or unparseable.
    """
    if not value or not value.strip():
        return None
    value = value.strip()

    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(0.0, seconds) if math.isfinite(seconds) else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, when.timestamp() - now)


def looks_like_sitemap(body: str, content_type: str) -> bool:
    """Guard against HTML error pages served with a 2xx status."""
    content_type = content_type.lower()
    if _XML_SNIFF.search(body):
        return True
    return "xml" in content_type or "text/plain" in content_type


def _decode_body(response: httpx.Response) -> str:
    content = response.content
    if content.startswith(_GZIP_MAGIC):
        # .xml.gz files are often served without Content-Encoding
        try:
            return gzip.decompress(content).decode("utf-8", errors="replace")
        except (OSError, EOFError, zlib.error):
            logger.debug("Body of %s has a gzip header but does not decompress", response.url)
    return response.text


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()


def parse_sitemap_document(xml: str, base_url: str) -> SitemapDocument:
    """Parse a sitemap ``urlset`` or ``sitemapindex``.

    Namespaces are ignored. Every ``url/loc`` and ``sitemap/loc`` entry is
    collected and resolved against ``base_url``; entries that do not
    resolve to an HTTP(S) URL are dropped.

    Args:
        xml: Document body.
        base_url: URL used to resolve relative locations.

    Returns:
        Page and nested sitemap locations, in document order.

    Raises:
        SitemapParseError: If the body is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml.lstrip("\ufeff").strip())
    except ET.ParseError as e:
        raise SitemapParseError(str(e)) from e

    document = SitemapDocument()

    for element in root.iter():
        kind = _local_name(element.tag)
        if kind not in ("url", "sitemap"):
            continue

        loc = next((child.text for child in element if _local_name(child.tag) == "loc"), None)
        if not loc or not loc.strip():
            continue

        absolute = to_absolute_url(base_url, loc.strip())
        if absolute is None:
            continue

        if kind == "url":
            document.page_urls.append(absolute)
        else:
            document.sitemap_urls.append(absolute)

    return document


def discover_sitemaps(
    base_url: str,
    robots: RobotsPolicy,
    explicit: Optional[str] = None,
) -> list[str]:
    """Build the list of sitemaps to harvest.

    The conventional ``/sitemap.xml`` comes first, then sitemaps declared
    in robots.txt, then the explicitly requested one.

    Args:
        base_url: Base URL of the target.
        robots: Resolved robots policy.
        explicit: Optional sitemap URL supplied by the operator.

    Returns:
        Deduplicated canonical sitemap URLs.
    """
    candidates = [f"{get_origin(base_url)}/sitemap.xml", *robots.sitemaps]
    if explicit:
        resolved = to_absolute_url(base_url, explicit)
        if resolved is None:
            logger.warning("Ignoring malformed sitemap URL %r", explicit)
        else:
            candidates.append(resolved)

    return deduplicate_urls(candidates)


class SitemapHarvester:
    """Fetches sitemap documents and collects the page URLs they list.

    One harvester is used per discovery run. It remembers every sitemap
    it has visited, so nested indexes that reference each other (or
    themselves) are fetched only once.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        timeout: float = SITEMAP_TIMEOUT,
        html_only: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the harvester.

        Args:
            client: Shared HTTP client (redirects are followed).
            base_url: Base URL of the target; only same-host pages are kept.
            max_attempts: Fetch attempts per document.
            timeout: Per-request timeout in seconds.
            html_only: Also drop pages that do not look like HTML.
            sleep: Coroutine used for backoff delays.
            clock: Returns the current UNIX time, for Retry-After dates.
        """
        self.client = client
        self.base_url = base_url
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.html_only = html_only
        self.failed_documents: list[str] = []
        self._sleep = sleep
        self._clock = clock
        self._base_is_local = is_local_host(base_url)
        self._seen: set[str] = set()

    async def fetch_document(self, url: str) -> str:
        """Fetch a sitemap body, retrying transient failures.

        Raises:
            SitemapFetchError: If every attempt fails.
        """
        last_error = SitemapFetchError(f"Sitemap {url} was not fetched")

        for attempt in range(1, self.max_attempts + 1):
            delay = backoff_delay(attempt)

            try:
                response = await self.client.get(
                    url,
                    headers=SITEMAP_HEADERS,
                    timeout=self.timeout,
                    follow_redirects=True,
                )
            except httpx.HTTPError as e:
                last_error = SitemapFetchError(f"Error fetching sitemap {url}: {e}")
            else:
                if response.is_success:
                    body = _decode_body(response)
                    content_type = response.headers.get("content-type", "")
                    if looks_like_sitemap(body, content_type):
                        return body
                    last_error = SitemapFetchError(
                        f"Sitemap {url} does not look like XML "
                        f"(content-type={content_type or 'unknown'})"
                    )
                elif response.status_code in RETRYABLE_STATUSES:
                    retry_after = parse_retry_after(
                        response.headers.get("retry-after"), self._clock()
                    )
                    if retry_after is not None:
                        delay = retry_after
                    last_error = SitemapFetchError(
                        f"Sitemap request {url} returned {response.status_code}"
                    )
                else:
                    last_error = SitemapFetchError(
                        f"Failed to fetch sitemap {url}: "
                        f"{response.status_code} {response.reason_phrase}"
                    )

            if attempt < self.max_attempts:
                logger.warning(
                    "%s. Retrying in %.1fs (attempt %d/%d)",
                    last_error,
                    delay,
                    attempt,
                    self.max_attempts,
                )
                await self._sleep(delay)

        raise last_error

    def _localize(self, url: str) -> str:
        if self._base_is_local:
            return rebase_to_origin(url, self.base_url)
        return url

    def _keep_page(self, url: str) -> Optional[str]:
        canonical = try_canonicalize(self._localize(url))
        if canonical is None or not is_same_host(self.base_url, canonical):
            return None
        if self.html_only and not is_likely_html(canonical):
            return None
        return canonical

    async def _load(self, url: str) -> Optional[SitemapDocument]:
        try:
            body = await self.fetch_document(url)
        except SitemapFetchError as e:
            logger.warning("Skipping sitemap %s: %s", url, e)
            self.failed_documents.append(url)
            return None

        try:
            return parse_sitemap_document(body, url)
        except SitemapParseError as e:
            logger.warning("Invalid XML at %s, skipping: %s", url, e)
            self.failed_documents.append(url)
            return None

    async def harvest(self, sitemap_url: str) -> list[str]:
        """Collect page URLs from a sitemap and every sitemap it references.

        A failing document contributes nothing; harvesting continues
        with the rest of the tree.

        Args:
            sitemap_url: URL of a sitemap or sitemap index.

        Returns:
            Deduplicated canonical page URLs, in first-seen order.
        """
        found: dict[str, None] = {}
        stack = [self._localize(sitemap_url)]

        while stack:
            current = stack.pop()
            key = try_canonicalize(current)
            if key is None:
                logger.warning("Skipping malformed sitemap URL %r", current)
                self.failed_documents.append(current)
                continue
            if key in self._seen:
                logger.debug("Sitemap %s already harvested", current)
                continue
            self._seen.add(key)

            logger.info("Fetching sitemap: %s", current)
            document = await self._load(current)
            if document is None:
                continue

            before = len(found)
            for page_url in document.page_urls:
                canonical = self._keep_page(page_url)
                if canonical is not None:
                    found.setdefault(canonical, None)

            logger.info(
                "Parsed %d URL(s) and %d nested sitemap(s) from %s",
                len(found) - before,
                len(document.sitemap_urls),
                current,
            )

            # Reversed so nested sitemaps are visited in document order
            stack.extend(self._localize(u) for u in reversed(document.sitemap_urls))

        return list(found)

    async def harvest_all(self, sitemap_urls: list[str]) -> list[str]:
        """Harvest several sitemaps and union their page URLs."""
        harvested: list[str] = []
        for sitemap_url in sitemap_urls:
            harvested.extend(await self.harvest(sitemap_url))
        return deduplicate_urls(harvested)
