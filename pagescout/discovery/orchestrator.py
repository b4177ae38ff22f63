"""Discovery orchestration - sitemaps first, then a crawl, merged into one list."""

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from pagescout.config import ConfigurationError, DiscoveryConfig
from pagescout.discovery.crawler import SiteCrawler
from pagescout.discovery.navigator import Navigator, create_navigator
from pagescout.discovery.robots import RobotsPolicy, resolve_robots
from pagescout.discovery.sitemap import SitemapHarvester, discover_sitemaps
from pagescout.discovery.url_utils import (
    MalformedURLError,
    canonicalize,
    deduplicate_urls,
    is_http_url,
)

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    """Outcome of one discovery run."""

    urls: list[str]
    sitemaps: list[str] = field(default_factory=list)
    sitemap_urls: list[str] = field(default_factory=list)
    crawled_urls: list[str] = field(default_factory=list)
    failed_sitemaps: list[str] = field(default_factory=list)
    crawl_errors: dict[str, str] = field(default_factory=dict)


def merge_url_lists(*url_lists: list[str]) -> list[str]:
    """Union URL lists into canonical URLs, keeping first-seen order."""
    return deduplicate_urls([url for urls in url_lists for url in urls])


def _validate_base(base_url: str) -> str:
    if not is_http_url(base_url):
        raise ConfigurationError(f"Base URL must be an absolute http(s) URL, got {base_url!r}")
    try:
        return canonicalize(base_url)
    except MalformedURLError as e:
        raise ConfigurationError(f"Invalid base URL {base_url!r}: {e}") from e


async def discover(
    config: DiscoveryConfig,
    *,
    client: Optional[httpx.AsyncClient] = None,
    navigator: Optional[Navigator] = None,
) -> DiscoveryResult:
    """Discover the pages of a site.

    Steps:
        1. Resolve robots.txt and build the sitemap list.
        2. Harvest every sitemap.
        3. Crawl from the base URL.
        4. Merge, sitemap URLs first.

    A bad sitemap or page only shrinks the result; it never aborts the run.

    Args:
        config: Discovery settings, including the base URL.
        client: Optional HTTP client (one is created otherwise).
        navigator: Optional page navigator (built from ``config.renderer``
                   otherwise).

    Returns:
        Discovery result.

    Raises:
        ConfigurationError: If the base URL is invalid.
    """
    base = _validate_base(config.base_url)

    if client is None:
        async with httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            follow_redirects=True,
        ) as own_client:
            return await _discover(config, base, own_client, navigator)
    return await _discover(config, base, client, navigator)


async def _discover(
    config: DiscoveryConfig,
    base: str,
    client: httpx.AsyncClient,
    navigator: Optional[Navigator],
) -> DiscoveryResult:
    robots = await resolve_robots(base, client=client, timeout=config.robots_timeout)

    logger.info("Discovering sitemaps...")
    sitemaps = discover_sitemaps(base, robots, config.sitemap_url)
    logger.info("Sitemaps: %s", ", ".join(sitemaps) or "(none found)")

    harvester = SitemapHarvester(
        client,
        base,
        max_attempts=config.sitemap_max_attempts,
        timeout=config.sitemap_timeout,
        html_only=config.sitemap_html_only,
    )
    sitemap_urls = await harvester.harvest_all(sitemaps)
    logger.info("Found %d URL(s) in sitemaps", len(sitemap_urls))

    logger.info("Crawling site for additional internal links...")
    if navigator is None:
        async with create_navigator(config.renderer, client, headless=config.headless) as owned:
            crawler = _build_crawler(config, owned, robots)
            crawled_urls = await crawler.crawl(base)
    else:
        crawler = _build_crawler(config, navigator, robots)
        crawled_urls = await crawler.crawl(base)

    urls = merge_url_lists(sitemap_urls, crawled_urls)

    if harvester.failed_documents:
        logger.warning("%d sitemap(s) could not be read", len(harvester.failed_documents))
    if crawler.errors:
        logger.warning("%d page(s) failed to load during the crawl", len(crawler.errors))
    logger.info(
        "Discovered %d URL(s) (%d from sitemaps, %d from crawl)",
        len(urls),
        len(sitemap_urls),
        len(crawled_urls),
    )

    return DiscoveryResult(
        urls=urls,
        sitemaps=sitemaps,
        sitemap_urls=sitemap_urls,
        crawled_urls=crawled_urls,
        failed_sitemaps=list(harvester.failed_documents),
        crawl_errors=dict(crawler.errors),
    )


def _build_crawler(
    config: DiscoveryConfig, navigator: Navigator, robots: RobotsPolicy
) -> SiteCrawler:
    return SiteCrawler(
        navigator,
        max_pages=config.max_pages,
        max_depth=config.max_depth,
        concurrency=config.concurrency,
        robots=robots,
        respect_robots=config.respect_robots,
        timeout=config.timeout,
        batch_delay=config.batch_delay,
    )
