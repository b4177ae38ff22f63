"""Discovery module - sitemap harvesting and site crawling."""

from pagescout.discovery.crawler import CrawlTask, SiteCrawler, crawl_site
from pagescout.discovery.orchestrator import DiscoveryResult, discover
from pagescout.discovery.robots import RobotsPolicy, resolve_robots
from pagescout.discovery.sitemap import SitemapHarvester, discover_sitemaps
from pagescout.discovery.url_utils import (
    MalformedURLError,
    canonicalize,
    is_likely_html,
    is_same_host,
)

__all__ = [
    "canonicalize",
    "is_same_host",
    "is_likely_html",
    "MalformedURLError",
    "RobotsPolicy",
    "resolve_robots",
    "SitemapHarvester",
    "discover_sitemaps",
    "CrawlTask",
    "SiteCrawler",
    "crawl_site",
    "DiscoveryResult",
    "discover",
]
