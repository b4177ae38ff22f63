"""Bounded breadth-first crawl of a single site."""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from pagescout.discovery.navigator import NavigationError, NavigationResult, Navigator
from pagescout.discovery.robots import RobotsPolicy
from pagescout.discovery.url_utils import (
    canonicalize,
    is_likely_html,
    is_same_host,
    to_absolute_url,
    try_canonicalize,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrawlTask:
    """A page waiting to be crawled."""

    url: str
    depth: int = 0


class SiteCrawler:
    """Crawls same-host pages with a fixed-size worker pool.

    Tasks are pulled from a FIFO frontier in batches of ``concurrency``.
    Each batch runs concurrently, then the crawler pauses for
    ``batch_delay`` seconds before pulling the next one. Links found
    while a batch runs join the same queue, so pages are not strictly
    processed level by level. A URL enters the queue at most once.

    The visited set is the crawl's only output. Checking and inserting
    into it happens under one lock, so a URL is claimed (and navigated)
    at most once however many workers discover it.
    """

    def __init__(
        self,
        navigator: Navigator,
        *,
        max_pages: int = 500,
        max_depth: int = 4,
        concurrency: int = 5,
        robots: Optional[RobotsPolicy] = None,
        respect_robots: bool = True,
        timeout: float = 20.0,
        batch_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the crawler.

        Args:
            navigator: Page loading strategy.
            max_pages: Upper bound on the visited set.
            max_depth: Pages at this depth are recorded but not loaded.
            concurrency: Maximum pages loading at once.
            robots: Robots policy for the site.
            respect_robots: Skip URLs the robots policy disallows.
            timeout: Per-page timeout in seconds.
            batch_delay: Pause between batches in seconds. When robots.txt
                         is respected, its Crawl-delay is the minimum pause.
            sleep: Coroutine used for the pause.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.navigator = navigator
        self.max_pages = max_pages
        self.max_depth = max_depth
        self.concurrency = concurrency
        self.robots = robots or RobotsPolicy.allow_all()
        self.respect_robots = respect_robots
        self.timeout = timeout
        self.batch_delay = batch_delay
        if respect_robots and self.robots.crawl_delay is not None:
            self.batch_delay = max(batch_delay, self.robots.crawl_delay)
        self._sleep = sleep

        self.visited: dict[str, None] = {}
        self.rejected: set[str] = set()
        self.errors: dict[str, str] = {}
        self._queue: deque[CrawlTask] = deque()
        self._queued: set[str] = set()
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(concurrency)

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def _budget_left(self) -> bool:
        return len(self.visited) < self.max_pages

    async def _claim(self, task: CrawlTask) -> bool:
        """Decide whether a task is new and admissible, marking it visited."""
        async with self._lock:
            if task.url in self.visited or task.url in self.rejected:
                return False

            if not is_likely_html(task.url):
                self.rejected.add(task.url)
                return False

            if self.respect_robots and not self.robots.allows(task.url):
                logger.debug("robots.txt disallows %s", task.url)
                self.rejected.add(task.url)
                return False

            if not self._budget_left():
                return False

            self.visited[task.url] = None
            return True

    def _candidate_links(self, task: CrawlTask, result: NavigationResult) -> list[str]:
        page_url = result.url or task.url
        candidates: dict[str, None] = {}

        for href in result.links:
            absolute = to_absolute_url(page_url, href)
            if absolute is None:
                continue
            canonical = try_canonicalize(absolute)
            if canonical is None:
                continue
            if is_same_host(task.url, canonical) and is_likely_html(canonical):
                candidates.setdefault(canonical, None)

        return list(candidates)

    async def _process(self, task: CrawlTask) -> None:
        if not await self._claim(task):
            return
        if task.depth >= self.max_depth:
            return

        async with self._semaphore:
            try:
                result = await self.navigator.navigate(task.url, self.timeout)
            except NavigationError as e:
                logger.warning("Skipping %s: %s", task.url, e)
                self.errors[task.url] = str(e)
                return
            except Exception as e:
                # One broken page must not abort the whole crawl
                logger.exception("Unexpected error crawling %s", task.url)
                self.errors[task.url] = str(e) or type(e).__name__
                return

        links = self._candidate_links(task, result)
        logger.debug("Crawled %s: found %d link(s)", task.url, len(links))

        async with self._lock:
            for link in links:
                if link not in self._queued:
                    self._queued.add(link)
                    self._queue.append(CrawlTask(link, task.depth + 1))

    async def crawl(self, seed_url: str) -> list[str]:
        """Crawl from ``seed_url`` until the frontier empties or the page budget is spent.

        Returns:
            Canonical URLs of every visited page, in visit order.

        Raises:
            MalformedURLError: If the seed URL is not an absolute URL.
        """
        seed = canonicalize(seed_url)
        self._queued.add(seed)
        self._queue.append(CrawlTask(seed, 0))

        logger.info(
            "Starting crawl at %s (max_pages=%d, max_depth=%d, concurrency=%d)",
            seed,
            self.max_pages,
            self.max_depth,
            self.concurrency,
        )

        while self._queue and self._budget_left():
            batch = [self._queue.popleft() for _ in range(min(self.concurrency, len(self._queue)))]
            await asyncio.gather(*(self._process(task) for task in batch))

            logger.info("Visited: %d | Queue: %d", len(self.visited), len(self._queue))

            if self._queue and self._budget_left() and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        return list(self.visited)


async def crawl_site(
    seed_url: str,
    navigator: Navigator,
    *,
    max_pages: int = 500,
    max_depth: int = 4,
    concurrency: int = 5,
    robots: Optional[RobotsPolicy] = None,
    respect_robots: bool = True,
    timeout: float = 20.0,
    batch_delay: float = 1.0,
) -> list[str]:
    """Crawl a site and return the visited URLs.

    Args:
        seed_url: Where the crawl starts (depth 0).
        navigator: Page loading strategy.
        max_pages: Upper bound on visited pages.
        max_depth: Link depth limit.
        concurrency: Maximum pages loading at once.
        robots: Robots policy for the site.
        respect_robots: Skip URLs the robots policy disallows.
        timeout: Per-page timeout in seconds.
        batch_delay: Pause between batches in seconds.

    Returns:
        Canonical URLs of every visited page.
    """
    crawler = SiteCrawler(
        navigator,
        max_pages=max_pages,
        max_depth=max_depth,
        concurrency=concurrency,
        robots=robots,
        respect_robots=respect_robots,
        timeout=timeout,
        batch_delay=batch_delay,
    )
    return await crawler.crawl(seed_url)
