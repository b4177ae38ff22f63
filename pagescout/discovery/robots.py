"""Robots.txt parsing and crawl policy resolution."""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

import httpx

from pagescout.discovery.url_utils import MalformedURLError, get_origin, try_canonicalize

logger = logging.getLogger(__name__)

ROBOTS_TIMEOUT = 10.0


@dataclass
class RobotsRules:
    """Parsed robots.txt rules for the wildcard user agent."""

    allowed: list[str]
    disallowed: list[str]
    sitemaps: list[str]
    crawl_delay: Optional[float]


def parse_robots_content(content: str) -> RobotsRules:
    """Parse robots.txt content.

    Only groups addressed to ``User-agent: *`` contribute allow and
    disallow rules. Sitemap declarations are global.

    Args:
        content: Raw robots.txt content.

    Returns:
        Parsed rules.
    """
    allowed: list[str] = []
    disallowed: list[str] = []
    sitemaps: list[str] = []
    crawl_delay: Optional[float] = None

    current_group_applies = False
    reading_agents = False

    for line in content.splitlines():
        line = line.split("#", 1)[0].strip()

        if not line or ":" not in line:
            continue

        directive, value = line.split(":", 1)
        directive = directive.strip().lower()
        value = value.strip()

        if directive == "user-agent":
            # Consecutive User-agent lines share one group
            if not reading_agents:
                current_group_applies = False
            reading_agents = True
            if value == "*":
                current_group_applies = True
            continue

        reading_agents = False

        if directive == "sitemap":
            if value:
                sitemaps.append(value)

        elif current_group_applies:
            if directive == "allow":
                if value:
                    allowed.append(value)
            elif directive == "disallow":
                if value:
                    disallowed.append(value)
            elif directive == "crawl-delay":
                try:
                    delay = float(value)
                except ValueError:
                    continue
                if math.isfinite(delay) and delay >= 0:
                    crawl_delay = delay

    return RobotsRules(
        allowed=allowed,
        disallowed=disallowed,
        sitemaps=sitemaps,
        crawl_delay=crawl_delay,
    )


def _pattern_to_regex(pattern: str) -> re.Pattern[str]:
    anchored = pattern.endswith("$")
    if anchored:
        pattern = pattern[:-1]
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(regex + ("$" if anchored else ""))


def _path_matches(path: str, pattern: str) -> bool:
    """Check if a path matches a robots.txt pattern.

    Supports wildcards (*) and end-of-string anchors ($).
    """
    if not pattern:
        return False
    if "*" not in pattern and not pattern.endswith("$"):
        return path.startswith(pattern)
    return _pattern_to_regex(pattern).match(path) is not None


def is_path_allowed(path: str, rules: RobotsRules) -> bool:
    """Check if a path is allowed by robots.txt rules.

    The longest matching rule wins; Allow wins a tie.

    Args:
        path: URL path (with query string, if any).
        rules: Parsed robots rules.

    Returns:
        True if path is allowed.
    """
    best_allow = max((len(p) for p in rules.allowed if _path_matches(path, p)), default=-1)
    best_disallow = max(
        (len(p) for p in rules.disallowed if _path_matches(path, p)), default=-1
    )

    if best_disallow < 0:
        return True
    return best_allow >= best_disallow


@dataclass(frozen=True)
class RobotsPolicy:
    """Crawl policy for one site: an allow predicate plus sitemap hints."""

    rules: Optional[RobotsRules] = None
    sitemaps: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def allow_all(cls) -> "RobotsPolicy":
        """Permissive policy used when robots.txt is unavailable."""
        return cls()

    @classmethod
    def from_content(cls, content: str) -> "RobotsPolicy":
        """Build a policy from robots.txt text."""
        rules = parse_robots_content(content)
        sitemaps: dict[str, None] = {}
        for declared in rules.sitemaps:
            canonical = try_canonicalize(declared)
            if canonical is None:
                logger.debug("Ignoring malformed sitemap declaration %r", declared)
                continue
            sitemaps.setdefault(canonical, None)
        return cls(rules=rules, sitemaps=tuple(sitemaps))

    @property
    def crawl_delay(self) -> Optional[float]:
        """Seconds the site asks crawlers to wait between requests, if any."""
        return self.rules.crawl_delay if self.rules else None

    def allows(self, url: str) -> bool:
        """Check whether the wildcard user agent may fetch ``url``."""
        if self.rules is None:
            return True
        try:
            parsed = urlparse(url)
        except ValueError:
            return True
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        return is_path_allowed(path, self.rules)


async def resolve_robots(
    base_url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = ROBOTS_TIMEOUT,
) -> RobotsPolicy:
    """Fetch and parse robots.txt for the origin of ``base_url``.

    Any failure (bad base URL, network error, non-2xx status) yields the
    permissive default policy; robots resolution never blocks discovery.

    Args:
        base_url: Any URL on the target site.
        client: Optional shared HTTP client.
        timeout: Request timeout in seconds.

    Returns:
        Robots policy for the site.
    """
    try:
        robots_url = f"{get_origin(base_url)}/robots.txt"
    except MalformedURLError:
        return RobotsPolicy.allow_all()

    try:
        if client is None:
            async with httpx.AsyncClient(follow_redirects=True) as own_client:
                response = await own_client.get(robots_url, timeout=timeout)
        else:
            response = await client.get(robots_url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.info("robots.txt unavailable at %s (%s); allowing all", robots_url, e)
        return RobotsPolicy.allow_all()

    if not response.is_success:
        logger.info(
            "robots.txt at %s returned %d; allowing all", robots_url, response.status_code
        )
        return RobotsPolicy.allow_all()

    policy = RobotsPolicy.from_content(response.text)
    logger.debug(
        "Loaded robots.txt from %s (%d sitemap(s))", robots_url, len(policy.sitemaps)
    )
    return policy
