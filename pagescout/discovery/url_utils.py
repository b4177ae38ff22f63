"""URL utilities - canonicalization, host equivalence, content-type guessing."""

from typing import Optional
from urllib.parse import ParseResult, parse_qsl, urlencode, urljoin, urlparse, urlunparse


class MalformedURLError(ValueError):
    """Raised when a string cannot be parsed as an absolute URL."""

    pass


LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})

DEFAULT_PORTS = {"http": 80, "https": 443}

HTML_EXTENSIONS = frozenset(
    {
        "",
        ".html",
        ".htm",
        ".xhtml",
        ".php",
        ".php5",
        ".asp",
        ".aspx",
        ".jsp",
        ".cfm",
    }
)

NON_HTML_EXTENSIONS = frozenset(
    {
        # Documents
        ".pdf",
        ".doc",
        ".docx",
        ".ppt",
        ".pptx",
        ".xls",
        ".xlsx",
        ".ics",
        ".ps",
        ".eps",
        # Images
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".bmp",
        ".svg",
        ".webp",
        ".ico",
        ".avif",
        # Media
        ".mp4",
        ".webm",
        ".mov",
        ".mkv",
        ".mp3",
        ".wav",
        ".flac",
        ".avi",
        ".ts",
        ".mpeg",
        ".mpg",
        ".flv",
        ".m4v",
        # Archives and binaries
        ".zip",
        ".rar",
        ".7z",
        ".gz",
        ".tgz",
        ".tar",
        ".bz2",
        ".apk",
        ".dmg",
        ".exe",
        ".bin",
        ".iso",
        # Data and feeds
        ".json",
        ".xml",
        ".rss",
        ".atom",
        ".csv",
        ".txt",
        # Fonts
        ".woff",
        ".woff2",
        ".ttf",
        ".otf",
        ".eot",
        # Stylesheets
        ".css",
        ".scss",
        ".less",
    }
)


def _parse_absolute(raw: str) -> ParseResult:
    """Parse an absolute URL or raise MalformedURLError."""
    if not isinstance(raw, str):
        raise MalformedURLError(f"URL must be a string, got {type(raw).__name__}")

    try:
        parsed = urlparse(raw.strip())
        # Accessing .port validates it
        parsed.port
    except ValueError as e:
        raise MalformedURLError(f"Cannot parse URL {raw!r}: {e}") from e

    if not parsed.scheme or not parsed.hostname:
        raise MalformedURLError(f"Not an absolute URL: {raw!r}")

    return parsed


def canonicalize(raw: str) -> str:
    """Produce the canonical form of a URL.

    - Lowercases the scheme and host
    - Drops the port when it is the default for the scheme
    - Removes the fragment
    - Removes trailing slashes from the path (except root)
    - Sorts query parameters by key, keeping the order of repeated keys

    Canonical URLs are the only deduplication key used during discovery,
    and canonicalizing a canonical URL returns it unchanged.

    Args:
        raw: URL to canonicalize.

    Returns:
        Canonical URL.

    Raises:
        MalformedURLError: If the URL is not a parseable absolute URL.
    """
    parsed = _parse_absolute(raw)

    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    if parsed.port is not None and parsed.port == DEFAULT_PORTS.get(scheme):
        netloc = netloc.rsplit(":", 1)[0]
    elif netloc.endswith(":"):
        netloc = netloc[:-1]

    path = parsed.path
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/")
    if not path:
        path = "/"

    query = ""
    if parsed.query:
        params = parse_qsl(parsed.query, keep_blank_values=True)
        # sorted() is stable, so values of a repeated key keep their order
        query = urlencode(sorted(params, key=lambda item: item[0]))

    return urlunparse(
        ParseResult(
            scheme=scheme,
            netloc=netloc,
            path=path,
            params=parsed.params,
            query=query,
            fragment="",
        )
    )


def try_canonicalize(raw: str) -> Optional[str]:
    """Canonicalize a URL, returning None instead of raising."""
    try:
        return canonicalize(raw)
    except MalformedURLError:
        return None


def deduplicate_urls(urls: list[str]) -> list[str]:
    """Canonicalize and deduplicate URLs, keeping first-seen order.

    Malformed entries are dropped.

    Args:
        urls: List of URLs.

    Returns:
        Deduplicated list of canonical URLs.
    """
    unique: dict[str, None] = {}

    for url in urls:
        canonical = try_canonicalize(url)
        if canonical is not None:
            unique.setdefault(canonical, None)

    return list(unique)


def is_local_host(url: str) -> bool:
    """Check if a URL points at a loopback host name."""
    try:
        return (urlparse(url).hostname or "") in LOCAL_HOSTS
    except ValueError:
        return False


def is_same_host(url1: str, url2: str) -> bool:
    """Check if two URLs belong to the same site.

    Loopback hosts (localhost, 127.0.0.1) are interchangeable regardless
    of scheme and port, so local multi-service setups are not
    over-filtered. Any other pair must share scheme, host and port.

    Args:
        url1: First URL.
        url2: Second URL.

    Returns:
        True if both URLs belong to the same site.
    """
    try:
        parsed1 = _parse_absolute(url1)
        parsed2 = _parse_absolute(url2)
    except MalformedURLError:
        return False

    host1 = parsed1.hostname or ""
    host2 = parsed2.hostname or ""

    if host1 in LOCAL_HOSTS and host2 in LOCAL_HOSTS:
        return True

    scheme1 = parsed1.scheme.lower()
    scheme2 = parsed2.scheme.lower()
    port1 = parsed1.port or DEFAULT_PORTS.get(scheme1)
    port2 = parsed2.port or DEFAULT_PORTS.get(scheme2)

    return scheme1 == scheme2 and host1 == host2 and port1 == port2


def _extension(path: str) -> str:
    if not path or path.endswith("/"):
        return ""
    segment = path.rsplit("/", 1)[-1]
    index = segment.rfind(".")
    if index == -1:
        return ""
    return segment[index:].lower()


def is_likely_html(url: str) -> bool:
    """Guess whether a URL serves an HTML page from its extension.

    Unknown extensions count as HTML because many server routes have no
    extension or an unusual one.

    Args:
        url: URL to classify.

    Returns:
        True if the URL probably serves HTML.
    """
    try:
        parsed = _parse_absolute(url)
    except MalformedURLError:
        return False

    ext = _extension(parsed.path.lower())
    if ext in HTML_EXTENSIONS:
        return True
    if ext in NON_HTML_EXTENSIONS:
        return False
    return True


def is_http_url(url: str) -> bool:
    """Check if a string is a valid HTTP/HTTPS URL.

    Args:
        url: String to validate.

    Returns:
        True if valid URL.
    """
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)
    except (ValueError, TypeError, AttributeError):
        return False


def to_absolute_url(base: str, href: str) -> Optional[str]:
    """Resolve an href against a base URL.

    Args:
        base: URL of the document containing the href.
        href: Raw href value.

    Returns:
        Absolute HTTP(S) URL, or None for unusable hrefs
        (mailto:, javascript:, malformed).
    """
    if not href:
        return None
    try:
        absolute = urljoin(base, href.strip())
    except ValueError:
        return None
    return absolute if is_http_url(absolute) else None


def get_origin(url: str) -> str:
    """Get the origin (scheme + host[:port]) of a URL.

    Raises:
        MalformedURLError: If the URL is not absolute.
    """
    parsed = _parse_absolute(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def rebase_to_origin(url: str, base: str) -> str:
    """Move a URL onto the scheme and host:port of ``base``.

    Used to point sitemap entries written for a production host at a
    local copy of the site. Malformed input is returned unchanged.
    """
    try:
        parsed = _parse_absolute(url)
        parsed_base = _parse_absolute(base)
    except MalformedURLError:
        return url
    return urlunparse(parsed._replace(scheme=parsed_base.scheme, netloc=parsed_base.netloc))
