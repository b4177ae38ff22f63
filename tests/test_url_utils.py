"""Tests for URL utilities."""

import pytest

from pagescout.discovery.url_utils import (
    MalformedURLError,
    canonicalize,
    deduplicate_urls,
    get_origin,
    is_http_url,
    is_likely_html,
    is_same_host,
    rebase_to_origin,
    to_absolute_url,
    try_canonicalize,
)


class TestCanonicalize:
    """Tests for URL canonicalization."""

    def test_lowercase_scheme_and_host(self):
        """Test that scheme and host are lowercased but the path is not."""
        assert canonicalize("HTTP://EXAMPLE.COM/path") == "http://example.com/path"
        assert canonicalize("HTTPS://Example.Com/PATH") == "https://example.com/PATH"

    def test_remove_trailing_slash(self):
        """Test that trailing slashes are removed except for root."""
        assert canonicalize("http://example.com/path/") == "http://example.com/path"
        assert canonicalize("http://example.com/") == "http://example.com/"

    def test_empty_path_becomes_root(self):
        """Test that an empty path becomes root."""
        assert canonicalize("http://example.com") == "http://example.com/"

    def test_sort_query_params(self):
        """Test that query parameters are sorted by key."""
        assert canonicalize("http://example.com/p?b=2&a=1") == "http://example.com/p?a=1&b=2"

    def test_repeated_keys_keep_order(self):
        """Test that sorting is stable for repeated keys."""
        assert (
            canonicalize("http://example.com/p?z=1&a=2&a=1")
            == "http://example.com/p?a=2&a=1&z=1"
        )

    def test_remove_fragment(self):
        """Test that fragments are removed."""
        assert canonicalize("http://a.com/x#f") == canonicalize("http://a.com/x")
        assert canonicalize("http://example.com/path#section") == "http://example.com/path"

    def test_keeps_port(self):
        """Test that explicit ports are kept."""
        assert canonicalize("http://localhost:3000/a/") == "http://localhost:3000/a"

    def test_drops_default_port(self):
        """Test that the scheme's default port is removed."""
        assert canonicalize("https://example.com:443/a") == "https://example.com/a"
        assert canonicalize("http://Example.com:80/") == "http://example.com/"
        assert canonicalize("http://example.com:443/a") == "http://example.com:443/a"

    @pytest.mark.parametrize(
        "url",
        [
            "http://example.com/a/b/?y=2&x=1#top",
            "https://EXAMPLE.com//",
            "http://example.com/search?q=hello world&flag",
            "http://example.com/p?q=%2Fescaped%20value",
            "http://localhost:8080",
            "https://example.com:443/x/",
        ],
    )
    def test_idempotent(self, url):
        """Test that canonicalizing twice changes nothing."""
        once = canonicalize(url)
        assert canonicalize(once) == once

    @pytest.mark.parametrize("url", ["not-a-url", "/relative/path", "", "http://", "http://a.com:notaport/"])
    def test_malformed(self, url):
        """Test that unparseable URLs raise MalformedURLError."""
        with pytest.raises(MalformedURLError):
            canonicalize(url)

    def test_malformed_is_value_error(self):
        """Test that MalformedURLError can be caught as ValueError."""
        with pytest.raises(ValueError):
            canonicalize("nope")

    def test_try_canonicalize(self):
        """Test the non-raising variant."""
        assert try_canonicalize("nope") is None
        assert try_canonicalize("http://a.com/x/") == "http://a.com/x"


class TestDeduplicateUrls:
    """Tests for URL deduplication."""

    def test_removes_normalized_duplicates(self):
        """Test removal of duplicates after canonicalization."""
        urls = [
            "http://example.com/path",
            "HTTP://EXAMPLE.COM/path",
            "http://example.com/path/",
            "http://example.com/path#frag",
        ]
        assert deduplicate_urls(urls) == ["http://example.com/path"]

    def test_preserves_first_seen_order(self):
        """Test that order of first appearance is kept."""
        urls = ["http://e.com/c", "http://e.com/a", "http://e.com/c", "http://e.com/b"]
        assert deduplicate_urls(urls) == ["http://e.com/c", "http://e.com/a", "http://e.com/b"]

    def test_drops_malformed(self):
        """Test that malformed entries are dropped."""
        assert deduplicate_urls(["garbage", "http://e.com/"]) == ["http://e.com/"]


class TestIsSameHost:
    """Tests for same-host check."""

    def test_loopback_equivalence(self):
        """Test that localhost and 127.0.0.1 match across ports and schemes."""
        assert is_same_host("http://localhost:3000", "http://127.0.0.1:9999")
        assert is_same_host("https://localhost/a", "http://localhost:8080/b")

    def test_different_hosts(self):
        """Test different hosts."""
        assert not is_same_host("http://a.com", "http://b.com")

    def test_different_scheme(self):
        """Test that non-loopback hosts need the same scheme."""
        assert not is_same_host("http://example.com/path", "https://example.com/path")

    def test_different_port(self):
        """Test that non-loopback hosts need the same port."""
        assert not is_same_host("http://example.com:8080/a", "http://example.com:9090/a")

    def test_default_port_matches_implicit(self):
        """Test that an explicit default port equals no port."""
        assert is_same_host("https://example.com:443/a", "https://example.com/b")

    def test_host_case_insensitive(self):
        """Test that host comparison ignores case."""
        assert is_same_host("http://Example.COM/a", "http://example.com/b")

    def test_subdomain_is_different(self):
        """Test that subdomains are different hosts."""
        assert not is_same_host("https://example.com", "https://www.example.com")

    def test_malformed(self):
        """Test that malformed input is never the same host."""
        assert not is_same_host("garbage", "http://example.com")


class TestIsLikelyHtml:
    """Tests for the HTML page heuristic."""

    @pytest.mark.parametrize(
        "url",
        [
            "http://e.com/",
            "http://e.com/about",
            "http://e.com/index.html",
            "http://e.com/page.HTM",
            "http://e.com/app.php?id=1",
            "http://e.com/default.aspx",
            "http://e.com/view.jsp",
            "http://e.com/docs/",
        ],
    )
    def test_html_pages(self, url):
        """Test allow-listed and extensionless URLs."""
        assert is_likely_html(url)

    @pytest.mark.parametrize(
        "url",
        [
            "http://e.com/report.pdf",
            "http://e.com/logo.PNG",
            "http://e.com/archive.zip",
            "http://e.com/font.woff2",
            "http://e.com/clip.mp4",
            "http://e.com/site.css",
            "http://e.com/feed.xml",
        ],
    )
    def test_non_html(self, url):
        """Test deny-listed extensions."""
        assert not is_likely_html(url)

    def test_unknown_extension_defaults_to_html(self):
        """Test that unknown extensions are treated as pages."""
        assert is_likely_html("http://e.com/route.v2")
        assert is_likely_html("http://e.com/user.profile")

    def test_dot_in_directory_ignored(self):
        """Test that only the last path segment counts."""
        assert is_likely_html("http://e.com/files.pdf/view")

    def test_malformed(self):
        """Test that malformed URLs are not pages."""
        assert not is_likely_html("not a url")


class TestHelpers:
    """Tests for the smaller helpers."""

    def test_to_absolute_url(self):
        """Test href resolution."""
        assert to_absolute_url("http://e.com/a/b", "c") == "http://e.com/a/c"
        assert to_absolute_url("http://e.com/a/b", "/x") == "http://e.com/x"
        assert to_absolute_url("http://e.com/", "https://o.com/y") == "https://o.com/y"

    def test_to_absolute_url_rejects_non_http(self):
        """Test that mailto and javascript links are dropped."""
        assert to_absolute_url("http://e.com/", "mailto:a@e.com") is None
        assert to_absolute_url("http://e.com/", "javascript:void(0)") is None
        assert to_absolute_url("http://e.com/", "") is None

    def test_get_origin(self):
        """Test origin extraction."""
        assert get_origin("HTTP://Example.com:8080/a/b?c=1") == "http://example.com:8080"
        with pytest.raises(MalformedURLError):
            get_origin("/relative")

    def test_rebase_to_origin(self):
        """Test moving a URL onto another origin."""
        assert (
            rebase_to_origin("https://prod.example.com/a?b=1", "http://localhost:3000/")
            == "http://localhost:3000/a?b=1"
        )

    def test_is_http_url(self):
        """Test URL validation."""
        assert is_http_url("https://example.com/path?query=1")
        assert not is_http_url("ftp://example.com")
        assert not is_http_url("not-a-url")
        assert not is_http_url("")
