"""Helpers for faking HTTP sites in tests."""

from typing import Callable, Union

import httpx

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Exception]


class FakeSite:
    """Serves canned responses by URL through httpx.MockTransport."""

    def __init__(self, routes: dict[str, Route] | None = None):
        self.routes: dict[str, Route] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def hits(self, url: str) -> int:
        return sum(1 for r in self.requests if str(r.url) == url)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="Not Found")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        # Fresh copy, so one canned response can answer many requests
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            follow_redirects=True,
        )


class RecordingSleep:
    """Stands in for asyncio.sleep and records every requested delay."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def xml_response(
    body: str, status: int = 200, content_type: str = "application/xml"
) -> httpx.Response:
    """Build an XML response."""
    return httpx.Response(status, text=body, headers={"content-type": content_type})


def html_response(body: str, status: int = 200) -> httpx.Response:
    """Build an HTML response."""
    return httpx.Response(status, text=body, headers={"content-type": "text/html; charset=utf-8"})


def urlset(*locs: str) -> str:
    """Build a urlset document."""
    entries = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'
    )


def sitemapindex(*locs: str) -> str:
    """Build a sitemapindex document."""
    entries = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{entries}</sitemapindex>"
    )
