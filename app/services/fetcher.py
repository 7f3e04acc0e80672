"""Page fetcher for the SEO health checks.

Only public http(s) hosts are fetched; anything resolving to a private,
loopback, link-local or reserved address is refused before a request is made.
"""

import asyncio
import ipaddress
import socket
from typing import NamedTuple, Optional
from urllib.parse import urljoin, urlparse

import httpx

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
TIMEOUT = 10  # seconds
ALLOWED_SCHEMES = {"http", "https"}


class FetchedPage(NamedTuple):
    status_code: int
    text: str
    # Absolute redirect target when status_code is 3xx
    location: Optional[str] = None

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400


async def _resolves_to_internal(hostname: str) -> bool:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None)
        addresses = {info[4][0].split("%")[0] for info in infos}
    except socket.gaierror:
        return False

    for raw in addresses:
        try:
            ip = ipaddress.ip_address(raw)
        except ValueError:
            continue
        if any((ip.is_private, ip.is_loopback, ip.is_link_local, ip.is_reserved)):
            return True
    return False


async def validate_page_url(url: str) -> None:
    """Raise ValueError unless *url* is an http(s) URL on a public host."""
    parts = urlparse(url)
    if parts.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Cannot fetch {url}: scheme {parts.scheme!r} is not allowed")
    if not parts.hostname:
        raise ValueError(f"Cannot fetch {url}: no hostname")
    if await _resolves_to_internal(parts.hostname):
        raise ValueError(f"Cannot fetch {url}: host resolves to a private address")


async def fetch_page(url: str, client: Optional[httpx.AsyncClient] = None) -> FetchedPage:
    """GET *url* without following redirects.

    Redirects are reported, not followed, so callers can flag pages that
    redirect away from the URL published in the sitemap.

    Raises:
        ValueError: if the URL is not a public http(s) URL.
        httpx.HTTPError: on network errors.
        RuntimeError: if the response body exceeds MAX_CONTENT_SIZE.
    """
    await validate_page_url(url)

    if client is None:
        async with httpx.AsyncClient(follow_redirects=False, timeout=TIMEOUT) as own_client:
            return await _get(own_client, url)
    return await _get(client, url)


async def _get(client: httpx.AsyncClient, url: str) -> FetchedPage:
    async with client.stream("GET", url, follow_redirects=False) as response:
        if response.is_redirect:
            target = urljoin(url, response.headers.get("location", ""))
            return FetchedPage(response.status_code, "", target)

        declared = int(response.headers.get("content-length") or 0)
        if declared > MAX_CONTENT_SIZE:
            raise RuntimeError(f"{url} declares {declared} bytes, over the size limit")

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > MAX_CONTENT_SIZE:
                raise RuntimeError(f"{url} exceeded the size limit while downloading")

        return FetchedPage(response.status_code, body.decode(errors="replace"))
