"""
Link-header pagination over GitHub list endpoints.

GitHub returns an RFC 5988 ``link`` header on paginated responses::

    <https://api.github.com/...&page=2>; rel="next", <https://...&page=9>; rel="last"

Pages are walked iteratively and concatenated in page order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from ghminer.services.github.http_client import ApiResponse, GithubClient

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100
LINK_PATTERN = re.compile(r'<(.*)>; rel="(.*)"')


@dataclass
class PagedResult:
    items: List[Any] = field(default_factory=list)
    next_url: Optional[str] = None
    last_url: Optional[str] = None
    has_links: bool = False


def ensure_max_per_page(url: str) -> str:
    if "per_page" in url:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}per_page={MAX_PER_PAGE}"


def parse_links(header: Optional[str]) -> Dict[str, str]:
    """Map rel names (next, last, prev, first) to URLs."""
    links: Dict[str, str] = {}
    if not header:
        return links
    for part in header.split(","):
        match = LINK_PATTERN.search(part.strip())
        if match:
            links[match.group(2)] = match.group(1)
    return links


def parse_page(response: ApiResponse) -> List[Any]:
    """Items of one page; objects become a single item, malformed bodies none."""
    data = response.json()
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


def fetch_page(client: GithubClient, url: str, media_type: str = "") -> PagedResult:
    response = client.request(url, media_type)
    if not response.found:
        return PagedResult()

    link_header = response.header("link")
    links = parse_links(link_header)
    return PagedResult(
        items=parse_page(response),
        next_url=links.get("next"),
        last_url=links.get("last"),
        has_links=bool(link_header),
    )


def paged_request(
    client: GithubClient,
    url: str,
    max_pages_back: int = -1,
    known_last_url: Optional[str] = None,
    media_type: str = "",
) -> List[Any]:
    """
    Follow ``next`` links from ``url`` and return all items in page order.

    Stops when a response carries no link header, has no ``next`` link, or
    ``max_pages_back`` pages have been read. ``max_pages_back <= 0`` means no
    page limit.
    """
    items: List[Any] = []
    pages_left = max_pages_back
    next_url: Optional[str] = ensure_max_per_page(url)
    last_url = known_last_url
    visited = 0

    while next_url:
        page = fetch_page(client, next_url, media_type)
        items.extend(page.items)
        visited += 1

        if not page.has_links:
            break
        if last_url is None:
            last_url = page.last_url

        if pages_left > 0:
            pages_left -= 1
            if pages_left == 0:
                break

        next_url = ensure_max_per_page(page.next_url) if page.next_url else None

    logger.debug(f"Paged request {url}: {visited} page(s), {len(items)} item(s), last={last_url}")
    return items


def num_pages(client: GithubClient, url: str, media_type: str = "") -> int:
    """Number of pages GitHub reports for ``url``, from the ``last`` link."""
    response = client.request(ensure_max_per_page(url), media_type)
    if not response.found:
        return 1
    last = parse_links(response.header("link")).get("last")
    if not last:
        return 1
    values = parse_qs(urlparse(last).query).get("page")
    try:
        return int(values[0]) if values else 1
    except ValueError:
        return 1
