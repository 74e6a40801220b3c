import unittest

import httpx

from ghminer.services.github.http_client import GithubClient
from ghminer.services.github.pagination import (
    ensure_max_per_page,
    num_pages,
    paged_request,
    parse_links,
)
from ghminer.services.github.rate_limiter import RateLimiter
from tests.helpers import make_settings

BASE = "https://api.github.com/repos/octo/hello/commits"


def paged_handler(pages, requests=None):
    """Serve ``pages`` (a list of item lists) with GitHub-style link headers."""
    total = len(pages)

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        page = int(request.url.params.get("page", "1"))
        links = []
        if page < total:
            links.append(f'<{BASE}?per_page=100&page={page + 1}>; rel="next"')
        links.append(f'<{BASE}?per_page=100&page={total}>; rel="last"')
        return httpx.Response(200, json=pages[page - 1], headers={"link": ", ".join(links)})

    return handler


class TestPagination(unittest.TestCase):
    def make_client(self, handler):
        settings = make_settings()
        return GithubClient(
            settings,
            rate_limiter=RateLimiter(settings.REQ_LIMIT, sleep=lambda s: True),
            transport=httpx.MockTransport(handler),
        )

    def test_unbounded_walk_concatenates_pages_in_order(self):
        requests = []
        client = self.make_client(paged_handler([[1, 2], [3, 4], [5]], requests))

        self.assertEqual(paged_request(client, BASE), [1, 2, 3, 4, 5])
        self.assertEqual(len(requests), 3)
        self.assertEqual(requests[0].url.params["per_page"], "100")

    def test_page_limit_stops_early(self):
        requests = []
        client = self.make_client(paged_handler([[1], [2], [3], [4]], requests))

        self.assertEqual(paged_request(client, BASE, max_pages_back=2), [1, 2])
        self.assertEqual(len(requests), 2)

    def test_response_without_link_header_is_single_page(self):
        client = self.make_client(lambda request: httpx.Response(200, json=[{"sha": "a"}]))
        self.assertEqual(paged_request(client, BASE), [{"sha": "a"}])

    def test_object_response_is_one_item(self):
        client = self.make_client(lambda request: httpx.Response(200, json={"total_count": 0}))
        self.assertEqual(paged_request(client, BASE), [{"total_count": 0}])

    def test_malformed_page_contributes_nothing(self):
        client = self.make_client(lambda request: httpx.Response(200, content=b"<html>"))
        self.assertEqual(paged_request(client, BASE), [])

    def test_missing_resource_yields_empty_list(self):
        client = self.make_client(lambda request: httpx.Response(404))
        self.assertEqual(paged_request(client, BASE), [])

    def test_num_pages_reads_last_link(self):
        client = self.make_client(paged_handler([[1], [2], [3], [4], [5], [6], [7]]))
        self.assertEqual(num_pages(client, BASE), 7)

    def test_num_pages_defaults_to_one(self):
        client = self.make_client(lambda request: httpx.Response(200, json=[]))
        self.assertEqual(num_pages(client, BASE), 1)


class TestLinkParsing(unittest.TestCase):
    def test_parse_links(self):
        header = (
            '<https://api.github.com/x?page=2>; rel="next", '
            '<https://api.github.com/x?page=9>; rel="last"'
        )
        self.assertEqual(
            parse_links(header),
            {"next": "https://api.github.com/x?page=2", "last": "https://api.github.com/x?page=9"},
        )

    def test_parse_links_empty(self):
        self.assertEqual(parse_links(None), {})
        self.assertEqual(parse_links(""), {})

    def test_ensure_max_per_page(self):
        self.assertEqual(ensure_max_per_page("https://x/y"), "https://x/y?per_page=100")
        self.assertEqual(ensure_max_per_page("https://x/y?sha=a"), "https://x/y?sha=a&per_page=100")
        self.assertEqual(ensure_max_per_page("https://x/y?per_page=5"), "https://x/y?per_page=5")


if __name__ == "__main__":
    unittest.main()
