"""Tests for scraping the Hydra evaluation listing."""

import json
import os
import shutil
import tempfile
import unittest

import httpx

from hydrasect.config import Settings
from hydrasect.errors import TransportError
from hydrasect.models import EvaluationRecord
from hydrasect.scraper import EvaluationPage, HydraClient, Scraper, parse_page_number
from hydrasect.store import EvaluationStore

EVALS_PATH = "/jobset/nixos/unstable-small/evals"


def oid(n):
    return format(n, '040x')


def hydra_eval(eval_id, revision, input_name="nixpkgs"):
    return {
        "id": eval_id,
        "jobsetevalinputs": {input_name: {"revision": revision, "type": "git"}},
    }


def listing(pages):
    """Build a handler serving ``pages`` (lists of evals) Hydra-style."""
    requests = []
    last = f"?page={len(pages)}"

    def handler(request):
        requests.append(request)
        assert request.url.path == EVALS_PATH
        number = int(request.url.params.get("page", "1"))
        body = {"evals": pages[number - 1], "first": "?page=1", "last": last}
        if number < len(pages):
            body["next"] = f"?page={number + 1}"
        return httpx.Response(200, json=body, request=request)

    return handler, requests


def make_client(handler):
    return HydraClient(
        "https://hydra.example/",
        "nixos",
        "unstable-small",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


class TestParsePageNumber(unittest.TestCase):

    def test_parse_page_number(self):
        self.assertIsNone(parse_page_number(""))
        self.assertIsNone(parse_page_number("xxx"))
        self.assertEqual(parse_page_number("?page=588"), 588)
        self.assertIsNone(parse_page_number("?page=xxx"))


class TestEvaluationPage(unittest.TestCase):

    def test_from_json(self):
        page = EvaluationPage.from_json(
            {"evals": [hydra_eval(7, oid(1).upper())], "next": "?page=2", "last": "?page=3"},
            "nixpkgs",
        )
        self.assertEqual(page.records, [EvaluationRecord(oid(1), 7)])
        self.assertEqual(page.next, "?page=2")
        self.assertEqual(page.last, "?page=3")

    def test_skips_evals_without_the_input(self):
        page = EvaluationPage.from_json(
            {"evals": [hydra_eval(1, oid(1), "other"), hydra_eval(2, oid(2))]},
            "nixpkgs",
        )
        self.assertEqual(page.records, [EvaluationRecord(oid(2), 2)])
        self.assertIsNone(page.next)

    def test_rejects_unexpected_shapes(self):
        bad_payloads = [
            [],
            {},
            {"evals": {}},
            {"evals": ["x"]},
            {"evals": [{"id": "1", "jobsetevalinputs": {}}]},
            {"evals": [{"id": 1}]},
            {"evals": [{"id": 1, "jobsetevalinputs": {"nixpkgs": {}}}]},
            {"evals": [hydra_eval(1, "not-hex")]},
            {"evals": [], "next": 2},
        ]
        for payload in bad_payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    EvaluationPage.from_json(payload, "nixpkgs")


class TestHydraClient(unittest.TestCase):

    def test_iter_pages_follows_next_links(self):
        handler, requests = listing([
            [hydra_eval(3, oid(3))],
            [hydra_eval(2, oid(2))],
            [hydra_eval(1, oid(1))],
        ])
        client = make_client(handler)

        pages = list(client.iter_pages())

        self.assertEqual([p.records[0].eval_id for p in pages], [3, 2, 1])
        self.assertEqual(
            [str(r.url) for r in requests],
            [
                f"https://hydra.example{EVALS_PATH}",
                f"https://hydra.example{EVALS_PATH}?page=2",
                f"https://hydra.example{EVALS_PATH}?page=3",
            ],
        )

    def test_iter_pages_is_lazy_and_restarts(self):
        """Pages are fetched on demand; a new iteration starts at page one."""
        handler, requests = listing([[hydra_eval(2, oid(2))], [hydra_eval(1, oid(1))]])
        client = make_client(handler)

        pages = client.iter_pages()
        self.assertEqual(requests, [])
        next(pages)
        self.assertEqual(len(requests), 1)

        list(client.iter_pages())
        self.assertNotIn("page", requests[1].url.params)

    def test_sends_json_headers(self):
        handler, requests = listing([[]])
        make_client(handler).fetch_page()
        self.assertEqual(requests[0].headers["accept"], "application/json")
        self.assertTrue(requests[0].headers["user-agent"].startswith("hydrasect/"))

    def test_http_error_status(self):
        def handler(request):
            return httpx.Response(503, request=request)

        with self.assertRaises(TransportError) as ctx:
            make_client(handler).fetch_page()
        self.assertIn("503", str(ctx.exception))

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(TransportError):
            make_client(handler).fetch_page()

    def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>", request=request)

        with self.assertRaises(TransportError):
            make_client(handler).fetch_page()

    def test_pagination_loop(self):
        def handler(request):
            return httpx.Response(200, json={"evals": [], "next": "?page=2"}, request=request)

        with self.assertRaises(TransportError):
            list(make_client(handler).iter_pages())

    def test_from_settings(self):
        settings = Settings(
            history_path="/tmp/h",
            hydra_url="https://hydra.example",
            project="p",
            jobset="j",
            input_name="src",
        )
        client = HydraClient.from_settings(settings)
        try:
            self.assertEqual(client.evals_url, "https://hydra.example/jobset/p/j/evals")
            self.assertEqual(client.input_name, "src")
        finally:
            client.close()


class TestScraper(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, 'hydra-eval-history')
        self.store = EvaluationStore(self.path)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def read_raw(self):
        with open(self.path, 'rb') as f:
            return f.read()

    def test_scrape_publishes_all_pages(self):
        handler, _ = listing([
            [hydra_eval(4, oid(4)), hydra_eval(3, oid(2))],
            [hydra_eval(2, oid(2)), hydra_eval(1, oid(1))],
        ])

        count = Scraper(make_client(handler), self.store).scrape()

        self.assertEqual(count, 3)
        self.assertEqual(
            self.read_raw(),
            f"{oid(1)} 1\n{oid(2)} 3\n{oid(4)} 4\n".encode(),
        )

    def test_scrape_twice_is_byte_identical(self):
        handler, _ = listing([[hydra_eval(n, oid(n)) for n in range(10, 0, -1)]])
        scraper = Scraper(make_client(handler), self.store)

        scraper.scrape()
        first = self.read_raw()
        scraper.scrape()

        self.assertEqual(self.read_raw(), first)

    def test_failed_page_leaves_snapshot_untouched(self):
        """A failure on any page aborts without touching the store."""
        self.store.replace([EvaluationRecord(oid(9), 9)])
        before = self.read_raw()

        def handler(request):
            if "page" in request.url.params:
                return httpx.Response(500, request=request)
            body = {"evals": [hydra_eval(1, oid(1))], "next": "?page=2"}
            return httpx.Response(200, content=json.dumps(body).encode(), request=request)

        with self.assertRaises(TransportError):
            Scraper(make_client(handler), self.store).scrape()

        self.assertEqual(self.read_raw(), before)

    def test_failed_first_scrape_creates_nothing(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with self.assertRaises(TransportError):
            Scraper(make_client(handler), self.store).scrape()

        self.assertFalse(os.path.exists(self.path))


if __name__ == '__main__':
    unittest.main()
