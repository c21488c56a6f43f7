"""
Tests for the Lexware side: request throttle, HTTP connector retry rules,
response parsing and the article lookup cache.
"""

import sys
import unittest
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import requests

sys.path.insert(0, str(Path(__file__).parent))

from quote_fixtures import make_response  # noqa: E402

from quote_bridge.article_lookup_service import ArticleLookupService  # noqa: E402
from quote_bridge.lexware_connector import LexwareConnector  # noqa: E402
from quote_bridge.lexware_response_parser import LexwareResponseParser  # noqa: E402
from quote_bridge.models import CatalogUnavailableError, LexwareResponse  # noqa: E402
from quote_bridge.rate_limiter import RequestThrottle  # noqa: E402


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def _connector(responses, max_retries=3):
    """Connector whose session returns (or raises) the given items in order."""
    session = MagicMock()
    session.request.side_effect = responses
    sleep = MagicMock()
    throttle = MagicMock()
    throttle.acquire.return_value = 0.0
    connector = LexwareConnector(
        api_key="test-key",
        base_url="https://lexware.test/",
        max_retries=max_retries,
        throttle=throttle,
        session=session,
        sleep=sleep,
        logger=MagicMock(),
    )
    return connector, session, sleep, throttle


# ======================================================================
# Test: RequestThrottle
# ======================================================================


class TestRequestThrottle(unittest.TestCase):
    """Sliding window over an injected clock."""

    def test_third_request_waits_for_next_window(self):
        clock = FakeClock()
        throttle = RequestThrottle(max_requests=2, window_seconds=1.0, clock=clock)

        self.assertEqual(throttle.reserve(), 0)
        self.assertEqual(throttle.reserve(), 0)
        self.assertEqual(throttle.reserve(), 1.0)

    def test_window_slides(self):
        clock = FakeClock()
        throttle = RequestThrottle(max_requests=2, window_seconds=1.0, clock=clock)
        throttle.reserve()
        throttle.reserve()

        clock.now = 1.5
        self.assertEqual(throttle.reserve(), 0)

    def test_block_for_holds_back_requests(self):
        clock = FakeClock()
        throttle = RequestThrottle(max_requests=2, clock=clock)
        throttle.block_for(5)
        self.assertEqual(throttle.reserve(), 5)

    def test_acquire_sleeps(self):
        clock = FakeClock()
        sleep = MagicMock()
        throttle = RequestThrottle(max_requests=1, clock=clock, sleep=sleep)

        throttle.acquire()
        sleep.assert_not_called()
        throttle.acquire()
        sleep.assert_called_once_with(1.0)


# ======================================================================
# Test: LexwareConnector
# ======================================================================


class TestLexwareConnector(unittest.TestCase):
    """Retry policy: GETs retry, quotation creation is sent once."""

    def test_create_quotation_success(self):
        connector, session, _, _ = _connector([
            make_response(201, {"id": "q-1", "resourceUri": "https://x/q-1", "version": 1}),
        ])

        result = connector.create_quotation({"lineItems": []})

        self.assertTrue(result.success)
        self.assertEqual(result.quotation_id, "q-1")
        self.assertEqual(result.version, 1)
        args, kwargs = session.request.call_args
        self.assertEqual(args, ("POST", "https://lexware.test/v1/quotations"))
        self.assertEqual(kwargs["params"], {"finalize": "true"})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer test-key")
        self.assertEqual(kwargs["json"], {"lineItems": []})

    def test_create_quotation_429_is_not_retried(self):
        connector, session, sleep, throttle = _connector([
            make_response(429, {"message": "Too many requests"}, headers={"Retry-After": "3"}),
            make_response(201, {"id": "q-2"}),
        ])

        result = connector.create_quotation({})

        self.assertFalse(result.success)
        self.assertTrue(result.rate_limited)
        self.assertIn("429", result.error)
        self.assertEqual(session.request.call_count, 1)
        throttle.block_for.assert_called_once_with(3.0)
        sleep.assert_not_called()

    def test_create_quotation_connection_error_sent_once(self):
        connector, session, _, _ = _connector([
            requests.ConnectionError("refused"),
            make_response(201, {"id": "q-3"}),
        ])

        result = connector.create_quotation({})

        self.assertFalse(result.success)
        self.assertEqual(session.request.call_count, 1)
        self.assertIn("nicht erreichbar", result.error)

    def test_create_quotation_validation_error(self):
        connector, _, _, _ = _connector([
            make_response(
                406,
                {"message": "Missing entity", "details": [
                    {"field": "lineItems[0].unitPrice", "violation": "NOTNULL"},
                ]},
            ),
        ])

        result = connector.create_quotation({})

        self.assertFalse(result.success)
        self.assertEqual(result.status_code, 406)
        self.assertIn("lineItems[0].unitPrice: NOTNULL", result.error)
        self.assertEqual(result.error_body["message"], "Missing entity")

    def test_get_retries_server_errors(self):
        connector, session, sleep, _ = _connector([
            make_response(503, content=b"unavailable"),
            make_response(200, {"id": "a-1", "title": "Cap"}),
        ])

        resp = connector.get_article("a-1")

        self.assertTrue(resp.success)
        self.assertEqual(resp.attempts, 2)
        self.assertEqual(session.request.call_count, 2)
        sleep.assert_called_once_with(2)

    def test_get_retries_429_after_retry_after(self):
        connector, session, sleep, throttle = _connector([
            make_response(429, headers={"Retry-After": "1.5"}),
            make_response(200, {"id": "a-1"}),
        ])

        resp = connector.get_article("a-1")

        self.assertTrue(resp.success)
        throttle.block_for.assert_called_once_with(1.5)
        sleep.assert_not_called()

    def test_get_retries_connection_errors(self):
        connector, session, sleep, _ = _connector([
            requests.Timeout("slow"),
            make_response(200, {"organizationName": "Acme"}),
        ])

        resp = connector.get_profile()

        self.assertTrue(resp.success)
        self.assertEqual(resp.data, {"organizationName": "Acme"})
        sleep.assert_called_once_with(2)

    def test_get_gives_up_after_max_retries(self):
        connector, session, sleep, _ = _connector(
            [make_response(500, content=b"boom")] * 3
        )

        resp = connector.get_article("a-1")

        self.assertFalse(resp.success)
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(session.request.call_count, 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [2, 4])

    def test_get_404_is_final(self):
        connector, session, _, _ = _connector([make_response(404, {"message": "not found"})])

        resp = connector.get_article("missing")

        self.assertFalse(resp.success)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(session.request.call_count, 1)

    def test_quotation_file_headers(self):
        connector, session, _, _ = _connector([
            make_response(
                200,
                content=b"%PDF-1.4",
                headers={
                    "Content-Type": "application/pdf",
                    "Content-Disposition": 'attachment; filename="AG0001.pdf"',
                },
            ),
        ])

        resp = connector.get_quotation_file("q 1")

        self.assertEqual(resp.content, b"%PDF-1.4")
        self.assertEqual(resp.headers["content-type"], "application/pdf")
        args, kwargs = session.request.call_args
        self.assertEqual(args[1], "https://lexware.test/v1/quotations/q%201/file")
        self.assertEqual(kwargs["headers"]["Accept"], "application/pdf")


# ======================================================================
# Test: LexwareResponseParser
# ======================================================================


class TestLexwareResponseParser(unittest.TestCase):
    """Parsing of articles, errors and file names."""

    def setUp(self):
        self.parser = LexwareResponseParser()

    def test_parse_article(self):
        parsed = self.parser.parse_article({
            "id": "a-1",
            "title": " Basic Shirt ",
            "unitName": "Stk",
            "price": {"netPrice": 5, "grossPrice": 5.95, "taxRate": 19},
        })
        self.assertEqual(parsed.title, "Basic Shirt")
        self.assertEqual(parsed.price.net_price, Decimal("5"))
        self.assertEqual(parsed.price.gross_price, Decimal("5.95"))
        self.assertEqual(parsed.price.tax_rate, Decimal("19"))

    def test_parse_article_without_id(self):
        self.assertIsNone(self.parser.parse_article({"title": "x"}))
        self.assertIsNone(self.parser.parse_article(None))

    def test_create_response_without_id(self):
        result = self.parser.parse_create_response(
            LexwareResponse(success=True, status_code=201, data={})
        )
        self.assertFalse(result.success)
        self.assertIn("keine Angebots-ID", result.error)

    def test_issue_list_errors(self):
        message = self.parser.parse_error_message(
            LexwareResponse(
                status_code=400,
                data={"IssueList": [{"source": "taxType", "i18nKey": "invalid_value"}]},
            )
        )
        self.assertEqual(message, "Lexware-Fehler (400): taxType: invalid_value")

    def test_plain_error(self):
        message = self.parser.parse_error_message(
            LexwareResponse(status_code=502, error="Bad Gateway")
        )
        self.assertEqual(message, "Lexware-Fehler (502): Bad Gateway")

    def test_filename_from_disposition(self):
        self.assertEqual(
            self.parser.filename_from_disposition('attachment; filename="AG0001.pdf"'),
            "AG0001.pdf",
        )
        self.assertEqual(
            self.parser.filename_from_disposition("attachment; filename*=UTF-8''Angebot.pdf"),
            "Angebot.pdf",
        )
        self.assertIsNone(self.parser.filename_from_disposition("inline"))

    def test_organization_name(self):
        self.assertEqual(
            self.parser.parse_organization_name({"companyName": "Acme"}), "Acme"
        )
        self.assertEqual(self.parser.parse_organization_name([]), "")


# ======================================================================
# Test: ArticleLookupService
# ======================================================================


class TestArticleLookupService(unittest.TestCase):
    """Per-instance cache of catalog lookups."""

    def _service(self, *responses):
        connector = MagicMock()
        connector.get_article.side_effect = list(responses)
        return ArticleLookupService(connector), connector

    def test_found_article_is_cached(self):
        service, connector = self._service(
            LexwareResponse(success=True, status_code=200, data={"id": "a-1", "title": "Cap"}),
        )

        self.assertEqual(service.get_article("a-1").title, "Cap")
        self.assertEqual(service.get_article(" a-1 ").title, "Cap")
        self.assertEqual(connector.get_article.call_count, 1)

    def test_not_found_is_cached(self):
        service, connector = self._service(LexwareResponse(status_code=404))

        self.assertIsNone(service.get_article("a-9"))
        self.assertIsNone(service.get_article("a-9"))
        self.assertEqual(connector.get_article.call_count, 1)

    def test_transient_failure_is_not_cached(self):
        service, connector = self._service(
            LexwareResponse(status_code=500, error="boom"),
            LexwareResponse(success=True, status_code=200, data={"id": "a-1", "title": "Cap"}),
        )

        with self.assertRaises(CatalogUnavailableError) as ctx:
            service.get_article("a-1")
        self.assertEqual(ctx.exception.article_id, "a-1")
        self.assertEqual(ctx.exception.reason, "boom")
        self.assertEqual(service.get_article("a-1").title, "Cap")
        self.assertEqual(connector.get_article.call_count, 2)
        connector.logger.warning.assert_called_once()

    def test_unreachable_is_not_reported_as_missing(self):
        service, _ = self._service(LexwareResponse(status_code=503))

        with self.assertRaises(CatalogUnavailableError) as ctx:
            service.get_article("abc-1")
        self.assertEqual(ctx.exception.reason, "HTTP 503")

    def test_blank_id_skips_lookup(self):
        service, connector = self._service()
        self.assertIsNone(service.get_article("  "))
        connector.get_article.assert_not_called()

    def test_clear_cache(self):
        service, connector = self._service(
            LexwareResponse(status_code=404),
            LexwareResponse(status_code=404),
        )
        service.get_article("a-1")
        service.clear_cache()
        service.get_article("a-1")
        self.assertEqual(connector.get_article.call_count, 2)


if __name__ == "__main__":
    unittest.main()
