"""
Tests for the audit trail and the rotating application logger.
"""

import json
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from quote_fixtures import customer_sheet, make_builder, sheets  # noqa: E402

from quote_bridge.models import SubmissionResult  # noqa: E402
from quote_bridge.quote_audit_logger import QuoteAuditLogger  # noqa: E402
from quote_bridge.quote_logger import QuoteLogger  # noqa: E402


class TestQuoteAuditLogger(unittest.TestCase):
    """JSON-lines audit entries."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.audit = QuoteAuditLogger(log_dir=self.tmp_dir)

    def tearDown(self):
        self.audit.close()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _entries(self):
        with open(self.audit.log_file, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    def test_log_validation(self):
        builder, _ = make_builder()
        result = builder.build(sheets(customer=customer_sheet(name="", email="max.mustermann@example.de")))

        self.audit.log_validation("Excel", result)

        entry = self._entries()[0]
        self.assertEqual(entry["type"], "VALIDATION")
        self.assertEqual(entry["source"], "Excel")
        self.assertEqual(entry["status"], "ERROR")
        self.assertEqual(entry["level"], "WARNING")
        self.assertEqual(entry["error_count"], 2)
        self.assertEqual(entry["customer_email_masked"], "ma****@example.de")
        self.assertEqual(entry["errors"][0]["sheet"], "Kunde")

    def test_log_submission(self):
        self.audit.log_submission(
            "Text",
            SubmissionResult(success=True, quotation_id="q-1", status_code=201),
            positions=4,
        )
        self.audit.log_submission(
            "Excel",
            SubmissionResult(status_code=429, rate_limited=True, error="Rate-Limit"),
        )

        ok, failed = self._entries()
        self.assertEqual(ok["status"], "SUCCESS")
        self.assertEqual(ok["quotation_id"], "q-1")
        self.assertEqual(ok["positions"], 4)
        self.assertNotIn("error", ok)
        self.assertEqual(failed["status"], "FAILED")
        self.assertTrue(failed["rate_limited"])
        self.assertEqual(failed["error"], "Rate-Limit")

    def test_mask_email(self):
        self.assertEqual(QuoteAuditLogger._mask_email("a@b.de"), "a****@b.de")
        self.assertEqual(QuoteAuditLogger._mask_email("kein-email"), "kein-email")
        self.assertEqual(QuoteAuditLogger._mask_email(""), "")


class TestQuoteLogger(unittest.TestCase):
    """Rotating main/error files with component prefixes."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.logger = QuoteLogger(name="Quote-Bridge-Test", log_dir=self.tmp_dir, log_level="DEBUG")

    def tearDown(self):
        for handler in list(self.logger.logger.handlers):
            handler.close()
            self.logger.logger.removeHandler(handler)
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _read(self, name):
        return (Path(self.tmp_dir) / name).read_text(encoding="utf-8")

    def test_component_prefix_and_error_file(self):
        self.logger.info("ready", component="API")
        self.logger.error("boom", component="Tools")

        main_log = self._read("quote_bridge.log")
        self.assertIn("[API] ready", main_log)
        self.assertIn("[Tools] boom", main_log)

        error_log = self._read("errors.log")
        self.assertIn("[Tools] boom", error_log)
        self.assertNotIn("ready", error_log)

    def test_api_call_level(self):
        self.logger.log_api_call("GET", "/v1/profile", 200)
        self.logger.log_api_call("POST", "/v1/quotations", 429, attempt=1)

        main_log = self._read("quote_bridge.log")
        self.assertIn("[INFO] [Quote-Bridge-Test] [Lexware] GET /v1/profile -> 200", main_log)
        self.assertIn("[WARNING] [Quote-Bridge-Test] [Lexware] POST /v1/quotations -> 429", main_log)

    def test_log_validation(self):
        self.logger.log_validation("Excel", 3, 1, 2)
        self.assertIn(
            "[Validation] Excel - 3 position(s) validated: 1 error(s), 2 warning(s)",
            self._read("quote_bridge.log"),
        )


if __name__ == "__main__":
    unittest.main()
