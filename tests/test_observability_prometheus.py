import json
import logging
import unittest

from supply_tracker import create_app
from supply_tracker.config import Config
from supply_tracker.observability import JsonLogFormatter, reset_metrics_for_tests, set_log_request_id
from supply_tracker.services import get_services


class _MetricsConfig(Config):
    TESTING = False
    LOG_JSON = False
    DOCUMENT_STORE = "memory"
    SEED_DEMO_DATA = True
    SUPPLY_API_LATENCY_ENABLED = False


class ObservabilityPrometheusTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()
        self.app = create_app(_MetricsConfig)
        self.client = self.app.test_client()
        self.services = get_services(self.app)

    def tearDown(self) -> None:
        self.services.shutdown()
        reset_metrics_for_tests()

    def test_metrics_endpoint_exposes_prometheus_metrics(self) -> None:
        self.client.get("/api/unknown")
        self.client.get("/api/supply-inputs")
        self.services.store.fail(self.services.collection)

        response = self.client.get("/metrics")
        self.assertEqual(response.status_code, 200)
        content_type = response.headers.get("Content-Type") or ""
        self.assertIn("text/plain", content_type)

        payload = response.get_data(as_text=True)
        self.assertIn("http_request_total", payload)
        self.assertIn("http_request_duration_ms_bucket", payload)
        self.assertIn("mirror_batches_total 1", payload)
        self.assertIn("mirror_documents 5", payload)
        self.assertIn('mirror_feed_errors_total{code="unavailable"} 1', payload)
        self.assertIn("mirror_stale_callbacks_total", payload)
        self.assertIn('notifications_total{title="Data Error"} 1', payload)
        self.assertIn('supply_api_calls_total{operation="fetch_all",result="success"} 1', payload)
        self.assertIn("supply_api_latency_ms_bucket", payload)
        self.assertIn('order_view_size{view="business"} 2', payload)
        self.assertIn('order_view_size{view="pipeline"} 1', payload)

    def test_log_formatter_includes_request_id_outside_request_context(self) -> None:
        set_log_request_id("poller-req-123")
        formatter = JsonLogFormatter()
        record = logging.LogRecord(
            name="supply_tracker",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="mirror_batch_applied",
            args=(),
            exc_info=None,
        )
        record.document_count = 3
        parsed = json.loads(formatter.format(record))
        self.assertEqual(parsed.get("request_id"), "poller-req-123")
        self.assertEqual(parsed.get("document_count"), 3)
        self.assertEqual(parsed.get("message"), "mirror_batch_applied")

    def test_health_degrades_while_notification_is_pending(self) -> None:
        self.assertEqual(self.client.get("/health").get_json()["status"], "ok")

        self.services.store.fail(self.services.collection)
        payload = self.client.get("/health").get_json()

        self.assertEqual(payload["status"], "degraded")
        self.assertEqual(payload["metrics"]["mirror"]["feed_errors_total"], 1)
        self.assertEqual(payload["metrics"]["notifications"]["by_title"], {"Data Error": 1})


if __name__ == "__main__":
    unittest.main()
