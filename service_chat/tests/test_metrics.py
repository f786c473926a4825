"""
Tests for the shared metrics collector.
"""

from shared.metrics import MetricsCollector


class TestMetricsCollector:
    """Test cases for MetricsCollector."""

    def test_collectors_do_not_share_registries(self):
        first = MetricsCollector("chat")
        second = MetricsCollector("chat")

        first.increment_counter("rate_limit_hits_total")

        assert first.registry.get_sample_value("rate_limit_hits_total") == 1.0
        assert second.registry.get_sample_value("rate_limit_hits_total") == 0.0

    def test_labelled_and_unlabelled_helpers(self):
        metrics = MetricsCollector("chat")

        metrics.increment_counter("cache_hits_total", cache_type="reply")
        metrics.set_gauge("admission_in_flight", 2)
        metrics.observe_histogram("upstream_request_duration_seconds", 0.25)

        assert metrics.registry.get_sample_value("cache_hits_total", {"cache_type": "reply"}) == 1.0
        assert metrics.registry.get_sample_value("admission_in_flight") == 2.0
        assert metrics.registry.get_sample_value("upstream_request_duration_seconds_sum") == 0.25

    def test_unknown_metric_is_ignored(self):
        metrics = MetricsCollector("chat")

        metrics.increment_counter("does_not_exist")
        metrics.set_gauge("does_not_exist", 1)
        metrics.observe_histogram("does_not_exist", 1.0)

        assert b"does_not_exist" not in metrics.export()

    def test_record_http_request(self):
        metrics = MetricsCollector("chat")

        metrics.record_http_request("POST", "/api/chat", 200, 0.1)

        assert metrics.registry.get_sample_value(
            "http_requests_total",
            {"method": "POST", "endpoint": "/api/chat", "status_code": "200"},
        ) == 1.0
